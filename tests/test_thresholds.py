import math

import pytest

from beanbot.summary import MarketSummary, summarize_prices
from beanbot.thresholds import calculate_thresholds


def summary(mean, sd, count=20):
    return MarketSummary(0, 1, count, 0, 0, mean, sd)


def test_flat_history_uses_fallback_spread():
    s = summarize_prices([40] * 5, 0, 1)
    t = calculate_thresholds(s, k_factor=1.0, fallback_spread=5)

    assert (t.buy_threshold, t.sell_threshold) == (35, 45)
    assert t.sell_threshold - t.buy_threshold == 2 * 5
    assert t.is_valid


def test_small_std_dev_is_treated_as_zero():
    t = calculate_thresholds(summary(50.0, 0.99), k_factor=3.0, fallback_spread=5)
    assert (t.buy_threshold, t.sell_threshold) == (45, 55)


@pytest.mark.parametrize("mean,sd,k", [(50.0, 1.0, 1.0), (61.7, 4.3, 1.5), (100.2, 12.9, 0.5)])
def test_std_dev_branch_floors_both_bounds(mean, sd, k):
    t = calculate_thresholds(summary(mean, sd), k_factor=k, fallback_spread=5)
    assert t.buy_threshold == max(1, math.floor(mean - k * sd))
    assert t.sell_threshold == math.floor(mean + k * sd)


def test_buy_threshold_is_clamped_to_one():
    t = calculate_thresholds(summary(10.0, 20.0), k_factor=1.0, fallback_spread=5)
    assert t.buy_threshold == 1
    assert t.sell_threshold == 30
    assert t.is_valid


def test_crossed_thresholds_are_invalid():
    # buy clamps up to 1 while sell floors to 1
    t = calculate_thresholds(summary(1.5, 0.0), k_factor=1.0, fallback_spread=0)
    assert t.buy_threshold >= t.sell_threshold
    assert not t.is_valid


def test_validity_matches_ordering():
    for mean, sd in [(50.0, 0.0), (3.0, 0.5), (1.0, 0.0), (80.0, 10.0)]:
        t = calculate_thresholds(summary(mean, sd), k_factor=1.0, fallback_spread=2)
        assert t.is_valid == (t.buy_threshold < t.sell_threshold)
