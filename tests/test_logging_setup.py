from unittest.mock import MagicMock, patch

import pytest

from beanbot.exchange_adapter import InMemoryMarketAdapter, SillyExchangeAdapter
from beanbot.logging_setup import logger, setup_logging
from beanbot.market_state import MarketStateCache


def fetch_balance_with_logging(log_file, log_requests):
    setup_logging(log_file=str(log_file), level="DEBUG", enable_console=False, log_requests=log_requests)
    resp = MagicMock(status_code=200, ok=True, headers={}, text="json")
    resp.json.return_value = 900
    with patch("beanbot.exchange_adapter.requests.Session.request", return_value=resp):
        SillyExchangeAdapter("t0ken").fetch_balance()
    logger.debug("Cycle marker")
    logger.remove()
    return log_file.read_text()


@pytest.mark.parametrize("log_requests", [False, True])
def test_request_lines_follow_toggle(tmp_path, log_requests):
    text = fetch_balance_with_logging(tmp_path / "logs" / "beanbot.log", log_requests)

    assert "Cycle marker" in text
    assert ("Request | method=GET" in text) is log_requests
    assert ("Response | status=200" in text) is log_requests


def test_other_debug_lines_pass_with_requests_off(tmp_path):
    log_file = tmp_path / "beanbot.log"
    setup_logging(log_file=str(log_file), level="DEBUG", enable_console=False)

    MarketStateCache(InMemoryMarketAdapter(price=42)).synchronize()
    logger.remove()

    assert "State synchronized | price=42" in log_file.read_text()


def test_level_still_applies(tmp_path):
    log_file = tmp_path / "beanbot.log"
    setup_logging(log_file=str(log_file), level="INFO", enable_console=False, log_requests=True)

    MarketStateCache(InMemoryMarketAdapter(price=42)).synchronize()
    logger.info("Cycle marker")
    logger.remove()

    text = log_file.read_text()
    assert "Cycle marker" in text
    assert "State synchronized" not in text
