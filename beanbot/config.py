"""Configuration loader for the trading bot.

Supports YAML format with environment variable interpolation.
"""
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from .strategy import DEFAULT_BUY_BANDS, DEFAULT_SELL_BANDS
from .summary import LookbackWindow


@dataclass
class ExchangeConfig:
    """Remote market settings."""
    base_url: str = "https://sillypost.net"
    user_agent: str = "beanbot/0.1"
    timeout: float = 10


@dataclass
class RateLimitConfig:
    """Call budget enforced by the market."""
    max_requests_per_minute: int = 570
    proactive_margin: int = 5           # throttle this many calls below the budget
    proactive_delay_seconds: float = 1.0


@dataclass
class ExecutionConfig:
    """Chunking and backoff for order execution."""
    max_units_per_chunk: int = 200
    inter_chunk_delay_seconds: float = 0.05
    initial_backoff_seconds: float = 30.0
    max_backoff_seconds: float = 300.0


@dataclass
class StrategyConfig:
    """Threshold strategy parameters."""
    lookback_window: str = "1d"
    min_data_points: int = 12
    k_factor: float = 1.0
    fallback_spread: int = 5
    min_balance_reserve: int = 300
    min_units_reserve: int = 10
    trade_fraction: float = 0.15

    @property
    def lookback(self) -> LookbackWindow:
        return LookbackWindow(self.lookback_window)


@dataclass
class BandConfig:
    """Band strategy breakpoints as [price, fraction] pairs."""
    buy_bands: List[List[float]] = field(default_factory=lambda: [list(b) for b in DEFAULT_BUY_BANDS])
    sell_bands: List[List[float]] = field(default_factory=lambda: [list(b) for b in DEFAULT_SELL_BANDS])


@dataclass
class PersistenceConfig:
    """Database and logging settings."""
    db_path: str = "market.sqlite"
    log_file: Optional[str] = "beanbot.log"
    log_level: str = "INFO"
    log_requests: bool = False          # per-request DEBUG lines from the adapter
    log_rotation: str = "100 MB"
    log_retention: str = "7 days"


@dataclass
class LoopConfig:
    """Outer loop pacing."""
    strategy: str = "threshold"
    cycle_interval_seconds: float = 600.0
    min_sleep_seconds: float = 0.1


@dataclass
class BotConfig:
    """Complete bot configuration."""
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    bands: BandConfig = field(default_factory=BandConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)

    @classmethod
    def default(cls) -> "BotConfig":
        return cls()

    @classmethod
    def from_yaml(cls, config_path: str) -> "BotConfig":
        """Load configuration from YAML file with env var interpolation.

        Missing sections and keys keep their defaults.

        Args:
            config_path: Path to YAML config file

        Returns:
            BotConfig instance

        Example YAML:
            strategy:
              lookback_window: 12h
              k_factor: 1.5
            persistence:
              db_path: "${STATE_DIR}/market.sqlite"
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with config_file.open("r") as f:
            raw = f.read()

        # Interpolate environment variables: ${VAR_NAME}
        for key, value in os.environ.items():
            raw = raw.replace(f"${{{key}}}", value)

        data = yaml.safe_load(raw) or {}

        config = cls(
            exchange=ExchangeConfig(**data.get("exchange", {})),
            rate_limit=RateLimitConfig(**data.get("rate_limit", {})),
            execution=ExecutionConfig(**data.get("execution", {})),
            strategy=StrategyConfig(**data.get("strategy", {})),
            bands=BandConfig(**data.get("bands", {})),
            persistence=PersistenceConfig(**data.get("persistence", {})),
            loop=LoopConfig(**data.get("loop", {})),
        )
        # fail early on an unknown window name
        config.strategy.lookback
        return config

    def to_yaml(self, output_path: str) -> None:
        """Save configuration to YAML file."""
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with output_file.open("w") as f:
            yaml.safe_dump(asdict(self), f, default_flow_style=False, sort_keys=False)
