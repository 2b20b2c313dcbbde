"""loguru configuration for the bot.

Per-request traffic from the exchange adapter is logged at DEBUG and is
noisy at one line per call; it only reaches the sinks when ``log_requests``
is on, whatever the level.
"""
import sys
from pathlib import Path
from typing import Callable, Dict, Optional

from loguru import logger as _logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)

REQUEST_LOGGER = "beanbot.exchange_adapter"


def request_filter(log_requests: bool) -> Callable[[Dict], bool]:
    """Build a sink filter that drops adapter DEBUG lines unless `log_requests`."""
    info = _logger.level("INFO").no

    def accept(record: Dict) -> bool:
        if record["name"] == REQUEST_LOGGER and record["level"].no < info:
            return log_requests
        return True

    return accept


def setup_logging(
    log_file: Optional[str] = "beanbot.log",
    level: str = "INFO",
    enable_console: bool = True,
    *,
    log_requests: bool = False,
    rotation: str = "100 MB",
    retention: str = "7 days",
) -> None:
    """Replace every loguru sink with the bot's file and console sinks.

    Args:
        log_file: Path to the log file, or None to skip file logging
        level: Minimum level for both sinks
        enable_console: Whether to log to stdout as well
        log_requests: Let per-request DEBUG lines through
        rotation: loguru rotation for the file sink
        retention: loguru retention for rotated files
    """
    _logger.remove()
    accept = request_filter(log_requests)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _logger.add(
            str(log_path),
            format=LOG_FORMAT,
            level=level,
            filter=accept,
            rotation=rotation,
            retention=retention,
        )

    if enable_console:
        _logger.add(sys.stdout, format=LOG_FORMAT, level=level, filter=accept, colorize=True)


logger = _logger
