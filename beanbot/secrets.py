"""Secrets management: load the market token from environment or config file.

Priority order:
1. Environment variable: BEANBOT_TOKEN
2. Config file: ~/.beanbot.json or custom path via ENV BEANBOT_CONFIG_PATH
"""
import json
import os
from pathlib import Path
from typing import Optional


def load_token(config_path: Optional[str] = None) -> str:
    """Load the session token sent to the market as the ``token`` cookie.

    Args:
        config_path: Optional override path to config file. If not provided,
                     checks BEANBOT_CONFIG_PATH env var, then ~/.beanbot.json

    Returns:
        The token string

    Raises:
        ValueError: If no token is found or the config file is unreadable
    """
    token = os.getenv("BEANBOT_TOKEN")
    if token:
        return token

    if config_path is None:
        config_path = os.getenv("BEANBOT_CONFIG_PATH")
    if config_path is None:
        config_path = str(Path.home() / ".beanbot.json")

    config_file = Path(config_path)
    if config_file.exists():
        try:
            with config_file.open("r") as f:
                token = json.load(f).get("token")
        except (OSError, ValueError, AttributeError) as e:
            raise ValueError(f"Failed to load config from {config_path}: {e}")

    if not token:
        raise ValueError(
            "Missing market token. Provide via:\n"
            "  - Environment: BEANBOT_TOKEN\n"
            f"  - Config file: {config_path} with a \"token\" key\n"
            "  - BEANBOT_CONFIG_PATH env var to override config location"
        )
    return token
