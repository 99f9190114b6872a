"""
Configuration loader
"""
import logging
import os
from pathlib import Path
from typing import Optional

import yaml

from portal.models import Settings


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/portal.yaml"

# Environment variable -> settings field
ENV_OVERRIDES = {
    "WEBHOOK_ENDPOINT_URL": "webhook_url",
    "WEBHOOK_SECRET": "webhook_secret",
    "PORTAL_MEDIA_DIR": "media_dir",
}


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Settings:
    """
    Load configuration from YAML file

    Args:
        config_path: Path to config file

    Returns:
        Settings object with environment overrides applied

    Raises:
        FileNotFoundError: If config file not found
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}

    return Settings(**apply_env_overrides(data))


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load settings for the running service

    Uses PORTAL_CONFIG when set. The default path is optional: when it is
    missing, built-in defaults (plus environment overrides) are used.
    """
    explicit = config_path or os.environ.get("PORTAL_CONFIG")
    if explicit:
        return load_config(explicit)

    if Path(DEFAULT_CONFIG_PATH).exists():
        return load_config(DEFAULT_CONFIG_PATH)

    logger.info(f"No config at {DEFAULT_CONFIG_PATH}, using defaults")
    return Settings(**apply_env_overrides({}))


def apply_env_overrides(data: dict) -> dict:
    merged = dict(data)
    for env_name, field in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            merged[field] = value
    return merged
