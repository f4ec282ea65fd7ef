"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers, later layers overriding earlier ones:

    1. config/config.yaml  -- static defaults checked into the repo
    2. .env file           -- local developer overrides (not committed)
    3. Environment vars    -- set at deploy time

:func:`load_config` reads the YAML file first, then deep-merges the
values derived from :class:`~albumlog.config.settings.Settings` on top.
"""

from pathlib import Path

import yaml

from albumlog.config.settings import Settings
from albumlog.utils.errors import ConfigurationError

DEFAULT_CONFIG: dict = {
    "cache": {
        "entity_ttl_seconds": 86400,
        "search_ttl_seconds": 14400,
        "cover_art_ttl_seconds": 604800,
    },
    "rate_limit": {
        "musicbrainz": {
            "burst_limit": 5,
            "window_seconds": 1.0,
            "min_interval_seconds": 0.1,
        },
    },
    "search": {
        "default_limit": 50,
        "max_limit": 50,
        "upstream_limit": 10,
    },
    "cover_art": {
        "max_concurrency": 5,
    },
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file means
              built-in defaults only.
        settings: Pre-built settings; constructed from the environment
                  when omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the YAML is unparseable or not a mapping.
    """
    config = _copy(DEFAULT_CONFIG)

    config_path = Path(path)
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse {config_path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
        _deep_merge(config, yaml_config)

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "kv_store": {
            "backend": settings.kv_backend,
            "redis_url": settings.redis_url,
        },
        "music_db": {
            "user_agent": settings.user_agent(),
        },
        "artwork": {
            "dir": settings.artwork_dir,
            "public_prefix": settings.artwork_public_prefix,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(config, env_overrides)
    return config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _copy(data: dict) -> dict:
    return {k: _copy(v) if isinstance(v, dict) else v for k, v in data.items()}
