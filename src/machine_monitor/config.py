"""
Client configuration.

Values come from defaults, then an optional YAML file, then environment
variables, each layer overriding the previous one.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://cnc-app-backend.azurewebsites.net"
DEFAULT_CONFIG_PATH = "~/.machine_monitor/config.yaml"
DEFAULT_TOKEN_PATH = "~/.machine_monitor/session.db"

ENV_PREFIX = "MACHINE_MONITOR_"


@dataclass(frozen=True)
class Settings:
    """Connection and persistence settings for the client."""

    api_url: str = DEFAULT_API_URL
    timeout: float = 30.0
    token_path: str = DEFAULT_TOKEN_PATH
    log_level: str = "WARNING"

    @property
    def token_file(self) -> Path:
        return Path(self.token_path).expanduser()

    @classmethod
    def load(cls, path: str | Path | None = None, env: dict[str, str] | None = None) -> Settings:
        """Build settings from the YAML file (if present) and the environment."""
        settings = cls()

        config_path = Path(path or DEFAULT_CONFIG_PATH).expanduser()
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Config file {config_path} must contain a mapping")
            settings = settings._merge(data)
            logger.debug("Loaded config from %s", config_path)

        env = os.environ if env is None else env
        overrides = {}
        for f in fields(cls):
            value = env.get(f"{ENV_PREFIX}{f.name.upper()}")
            if value is not None:
                overrides[f.name] = value
        return settings._merge(overrides)

    def _merge(self, data: dict[str, Any]) -> Settings:
        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.debug("Ignoring unknown config key %r", key)
                continue
            changes[key] = float(value) if key == "timeout" else str(value)
        if "api_url" in changes:
            changes["api_url"] = changes["api_url"].rstrip("/")
        return replace(self, **changes)
