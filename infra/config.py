"""
Configuration Manager
---------------------
Client configuration from YAML with environment variable overrides.

Rules:
- Secrets (client secret, password) never in the YAML file
- Secrets come from environment variables only
- Environment overrides file values: MANGADEX_<SECTION>_<KEY>
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional
import logging
import os

import yaml

ENV_PREFIX = "MANGADEX"

DEFAULT_API_BASE_URL = "https://api.mangadex.org"
DEFAULT_TOKEN_URL = "https://auth.mangadex.org/realms/mangadex/protocol/openid-connect/token"
DEFAULT_UPLOADS_BASE_URL = "https://uploads.mangadex.org"
DEFAULT_SITE_BASE_URL = "https://mangadex.org"

logger = logging.getLogger("mangadex.infra.config")

# Secret field name -> environment variable
SECRET_ENV_VARS: Dict[str, str] = {
    "client_secret": f"{ENV_PREFIX}_CLIENT_SECRET",
    "password": f"{ENV_PREFIX}_PASSWORD",
}


@dataclass
class ClientConfig:
    """Configuration for a MangaDex client instance."""
    client_id: str = ""
    client_secret: str = field(default="", repr=False)
    grant_type: str = "password"
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    request_interval_ms: int = 500        # Global minimum spacing between request starts
    timeout_seconds: float = 30.0
    token_safety_margin_seconds: int = 300
    page_size: int = 100
    user_agent: str = "MangaDexClient/1.0"

    api_base_url: str = DEFAULT_API_BASE_URL
    token_url: str = DEFAULT_TOKEN_URL
    uploads_base_url: str = DEFAULT_UPLOADS_BASE_URL
    site_base_url: str = DEFAULT_SITE_BASE_URL

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientConfig":
        """
        Build from a flat mapping, ignoring unknown keys and coercing numbers.

        A value that cannot be coerced to the field type is rejected with a
        warning and the default is kept.
        """
        known = {f.name: f for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            default = known[key].default
            try:
                if isinstance(default, int):
                    kwargs[key] = int(value)
                elif isinstance(default, float):
                    kwargs[key] = float(value)
                else:
                    kwargs[key] = str(value)
            except (TypeError, ValueError):
                logger.warning(f"Rejected invalid value {value!r} for '{key}'; keeping default {default!r}")
        return cls(**kwargs)


class ConfigManager:
    """
    Centralized configuration management.
    Loads configuration from YAML with environment variable overrides.

    Expected layout:

        auth:
          client_id: personal-client-...
          grant_type: password
          username: reader
        http:
          request_interval_ms: 500
          timeout_seconds: 30
    """

    SECTIONS = ("auth", "http", "urls")

    def __init__(self, config_path: Optional[str] = None):
        self._config_path = Path(config_path) if config_path else None
        self._config: Dict[str, Any] = {}
        self._logger = logging.getLogger("mangadex.infra.config")
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file."""
        if self._config_path is None:
            return
        if self._config_path.exists():
            with open(self._config_path, "r") as f:
                self._config = yaml.safe_load(f) or {}
            self._logger.info(f"Loaded config from {self._config_path}")
        else:
            self._logger.warning(f"Config file not found: {self._config_path}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.
        Supports dot notation: 'section.key'
        Environment variables override file config.
        """
        env_key = f"{ENV_PREFIX}_{key.upper().replace('.', '_')}"
        env_value = os.getenv(env_key)
        if env_value is not None:
            return env_value

        value: Any = self._config
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default
        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get an entire configuration section."""
        return self._config.get(section, {}) or {}

    def client_config(self) -> ClientConfig:
        """Resolve a ClientConfig from file sections, env overrides and secrets."""
        flat: Dict[str, Any] = {}
        for section in self.SECTIONS:
            for key in self.get_section(section):
                if key in SECRET_ENV_VARS:
                    self._logger.warning(
                        f"Ignoring secret '{key}' found in config file; use {SECRET_ENV_VARS[key]}"
                    )
                    continue
                flat[key] = self.get(f"{section}.{key}")

        # Unsectioned env overrides, e.g. MANGADEX_CLIENT_ID
        for f in fields(ClientConfig):
            if f.name in SECRET_ENV_VARS:
                continue
            env_value = os.getenv(f"{ENV_PREFIX}_{f.name.upper()}")
            if env_value is not None:
                flat[f.name] = env_value

        for name, env_var in SECRET_ENV_VARS.items():
            flat[name] = os.getenv(env_var)

        return ClientConfig.from_dict(flat)
