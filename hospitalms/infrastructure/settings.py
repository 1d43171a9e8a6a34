"""Application Settings.

Combines the database configuration from the configuration manager with the
API, logging and upload settings read from ``HMS_*`` environment variables.
"""

import os
from typing import Optional

from hospitalms.infrastructure.config_manager import (
    ENV_PREFIX,
    ConfigManager,
    DatabaseConfig,
)

APP_NAME = "Hospital Management System"
APP_VERSION = "1.0.0"

DEFAULT_API_URL = "http://localhost:5000"
DEFAULT_PORT = 5000
DEFAULT_UPLOAD_CHUNK_SIZE = 500
DEFAULT_UPLOAD_TIMEOUT = 30.0
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


class Settings:
    """Application settings loaded from the environment.

    Security Impact:
        - Database credentials stay inside DatabaseConfig as SecretStr
        - Settings never log their values
    """

    def __init__(self):
        ConfigManager.load_env_file()

        self._db_config: Optional[DatabaseConfig] = None
        self._config_manager: Optional[ConfigManager] = None

        self.app_name = _env("APP_NAME", APP_NAME)
        self.version = APP_VERSION
        self.log_level = _env("LOG_LEVEL", "INFO").upper()
        self.json_logs = _env("JSON_LOGS", "false").lower() == "true"

        self.api_url = _env("API_URL", DEFAULT_API_URL).rstrip("/")
        self.port = int(_env("PORT", str(DEFAULT_PORT)))
        self.cors_origins = [
            origin.strip()
            for origin in _env("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
            if origin.strip()
        ]

        self.upload_chunk_size = int(_env("UPLOAD_CHUNK_SIZE", str(DEFAULT_UPLOAD_CHUNK_SIZE)))
        self.upload_timeout = float(_env("UPLOAD_TIMEOUT", str(DEFAULT_UPLOAD_TIMEOUT)))

    @property
    def config_manager(self) -> ConfigManager:
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def db_config(self) -> DatabaseConfig:
        """Database configuration, loaded lazily on first access."""
        if self._db_config is None:
            self._db_config = self.config_manager.get_database_config()
        return self._db_config


def get_settings() -> Settings:
    """Fresh settings read from the current environment."""
    return Settings()
