"""
config.py
---------
Centralised configuration management for the MySQL Schema Sync tool.

Loads settings from environment variables (with .env file support via
python-dotenv). Provides typed settings as frozen dataclasses so
configuration is immutable at runtime.

Design Decision:
    Using a dataclass with class-level defaults means the tool works
    "out of the box" against a local server, while still allowing
    environment-based overrides for production deployments.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection settings."""
    host: str = field(default_factory=lambda: os.getenv("DB_HOST", "localhost"))
    port: int = field(default_factory=lambda: int(os.getenv("DB_PORT", "3306")))
    user: str = field(default_factory=lambda: os.getenv("DB_USER", "root"))
    password: str = field(default_factory=lambda: os.getenv("DB_PASSWORD", ""))
    database: str | None = field(default_factory=lambda: os.getenv("DB_NAME"))
    charset: str = field(default_factory=lambda: os.getenv("DB_CHARSET", "utf8mb4"))
    collation: str = field(
        default_factory=lambda: os.getenv("DB_COLLATION", "utf8mb4_unicode_ci")
    )
    connect_timeout: int = field(
        default_factory=lambda: int(os.getenv("DB_CONNECT_TIMEOUT", "10"))
    )
    max_retries: int = field(
        default_factory=lambda: int(os.getenv("DB_MAX_RETRIES", "3"))
    )
    retry_delay: float = field(
        default_factory=lambda: float(os.getenv("DB_RETRY_DELAY", "1.0"))
    )


@dataclass(frozen=True)
class SyncConfig:
    """Schema synchronisation settings."""
    model_file: Path | None = field(
        default_factory=lambda: (
            Path(os.environ["MODEL_FILE"]) if os.getenv("MODEL_FILE") else None
        )
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper()
    )
    log_file: str | None = field(
        default_factory=lambda: os.getenv("LOG_FILE")  # None → log to stderr only
    )


@dataclass(frozen=True)
class AppConfig:
    """Root application configuration."""
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    app_name: str = "MySQL Schema Sync"
    app_version: str = "1.0.0"


def load_config() -> AppConfig:
    """
    Build and return the application configuration.

    Returns:
        AppConfig: Fully populated (and frozen) configuration object.

    Example::

        cfg = load_config()
        print(cfg.db.host)          # "localhost"
        print(cfg.sync.log_level)   # "INFO"
    """
    return AppConfig()


# Module-level singleton used throughout the application
CONFIG: AppConfig = load_config()


def get_log_level() -> int:
    """Convert string log level from config to logging module constant."""
    level = getattr(logging, CONFIG.sync.log_level, None)
    if not isinstance(level, int):
        return logging.INFO
    return level
