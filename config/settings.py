"""
Configuration settings with environment variable loading.

Values come from the environment, optionally seeded from a .env file.
Variables already set in the environment take precedence.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class RemoteConfig:
    """Remote endpoint configuration."""
    url: str = "https://jsonplaceholder.typicode.com/posts"
    timeout_seconds: float = 10.0
    max_retries: int = 3
    snapshot_limit: Optional[int] = 5
    default_category: str = "Server"

    def __post_init__(self):
        if not self.url:
            raise ConfigurationError("QUOTESYNC_REMOTE_URL is required")
        if not self.url.startswith("https://"):
            raise ConfigurationError("QUOTESYNC_REMOTE_URL must use HTTPS")
        if self.timeout_seconds <= 0:
            raise ConfigurationError("QUOTESYNC_REMOTE_TIMEOUT must be positive")
        if self.max_retries < 0:
            raise ConfigurationError("QUOTESYNC_MAX_RETRIES cannot be negative")
        if self.snapshot_limit is not None and self.snapshot_limit <= 0:
            raise ConfigurationError("QUOTESYNC_SNAPSHOT_LIMIT must be positive")
        if not self.default_category.strip():
            raise ConfigurationError("QUOTESYNC_DEFAULT_CATEGORY cannot be empty")


@dataclass(frozen=True)
class SyncConfig:
    """Sync scheduling configuration."""
    poll_interval_seconds: float = 15.0

    def __post_init__(self):
        if self.poll_interval_seconds <= 0:
            raise ConfigurationError("QUOTESYNC_POLL_INTERVAL must be positive")


@dataclass(frozen=True)
class StorageConfig:
    """Persistent storage configuration."""
    database_path: Path = field(default_factory=lambda: Path("data/quotesync.db"))

    def __post_init__(self):
        object.__setattr__(self, 'database_path', Path(self.database_path))


@dataclass(frozen=True)
class Settings:
    """
    Application settings container.

    All configuration is loaded from environment variables.
    """
    remote: RemoteConfig
    sync: SyncConfig
    storage: StorageConfig
    log_level: str = "INFO"

    def __repr__(self) -> str:
        return (
            f"Settings(\n"
            f"  remote={self.remote},\n"
            f"  sync={self.sync},\n"
            f"  storage={self.storage}\n"
            f")"
        )


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Load settings from environment variables.

    Optionally loads from a .env file first.

    Args:
        env_file: Optional path to .env file

    Returns:
        Configured Settings instance

    Raises:
        ConfigurationError: If configuration is missing or invalid
    """
    if env_file and env_file.exists():
        _load_env_file(env_file)
    elif Path(".env").exists():
        _load_env_file(Path(".env"))

    try:
        limit = os.getenv("QUOTESYNC_SNAPSHOT_LIMIT", "5").strip()

        remote = RemoteConfig(
            url=os.getenv("QUOTESYNC_REMOTE_URL", RemoteConfig.url).rstrip("/"),
            timeout_seconds=float(os.getenv("QUOTESYNC_REMOTE_TIMEOUT", "10.0")),
            max_retries=int(os.getenv("QUOTESYNC_MAX_RETRIES", "3")),
            snapshot_limit=int(limit) if limit else None,
            default_category=os.getenv("QUOTESYNC_DEFAULT_CATEGORY", "Server"),
        )

        sync = SyncConfig(
            poll_interval_seconds=float(os.getenv("QUOTESYNC_POLL_INTERVAL", "15.0")),
        )

        storage = StorageConfig(
            database_path=Path(os.getenv("QUOTESYNC_DATABASE_PATH", "data/quotesync.db")),
        )

        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        settings = Settings(
            remote=remote,
            sync=sync,
            storage=storage,
            log_level=log_level,
        )

        logger.info("Configuration loaded successfully")
        logger.debug(f"Settings: {settings}")

        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {e}") from e


def _load_env_file(path: Path) -> None:
    """
    Load environment variables from a file.

    Simple .env parser that handles:
    - KEY=value
    - KEY="quoted value"
    - # comments
    - Empty lines
    """
    logger.debug(f"Loading environment from {path}")

    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                logger.warning(f"Invalid line {line_num} in {path}: no '=' found")
                continue

            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()

            if value.startswith('"') and value.endswith('"'):
                value = value[1:-1]
            elif value.startswith("'") and value.endswith("'"):
                value = value[1:-1]

            # Only set if not already defined (env vars take precedence)
            if key not in os.environ:
                os.environ[key] = value
