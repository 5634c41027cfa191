"""
Configuration management for timeledger.

Handles configuration with sensible defaults, an optional JSON file and
environment overrides. Loading never writes to disk.
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, asdict, field
import logging


@dataclass
class DatabaseConfig:
    """Database configuration."""

    url: str = "sqlite:///timeledger.db"
    echo: bool = False
    log_queries: bool = False  # Enable query timing logs


@dataclass
class ServerConfig:
    """Local API server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class CacheConfig:
    """Read cache configuration."""

    default_ttl_seconds: float = 5.0


@dataclass
class SyncConfig:
    """Remote sync configuration."""

    remote_url: Optional[str] = None  # None = offline-only
    remote_token: Optional[str] = None
    interval_seconds: float = 60.0
    timeout_secs: float = 10.0
    max_attempts: int = 3
    backoff_base_seconds: float = 0.5
    backoff_max_seconds: float = 10.0
    backoff_jitter_ratio: float = 0.2
    max_conflict_retries: int = 2
    circuit_failure_threshold: int = 5
    circuit_timeout_seconds: int = 60


@dataclass
class GCConfig:
    """Tombstone garbage collection configuration."""

    retention_days: int = 7
    require_pushed: bool = True  # Keep tombstones until the remote has seen them


@dataclass
class AppConfig:
    """Main application configuration."""

    app_name: str = "timeledger"
    version: str = "1.0.0"
    description: str = "Local-first personal time tracker"

    user_data_dir: Optional[str] = None
    enable_cors: bool = True
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://127.0.0.1:3000", "http://localhost:3000"]
    )

    # Logging
    debug: bool = False
    log_level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"


@dataclass
class TimeLedgerConfig:
    """Complete configuration for timeledger."""

    app: AppConfig = field(default_factory=AppConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    gc: GCConfig = field(default_factory=GCConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "app": asdict(self.app),
            "server": asdict(self.server),
            "database": asdict(self.database),
            "cache": asdict(self.cache),
            "sync": asdict(self.sync),
            "gc": asdict(self.gc),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeLedgerConfig":
        """Create from dictionary."""
        return cls(
            app=AppConfig(**data.get("app", {})),
            server=ServerConfig(**data.get("server", {})),
            database=DatabaseConfig(**data.get("database", {})),
            cache=CacheConfig(**data.get("cache", {})),
            sync=SyncConfig(**data.get("sync", {})),
            gc=GCConfig(**data.get("gc", {})),
        )


def _env_flag(name: str) -> Optional[bool]:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


class ConfigManager:
    """Manages configuration loading, saving, and environment overrides."""

    def __init__(self):
        self.config_file: Optional[Path] = None
        self.config: Optional[TimeLedgerConfig] = None

    def get_config_file_path(self) -> Path:
        """Get the path for the config file."""
        explicit = os.getenv("TIMELEDGER_CONFIG_FILE")
        if explicit:
            return Path(explicit)

        user_data_dir = os.getenv("TIMELEDGER_USER_DATA_DIR")
        config_dir = Path(user_data_dir) if user_data_dir else Path.cwd() / "data"
        return config_dir / "config.json"

    def apply_environment(self, config: TimeLedgerConfig) -> TimeLedgerConfig:
        """Apply TIMELEDGER_* environment overrides in place."""
        db_url = os.getenv("TIMELEDGER_DATABASE_URL")
        if db_url:
            config.database.url = db_url

        remote_url = os.getenv("TIMELEDGER_REMOTE_URL")
        if remote_url:
            config.sync.remote_url = remote_url

        remote_token = os.getenv("TIMELEDGER_REMOTE_TOKEN")
        if remote_token:
            config.sync.remote_token = remote_token

        user_data_dir = os.getenv("TIMELEDGER_USER_DATA_DIR")
        if user_data_dir:
            config.app.user_data_dir = user_data_dir

        log_dir = os.getenv("TIMELEDGER_LOG_DIR")
        if log_dir:
            config.app.log_dir = log_dir

        debug = _env_flag("TIMELEDGER_DEBUG")
        if debug is not None:
            config.app.debug = debug
            config.app.log_level = "DEBUG" if debug else config.app.log_level

        log_to_file = _env_flag("TIMELEDGER_LOG_TO_FILE")
        if log_to_file is not None:
            config.app.log_to_file = log_to_file

        ttl = os.getenv("TIMELEDGER_CACHE_TTL")
        if ttl:
            try:
                config.cache.default_ttl_seconds = float(ttl)
            except ValueError:
                logging.warning(f"Ignoring invalid TIMELEDGER_CACHE_TTL={ttl!r}")

        return config

    def load_config(self) -> TimeLedgerConfig:
        """Load configuration from file or create default."""
        self.config_file = self.get_config_file_path()

        config = TimeLedgerConfig()
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                config = TimeLedgerConfig.from_dict(data)
                logging.info(f"Loaded configuration from {self.config_file}")
            except (OSError, ValueError, TypeError) as e:
                logging.warning(f"Failed to load config from {self.config_file}: {e}")
                logging.info("Using default configuration")
                config = TimeLedgerConfig()

        self.config = self.apply_environment(config)
        return self.config

    def save_config(self, config: Optional[TimeLedgerConfig] = None) -> bool:
        """Save configuration to file."""
        if config is None:
            config = self.config

        if config is None:
            logging.error("No configuration to save")
            return False

        try:
            if self.config_file is None:
                self.config_file = self.get_config_file_path()

            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)

            logging.info(f"Saved configuration to {self.config_file}")
            return True

        except OSError as e:
            logging.error(f"Failed to save config to {self.config_file}: {e}")
            return False

    def get(self) -> TimeLedgerConfig:
        """Get the loaded configuration, loading it on first use."""
        if self.config is None:
            self.load_config()
        return self.config

    def validate_config(self) -> List[str]:
        """Validate configuration and return list of warnings/errors."""
        config = self.get()
        issues = []

        if config.cache.default_ttl_seconds <= 0:
            issues.append("cache.default_ttl_seconds must be positive")

        if config.gc.retention_days < 1:
            issues.append("gc.retention_days must be at least 1")

        if config.sync.remote_url and not config.sync.remote_url.startswith(
            ("http://", "https://")
        ):
            issues.append(f"sync.remote_url is not an http(s) URL: {config.sync.remote_url}")

        db_url = config.database.url
        if db_url.startswith("sqlite:///") and db_url != "sqlite:///:memory:":
            db_dir = Path(db_url.replace("sqlite:///", "")).parent
            if db_dir.exists() and not os.access(db_dir, os.W_OK):
                issues.append(f"Database directory is not writable: {db_dir}")

        return issues


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> TimeLedgerConfig:
    """Get the current configuration."""
    return config_manager.get()


def reload_config() -> TimeLedgerConfig:
    """Re-read the configuration file and environment."""
    return config_manager.load_config()
