"""
Configuration Management - Loads engine settings from the environment
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()


def _int_env(name: str, default: int, minimum: int = 0) -> int:
    """Read an integer setting, rejecting malformed or out-of-range values."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _float_env(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass
class StoreConfig:
    """Series storage settings"""

    series_capacity: int = 1000
    retention_seconds: int = 604800  # 7 days, 0 disables retention cleanup
    alert_history_size: int = 1000

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Load store config from environment variables"""
        return cls(
            series_capacity=_int_env("METRICS_SERIES_CAPACITY", 1000, minimum=1),
            retention_seconds=_int_env("METRICS_RETENTION_SECONDS", 604800),
            alert_history_size=_int_env("METRICS_ALERT_HISTORY_SIZE", 1000),
        )


@dataclass
class CacheConfig:
    """Aggregation cache settings"""

    default_ttl: float = 60.0
    max_entries: int = 10000  # 0 means unbounded

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Load cache config from environment variables"""
        return cls(
            default_ttl=_float_env("METRICS_CACHE_DEFAULT_TTL", 60.0),
            max_entries=_int_env("METRICS_CACHE_MAX_ENTRIES", 10000),
        )


@dataclass
class SchedulerConfig:
    """Health sweep scheduler settings"""

    interval_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        """Load scheduler config from environment variables"""
        interval = _float_env("METRICS_SCHEDULER_INTERVAL", 60.0)
        if interval <= 0:
            raise ValueError(f"METRICS_SCHEDULER_INTERVAL must be positive, got {interval}")
        return cls(interval_seconds=interval)


@dataclass
class HealthConfig:
    """Health scoring settings"""

    window_seconds: int = 900
    stale_after_seconds: int = 300

    @classmethod
    def from_env(cls) -> "HealthConfig":
        """Load health config from environment variables"""
        return cls(
            window_seconds=_int_env("METRICS_HEALTH_WINDOW_SECONDS", 900, minimum=1),
            stale_after_seconds=_int_env("METRICS_STALE_AFTER_SECONDS", 300, minimum=1),
        )


@dataclass
class LoggingConfig:
    """Logging settings"""

    level: str = "INFO"
    format_type: str = "json"

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        """Load logging config from environment variables"""
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"LOG_LEVEL must be a logging level name, got {level!r}")
        format_type = os.getenv("LOG_FORMAT", "json").lower()
        if format_type not in ("json", "text"):
            raise ValueError(f"LOG_FORMAT must be 'json' or 'text', got {format_type!r}")
        return cls(level=level, format_type=format_type)


@dataclass
class EngineConfig:
    """Metrics engine configuration"""

    store: StoreConfig = field(default_factory=StoreConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load all configuration from environment variables"""
        config = cls(
            store=StoreConfig.from_env(),
            cache=CacheConfig.from_env(),
            scheduler=SchedulerConfig.from_env(),
            health=HealthConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )
        logger.debug(f"Engine configuration loaded: {config}")
        return config
