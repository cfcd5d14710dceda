"""
Structured Logging for the Metrics Engine

Production-grade logging with JSON structured logs, correlation IDs,
engine-specific log fields, sensitive data masking, and log sampling
for high-frequency ingestion.
"""

import json
import logging
import re
import sys
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from opentelemetry import trace

from ..config import LoggingConfig

# Context variable for correlation tracking
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Engine fields lifted out of ``extra`` into their own JSON section
ENGINE_FIELDS = ("category", "metric_name", "alert_id", "operation_type")


@dataclass
class LogSamplingConfig:
    """Configuration for log sampling."""

    # High frequency operations sampling
    ingest_sample_rate: float = 0.01  # Sample 1% of ingest debug logs
    cache_sample_rate: float = 0.05  # Sample 5% of cache hit/miss logs

    # Lifecycle operations (never sampled)
    critical_operations: set[str] = field(
        default_factory=lambda: {
            "alert_raised",
            "alert_resolved",
            "health_transition",
            "sweep_failure",
            "persistence_failure",
        }
    )

    # Sampling thresholds by log level
    level_sample_rates: dict[str, float] = field(
        default_factory=lambda: {
            "DEBUG": 1.0,
            "INFO": 1.0,
            "WARNING": 1.0,
            "ERROR": 1.0,
            "CRITICAL": 1.0,
        }
    )


@dataclass
class SensitiveDataConfig:
    """Configuration for sensitive data masking."""

    # API keys and secrets
    api_key_patterns: list[str] = field(
        default_factory=lambda: [
            r"api[_-]?key",
            r"secret[_-]?key",
            r"access[_-]?token",
            r"bearer[_-]?token",
            r"authorization",
            r"x-api-key",
        ]
    )

    # Personal data that producers sometimes attach as metric metadata
    personal_patterns: list[str] = field(
        default_factory=lambda: [
            r"e[_-]?mail",
            r"phone[_-]?number",
            r"ip[_-]?address",
        ]
    )

    # Replacement text
    mask_replacement: str = "***MASKED***"

    # Fields to completely exclude from logs
    excluded_fields: set[str] = field(
        default_factory=lambda: {"password", "passwd", "secret", "private_key", "token"}
    )

    @property
    def all_patterns(self) -> list[str]:
        return self.api_key_patterns + self.personal_patterns


class EngineLogRecord(logging.LogRecord):
    """Enhanced log record with engine-specific fields."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)

        self.correlation_id = correlation_id_var.get()

        # Add tracing context
        span = trace.get_current_span()
        if span.is_recording():
            span_context = span.get_span_context()
            self.trace_id = format(span_context.trace_id, "032x") if span_context.trace_id else None
            self.span_id = format(span_context.span_id, "016x") if span_context.span_id else None
        else:
            self.trace_id = None
            self.span_id = None

        # Engine fields arrive through ``extra``; Logger.makeRecord refuses to
        # overwrite attributes set here, so they are not initialised


class SensitiveDataMasker:
    """Masks sensitive data in log messages and extra fields."""

    def __init__(self, config: SensitiveDataConfig) -> None:
        self.config = config
        self._compiled_patterns = self._compile_patterns()
        self._field_patterns = [re.compile(p, re.IGNORECASE) for p in config.all_patterns]

    def _compile_patterns(self) -> list[re.Pattern[str]]:
        """Compile all sensitive data patterns."""
        compiled = []
        for pattern in self.config.all_patterns:
            try:
                # Match key:value or key=value pairs
                full_pattern = rf'("{pattern}":\s*"[^"]*"|{pattern}=\S+|{pattern}:\s*\S+)'
                compiled.append(re.compile(full_pattern, re.IGNORECASE))
            except re.error as e:
                logging.getLogger(__name__).warning(f"Invalid regex pattern '{pattern}': {e}")

        return compiled

    def mask_message(self, message: str) -> str:
        """Mask sensitive data in log message."""
        masked_message = message

        for pattern in self._compiled_patterns:
            masked_message = pattern.sub(lambda m: self._replace_value(m.group(0)), masked_message)

        return masked_message

    def mask_extra_fields(self, extra: dict[str, Any]) -> dict[str, Any]:
        """Mask sensitive data in extra log fields, recursing into dicts."""
        if not extra:
            return extra

        masked_extra: dict[str, Any] = {}

        for key, value in extra.items():
            if key.lower() in self.config.excluded_fields:
                continue

            if self._is_sensitive_field(key):
                masked_extra[key] = self.config.mask_replacement
            elif isinstance(value, str):
                masked_extra[key] = self.mask_message(value)
            elif isinstance(value, dict):
                masked_extra[key] = self.mask_extra_fields(value)
            else:
                masked_extra[key] = value

        return masked_extra

    def _is_sensitive_field(self, field_name: str) -> bool:
        return any(pattern.search(field_name) for pattern in self._field_patterns)

    def _replace_value(self, match: str) -> str:
        """Replace matched value with mask."""
        if ":" in match:
            key_part = match.split(":", 1)[0]
            return f'{key_part}: "{self.config.mask_replacement}"'
        elif "=" in match:
            key_part = match.split("=", 1)[0]
            return f"{key_part}={self.config.mask_replacement}"
        else:
            return self.config.mask_replacement


class LogSampler:
    """Implements log sampling for high-frequency operations."""

    def __init__(self, config: LogSamplingConfig) -> None:
        self.config = config
        self._counters: dict[str, int] = {}

    def should_log(self, record: logging.LogRecord) -> bool:
        """Determine if a log record should be emitted."""
        operation_type = getattr(record, "operation_type", None) or ""
        if operation_type in self.config.critical_operations:
            return True

        # Never sample ERROR and above
        if record.levelno >= logging.ERROR:
            return True

        level_name = record.levelname
        level_sample_rate = self.config.level_sample_rates.get(level_name, 1.0)
        if level_sample_rate < 1.0:
            return self._should_sample(f"{level_name}:{operation_type}", level_sample_rate)

        if operation_type == "ingest":
            return self._should_sample("ingest", self.config.ingest_sample_rate)
        elif operation_type == "cache":
            return self._should_sample("cache", self.config.cache_sample_rate)

        return True

    def _should_sample(self, operation: str, sample_rate: float) -> bool:
        """Keep every ``1 / sample_rate``-th record of an operation."""
        if sample_rate >= 1.0:
            return True
        if sample_rate <= 0.0:
            return False

        count = self._counters.get(operation, 0) + 1
        self._counters[operation] = count

        return (count % int(1 / sample_rate)) == 0


class EngineJSONFormatter(logging.Formatter):
    """JSON formatter for structured engine logs."""

    STANDARD_FIELDS = frozenset(
        {
            "name",
            "msg",
            "args",
            "levelname",
            "levelno",
            "pathname",
            "filename",
            "module",
            "exc_info",
            "exc_text",
            "stack_info",
            "lineno",
            "funcName",
            "created",
            "msecs",
            "relativeCreated",
            "thread",
            "threadName",
            "processName",
            "process",
            "taskName",
            "message",
            "correlation_id",
            "trace_id",
            "span_id",
            *ENGINE_FIELDS,
        }
    )

    def __init__(
        self,
        sensitive_data_config: SensitiveDataConfig | None = None,
        include_extra: bool = True,
        sort_keys: bool = True,
    ):
        super().__init__()
        self.include_extra = include_extra
        self.sort_keys = sort_keys
        self.masker = SensitiveDataMasker(sensitive_data_config or SensitiveDataConfig())

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self.masker.mask_message(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.thread,
            "process": record.process,
        }

        for attr in ("correlation_id", "trace_id", "span_id"):
            value = getattr(record, attr, None)
            if value:
                log_entry[attr] = value

        engine_fields = {
            attr: getattr(record, attr)
            for attr in ENGINE_FIELDS
            if getattr(record, attr, None) is not None
        }
        if engine_fields:
            log_entry["engine"] = engine_fields

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if self.include_extra:
            extra = {
                key: self._serialize_value(value)
                for key, value in record.__dict__.items()
                if key not in self.STANDARD_FIELDS and not key.startswith("_")
            }
            if extra:
                log_entry["extra"] = self.masker.mask_extra_fields(extra)

        return json.dumps(log_entry, sort_keys=self.sort_keys, default=self._serialize_value)

    def _serialize_value(self, value: Any) -> Any:
        """Serialize complex values for JSON output."""
        if isinstance(value, Enum):
            return value.value
        elif isinstance(value, datetime):
            return value.isoformat()
        elif isinstance(value, (set, frozenset)):
            return list(value)
        elif hasattr(value, "to_dict"):
            return value.to_dict()
        elif hasattr(value, "__dict__"):
            return str(value)
        return value


class EngineLogFilter(logging.Filter):
    """Filter that enriches records and applies sampling."""

    def __init__(self, sampler: LogSampler | None = None) -> None:
        super().__init__()
        self.sampler = sampler

    def filter(self, record: logging.LogRecord) -> bool:
        # Records created before the factory was installed lack these
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id_var.get()

        if self.sampler and not self.sampler.should_log(record):
            return False

        return True


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def get_correlation_id() -> str | None:
    """Get current correlation ID."""
    return correlation_id_var.get()


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Generator[str, None, None]:
    """Context manager for correlation ID scope."""
    if correlation_id is None:
        correlation_id = generate_correlation_id()

    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)


def mask_sensitive_data(
    data: str | dict[str, Any], config: SensitiveDataConfig | None = None
) -> str | dict[str, Any]:
    """Utility function to mask sensitive data."""
    masker = SensitiveDataMasker(config or SensitiveDataConfig())

    if isinstance(data, str):
        return masker.mask_message(data)
    return masker.mask_extra_fields(data)


def setup_structured_logging(
    level: str = "INFO",
    format_type: str = "json",
    enable_sampling: bool = True,
    sampling_config: LogSamplingConfig | None = None,
    sensitive_data_config: SensitiveDataConfig | None = None,
    log_file: str | None = None,
) -> None:
    """
    Setup structured logging for the metrics engine.

    Args:
        level: Logging level
        format_type: Formatter type ('json' or 'text')
        enable_sampling: Whether to enable log sampling
        sampling_config: Log sampling configuration
        sensitive_data_config: Sensitive data masking configuration
        log_file: Optional log file path
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter: EngineJSONFormatter | logging.Formatter
    if format_type == "json":
        formatter = EngineJSONFormatter(sensitive_data_config)
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    sampler = LogSampler(sampling_config or LogSamplingConfig()) if enable_sampling else None
    log_filter = EngineLogFilter(sampler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(log_filter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(log_filter)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(getattr(logging, level.upper()))

    logging.setLogRecordFactory(EngineLogRecord)

    logging.info("Structured logging configured successfully")


def setup_logging_from_config(config: LoggingConfig, **kwargs: Any) -> None:
    """
    Setup structured logging from the ``LOG_LEVEL``/``LOG_FORMAT`` settings.

    Args:
        config: Logging section of the engine configuration
        **kwargs: Passed through to ``setup_structured_logging``
    """
    setup_structured_logging(level=config.level, format_type=config.format_type, **kwargs)
