"""
Domain-level exceptions for the metrics engine.

This module defines exceptions raised by domain entities and services and
surfaced unchanged through the engine facade. Every failure path of the engine
raises one of these; nothing is reported through sentinel return values.
"""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class InvalidMetricException(DomainException):
    """
    Raised when an observation is malformed.

    Invalid metrics are rejected outright and must not be retried unchanged.
    """

    def __init__(self, reason: str, field: str | None = None, value: Any = None) -> None:
        message = f"Invalid metric: {reason}"
        super().__init__(message, details={"field": field, "value": repr(value), "reason": reason})
        self.reason = reason
        self.field = field
        self.value = value


class InvalidThresholdException(DomainException):
    """Raised when a warning/critical threshold pair is unusable."""

    def __init__(self, category: str, name: str, warning: Any, critical: Any, reason: str) -> None:
        message = f"Invalid threshold for {category}:{name}: {reason}"
        super().__init__(
            message,
            details={
                "category": category,
                "name": name,
                "warning": warning,
                "critical": critical,
            },
        )
        self.reason = reason


class NotFoundException(DomainException):
    """Base exception for lookups of unknown alerts or series."""

    pass


class AlertNotFoundException(NotFoundException):
    """Raised when an alert id is unknown or the alert is already resolved."""

    def __init__(self, alert_id: str, already_resolved: bool = False) -> None:
        if already_resolved:
            message = f"Alert {alert_id} is already resolved"
        else:
            message = f"Alert {alert_id} not found"
        super().__init__(
            message, details={"alert_id": alert_id, "already_resolved": already_resolved}
        )
        self.alert_id = alert_id
        self.already_resolved = already_resolved


class SeriesNotFoundException(NotFoundException):
    """Raised when a series key or a category has never received data."""

    def __init__(self, category: str, name: str | None = None) -> None:
        if name is None:
            message = f"No series recorded for category {category}"
        else:
            message = f"Series {category}:{name} not found"
        super().__init__(message, details={"category": category, "name": name})
        self.category = category
        self.name = name


class ComputeFailureException(DomainException):
    """
    Raised when an aggregate computation fails.

    Every caller waiting on the same in-flight computation receives its own
    instance chained to the original error; the failed result is never cached.
    """

    def __init__(self, key: str, error: BaseException) -> None:
        message = f"Computation for {key} failed: {type(error).__name__}: {error}"
        super().__init__(message, details={"key": key, "error_type": type(error).__name__})
        self.key = key
        self.error = error
