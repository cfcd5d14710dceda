"""Interfaces implemented by the infrastructure layer."""

from .metrics_engine import IMetricsEngine

__all__ = ["IMetricsEngine"]
