"""Metric registry and the realtime chat metric definitions."""

from . import metrics, registry
from .registry import MetricsRegistry

__all__ = ["metrics", "registry", "MetricsRegistry"]
