"""Monitoring module."""

from channel_agent.monitoring.metrics import Metrics, get_metrics

__all__ = ["Metrics", "get_metrics"]
