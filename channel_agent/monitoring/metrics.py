"""
Prometheus Metrics

Defines and exports metrics for the conversational agent.
"""

from contextlib import contextmanager
import time

import structlog
from prometheus_client import Counter, Histogram

logger = structlog.get_logger()

_metrics: "Metrics | None" = None


class Metrics:
    """
    Prometheus metrics for the conversational agent.

    Tracks:
    - Turn outcomes per channel
    - Confirmation-gate transitions
    - Classifier latency and fallbacks
    - RBAC bridge calls
    """

    def __init__(self):
        self.turns_total = Counter(
            "channel_agent_turns_total",
            "Inbound messages processed, by channel and outcome",
            ["channel", "outcome"],
        )

        self.turn_duration_seconds = Histogram(
            "channel_agent_turn_duration_seconds",
            "Wall time to process one inbound message",
            ["channel"],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
        )

        self.confirmation_transitions_total = Counter(
            "channel_agent_confirmation_transitions_total",
            "Pending-action state transitions",
            ["action", "transition"],
        )

        self.classifier_duration_seconds = Histogram(
            "channel_agent_classifier_duration_seconds",
            "Intent classifier latency",
            buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0],
        )

        self.classifier_fallbacks_total = Counter(
            "channel_agent_classifier_fallbacks_total",
            "Classifier calls that fell back to the unknown intent",
            ["reason"],
        )

        self.operation_calls_total = Counter(
            "channel_agent_operation_calls_total",
            "Operations executed through the RBAC bridge",
            ["operation", "outcome"],
        )

    def track_turn(self, channel: str, outcome: str) -> None:
        self.turns_total.labels(channel=channel, outcome=outcome).inc()

    @contextmanager
    def time_turn(self, channel: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.turn_duration_seconds.labels(channel=channel).observe(time.perf_counter() - start)

    def track_confirmation(self, action: str, transition: str) -> None:
        self.confirmation_transitions_total.labels(action=action, transition=transition).inc()

    def observe_classifier(self, seconds: float) -> None:
        self.classifier_duration_seconds.observe(seconds)

    def track_classifier_fallback(self, reason: str) -> None:
        self.classifier_fallbacks_total.labels(reason=reason).inc()

    def track_operation(self, operation: str, outcome: str) -> None:
        self.operation_calls_total.labels(operation=operation, outcome=outcome).inc()


def get_metrics() -> Metrics:
    """Get the process-wide metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = Metrics()
    return _metrics
