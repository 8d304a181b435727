"""
Prometheus-compatible metrics for observability.

Tracks marketplace activity:
- Thread messages and lead transitions
- Review submissions
- Billing checkout sessions and webhook events

Usage:
    from vendorhub.lib.metrics import get_metrics_collector

    metrics = get_metrics_collector()
    metrics.increment_messages(automated=False)
    metrics.increment_transitions(from_status="pending", to_status="accepted")

    # Export for Prometheus
    prometheus_output = metrics.export_prometheus()
"""

from typing import Dict, Tuple
from threading import Lock


_HELP = {
    "thread_messages_sent_total": "Messages appended to lead threads",
    "thread_transitions_total": "Lead status transitions",
    "reviews_submitted_total": "Reviews created",
    "appointments_total": "Appointment requests and status changes",
    "billing_checkout_sessions_total": "Checkout session creation attempts",
    "billing_webhook_events_total": "Processed payment webhook events",
}


class MetricsCollector:
    """
    Prometheus-style counter registry.

    Counters:
    - thread_messages_sent_total (labels: automated)
    - thread_transitions_total (labels: from_status, to_status)
    - reviews_submitted_total
    - billing_checkout_sessions_total (labels: outcome)
    - billing_webhook_events_total (labels: event_type, outcome)

    Thread-safe for concurrent increments.
    """

    def __init__(self):
        self._lock = Lock()

        # Counters: key = (metric_name, labels_tuple), value = count
        self._counters: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], int] = {}

    def _get_counter_key(self, metric_name: str, labels: Dict[str, str]) -> Tuple[str, Tuple[Tuple[str, str], ...]]:
        """Generate unique key for counter with sorted labels."""
        return (metric_name, tuple(sorted(labels.items())))

    def _increment(self, metric_name: str, labels: Dict[str, str], amount: int = 1):
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def get_value(self, metric_name: str, **labels: str) -> int:
        """Get current value of counter."""
        key = self._get_counter_key(metric_name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    # ===== Thread Metrics =====

    def increment_messages(self, automated: bool = False, amount: int = 1):
        self._increment(
            "thread_messages_sent_total",
            {"automated": "true" if automated else "false"},
            amount,
        )

    def increment_transitions(self, from_status: str, to_status: str, amount: int = 1):
        self._increment(
            "thread_transitions_total",
            {"from_status": from_status.lower(), "to_status": to_status.lower()},
            amount,
        )

    # ===== Review Metrics =====

    def increment_reviews(self, amount: int = 1):
        self._increment("reviews_submitted_total", {}, amount)

    # ===== Appointment Metrics =====

    def increment_appointments(self, status: str, amount: int = 1):
        self._increment("appointments_total", {"status": status.lower()}, amount)

    # ===== Billing Metrics =====

    def increment_checkout_sessions(self, outcome: str, amount: int = 1):
        self._increment("billing_checkout_sessions_total", {"outcome": outcome.lower()}, amount)

    def increment_webhook_events(self, event_type: str, outcome: str, amount: int = 1):
        """
        Count a webhook delivery.

        Args:
            event_type: Processor event type (e.g. customer.subscription.updated)
            outcome: applied, duplicate, stale, ignored, rejected
        """
        self._increment(
            "billing_webhook_events_total",
            {"event_type": event_type, "outcome": outcome.lower()},
            amount,
        )

    # ===== Export =====

    def export_prometheus(self) -> str:
        """
        Render all counters in Prometheus text exposition format.

        Returns:
            Text body suitable for a /metrics scrape
        """
        with self._lock:
            snapshot = dict(self._counters)

        lines = []
        seen = set()
        for (metric_name, labels), value in sorted(snapshot.items()):
            if metric_name not in seen:
                seen.add(metric_name)
                lines.append(f"# HELP {metric_name} {_HELP.get(metric_name, metric_name)}")
                lines.append(f"# TYPE {metric_name} counter")
            if labels:
                label_str = ",".join(f'{k}="{v}"' for k, v in labels)
                lines.append(f"{metric_name}{{{label_str}}} {value}")
            else:
                lines.append(f"{metric_name} {value}")

        return "\n".join(lines) + ("\n" if lines else "")

    def reset(self):
        """Clear all counters (tests only)."""
        with self._lock:
            self._counters.clear()


# Singleton instance
_metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the process-wide metrics collector."""
    return _metrics_collector
