"""Ticket lifecycle metrics and their Prometheus rendering."""

from .exporters import PrometheusExporter
from .registry import CounterMetric, DistributionMetric, MetricsRegistry

TICKET_COUNTERS: dict[str, tuple[str, tuple[str, ...]]] = {
    "ticket_transitions_total": ("Accepted ticket transitions by kind.", ("kind",)),
    "ticket_transition_rejections_total": ("Rejected ticket transitions by error type.", ("reason",)),
    "ticket_notifications_total": ("Notifications generated by ticket transitions.", ("kind",)),
}
TICKET_DISTRIBUTIONS: dict[str, str] = {
    "ticket_transition_duration_seconds": "Time spent validating a transition and building its records.",
}

metrics_registry = MetricsRegistry()


def register_default_metrics(registry: MetricsRegistry | None = None) -> MetricsRegistry:
    """Create the ticket metrics in ``registry`` so they are exported before the first sample."""

    target = registry or metrics_registry
    for name, (description, label_names) in TICKET_COUNTERS.items():
        target.counter(name, description=description, label_names=label_names)
    for name, description in TICKET_DISTRIBUTIONS.items():
        target.distribution(name, description=description)
    return target


register_default_metrics()

__all__ = [
    "CounterMetric",
    "DistributionMetric",
    "MetricsRegistry",
    "PrometheusExporter",
    "TICKET_COUNTERS",
    "TICKET_DISTRIBUTIONS",
    "metrics_registry",
    "register_default_metrics",
]
