from __future__ import annotations

from .registry import CounterMetric, LabelValues, Metric, MetricsRegistry


def _label_text(metric: Metric, values: LabelValues) -> str:
    if not values:
        return ""
    pairs = ",".join(f'{name}="{value}"' for name, value in zip(metric.label_names, values))
    return "{" + pairs + "}"


class PrometheusExporter:
    """Render a registry in the Prometheus text exposition format."""

    content_type = "text/plain; version=0.0.4; charset=utf-8"

    def __init__(self, registry: MetricsRegistry) -> None:
        self.registry = registry

    def samples(self, metric: Metric) -> list[str]:
        lines = []
        for values, sample in sorted(metric.snapshot().items()):
            labels = _label_text(metric, values)
            if isinstance(metric, CounterMetric):
                lines.append(f"{metric.name}{labels} {sample['value']}")
            else:
                lines.append(f"{metric.name}_count{labels} {sample['count']}")
                lines.append(f"{metric.name}_sum{labels} {sample['sum']}")
        return lines

    def build_payload(self) -> str:
        lines: list[str] = []
        for metric in sorted(self.registry.metrics(), key=lambda item: item.name):
            lines.append(f"# HELP {metric.name} {metric.description}")
            lines.append(f"# TYPE {metric.name} {metric.kind}")
            lines.extend(self.samples(metric))
        return "\n".join(lines) + "\n"
