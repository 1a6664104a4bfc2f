from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from threading import Lock


@dataclass
class EndpointMetric:
    total_requests: int = 0
    total_duration_ms: float = 0.0
    error_count: int = 0

    def add(self, status_code: int, duration_ms: float) -> None:
        self.total_requests += 1
        self.total_duration_ms += duration_ms
        if status_code >= 400:
            self.error_count += 1

    @property
    def avg_duration_ms(self) -> float:
        return self.total_duration_ms / self.total_requests if self.total_requests else 0.0


class InMemoryRequestMetrics:
    """Contadores de requisições por rota e por clínica, mais eventos de webhook."""

    def __init__(self) -> None:
        self._metrics: dict[tuple[str, str], EndpointMetric] = {}
        self._company_metrics: dict[str, EndpointMetric] = {}
        self._webhook_events: Counter[str] = Counter()
        self._lock = Lock()

    def observe(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        duration_ms: float,
        company_id: str | None = None,
    ) -> None:
        with self._lock:
            self._metrics.setdefault((endpoint, method), EndpointMetric()).add(status_code, duration_ms)
            if company_id:
                self._company_metrics.setdefault(company_id, EndpointMetric()).add(status_code, duration_ms)

    def observe_webhook(self, event_type: str, outcome: str) -> None:
        with self._lock:
            self._webhook_events[f"{event_type}:{outcome}"] += 1

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {
                f"{method} {endpoint}": {
                    "total_requests": metric.total_requests,
                    "total_duration_ms": round(metric.total_duration_ms, 2),
                    "avg_duration_ms": round(metric.avg_duration_ms, 2),
                    "error_count": metric.error_count,
                }
                for (endpoint, method), metric in self._metrics.items()
            }

    def snapshot_per_company(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {
                company_id: {
                    "requests": metric.total_requests,
                    "errors": metric.error_count,
                    "avg_duration_ms": round(metric.avg_duration_ms, 2),
                }
                for company_id, metric in self._company_metrics.items()
            }

    def snapshot_webhooks(self) -> dict[str, int]:
        with self._lock:
            return dict(self._webhook_events)

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._company_metrics.clear()
            self._webhook_events.clear()


request_metrics = InMemoryRequestMetrics()
