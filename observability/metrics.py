"""Request counting, latency and failure-rate tracking."""

from __future__ import annotations

from collections import Counter

from schemas.observability import RequestRecord


class MetricsCollector:
    """Collects request records across the lifetime of a service."""

    def __init__(self) -> None:
        self.records: list[RequestRecord] = []

    def record(self, rec: RequestRecord) -> None:
        self.records.append(rec)

    @property
    def total_requests(self) -> int:
        return len(self.records)

    @property
    def outcomes(self) -> dict[str, int]:
        return dict(Counter(r.outcome for r in self.records))

    @property
    def abort_count(self) -> int:
        return sum(1 for r in self.records if r.outcome == "aborted")

    @property
    def auth_retry_count(self) -> int:
        return sum(r.auth_retries for r in self.records)

    @property
    def total_bytes_received(self) -> int:
        return sum(r.bytes_received for r in self.records)

    @property
    def avg_latency_ms(self) -> float:
        if not self.records:
            return 0.0
        return round(sum(r.latency_ms for r in self.records) / len(self.records), 2)

    @property
    def error_rate(self) -> float:
        if not self.records:
            return 0.0
        failed = sum(1 for r in self.records if r.outcome in ("error", "serialization_failed"))
        return round(failed / len(self.records), 4)

    def summary(self) -> dict:
        return {
            "total_requests": self.total_requests,
            "outcomes": self.outcomes,
            "abort_count": self.abort_count,
            "auth_retry_count": self.auth_retry_count,
            "total_bytes_received": self.total_bytes_received,
            "avg_latency_ms": self.avg_latency_ms,
            "error_rate": self.error_rate,
        }
