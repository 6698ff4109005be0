"""Per-(executor, capability) performance metrics.

Success rate, error rate and latency are exponentially smoothed:
``new = smoothing * old + (1 - smoothing) * sample`` with smoothing 0.9 by
default. The first latency sample seeds the average. Derived scores:

- reliability = 0.7 * success_rate + 0.3 * (1 - error_rate)
- performance = ref / (ref + average_latency_ms), so 1.0 at zero latency and
  0.5 at the reference latency
- total = capability_weight + performance * performance_weight
          + reliability * reliability_weight  (capability score 1.0)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime

from taskloom.config.models import DiscoveryConfig


@dataclass(frozen=True, slots=True)
class MetricsUpdate:
    """Outcome of one execution attempt.

    Attributes:
        success: Whether the attempt produced output.
        execution_time_ms: Wall time of the attempt.
        has_error: Whether the attempt raised; defaults to ``not success``.
    """

    success: bool
    execution_time_ms: float = 0.0
    has_error: bool | None = None

    @property
    def errored(self) -> bool:
        return (not self.success) if self.has_error is None else self.has_error


@dataclass(frozen=True, slots=True)
class DiscoveryMetrics:
    """Smoothed metrics for one executor on one capability."""

    executor_id: str
    capability: str
    success_rate: float = 1.0
    average_latency_ms: float = 0.0
    error_rate: float = 0.0
    usage_count: int = 0
    last_used: datetime | None = None
    reliability_score: float = 1.0
    performance_score: float = 1.0
    total_score: float = 1.0


def score_metrics(metrics: DiscoveryMetrics, config: DiscoveryConfig) -> DiscoveryMetrics:
    """Return ``metrics`` with reliability, performance and total recomputed."""
    reliability = 0.7 * metrics.success_rate + 0.3 * (1.0 - metrics.error_rate)
    reference = config.latency_reference_ms
    performance = reference / (reference + max(metrics.average_latency_ms, 0.0))
    total = (
        config.capability_weight
        + performance * config.performance_weight
        + reliability * config.reliability_weight
    )
    return replace(
        metrics,
        reliability_score=reliability,
        performance_score=performance,
        total_score=total,
    )


class MetricsStore:
    """Holds DiscoveryMetrics keyed by ``(executor_id, capability)``.

    Entries come into existence on the first recorded attempt; lookups for
    unknown keys return optimistic defaults without storing them.
    """

    def __init__(self, config: DiscoveryConfig | None = None) -> None:
        self._config = config or DiscoveryConfig()
        self._metrics: dict[tuple[str, str], DiscoveryMetrics] = {}

    def get(self, executor_id: str, capability: str) -> DiscoveryMetrics:
        stored = self._metrics.get((executor_id, capability))
        if stored is not None:
            return stored
        return score_metrics(DiscoveryMetrics(executor_id, capability), self._config)

    def has(self, executor_id: str, capability: str) -> bool:
        return (executor_id, capability) in self._metrics

    def record(self, executor_id: str, capability: str, update: MetricsUpdate) -> DiscoveryMetrics:
        """Fold one attempt into the smoothed metrics and return the new entry."""
        alpha = self._config.smoothing_factor
        current = self.get(executor_id, capability)

        success_sample = 1.0 if update.success else 0.0
        error_sample = 1.0 if update.errored else 0.0
        if current.usage_count == 0:
            latency = update.execution_time_ms
        else:
            latency = alpha * current.average_latency_ms + (1 - alpha) * update.execution_time_ms

        updated = score_metrics(
            replace(
                current,
                success_rate=alpha * current.success_rate + (1 - alpha) * success_sample,
                error_rate=alpha * current.error_rate + (1 - alpha) * error_sample,
                average_latency_ms=latency,
                usage_count=current.usage_count + 1,
                last_used=datetime.now(UTC),
            ),
            self._config,
        )
        self._metrics[(executor_id, capability)] = updated
        return updated

    def for_executor(self, executor_id: str) -> list[DiscoveryMetrics]:
        """Return every stored entry of one executor."""
        return [m for (eid, _), m in self._metrics.items() if eid == executor_id]

    def mean_total_score(self, executor_id: str) -> float:
        """Mean stored total score of an executor, or the default total if it has none."""
        entries = self.for_executor(executor_id)
        if not entries:
            return score_metrics(DiscoveryMetrics(executor_id, ""), self._config).total_score
        return sum(m.total_score for m in entries) / len(entries)

    def all(self) -> list[DiscoveryMetrics]:
        return list(self._metrics.values())

    def reset(self) -> None:
        self._metrics.clear()

    def __len__(self) -> int:
        return len(self._metrics)
