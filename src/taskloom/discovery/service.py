"""Agent discovery: route a capability to the best executor.

Usage:
    discovery = AgentDiscovery(registry)
    result = discovery.discover_agent(DiscoveryOptions(capability="writing"))
    if result is None:
        ...  # nobody can do it; a miss is not an error

    discovery.update_metrics("writer", "writing", MetricsUpdate(success=True,
                                                                 execution_time_ms=420))
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from taskloom.agents.registry import ExecutorRegistry, RegistryChange, RegistryChangeType
from taskloom.config.models import DiscoveryConfig
from taskloom.discovery.capabilities import (
    CapabilityRecord,
    build_capability_view,
    rank_similar,
)
from taskloom.discovery.metrics import DiscoveryMetrics, MetricsStore, MetricsUpdate
from taskloom.discovery.models import (
    CapabilityRequest,
    DiscoveryOptions,
    DiscoveryResult,
    FallbackDetails,
    FallbackStrategy,
    FallbackType,
    RequestPriority,
    RequestStatus,
)
from taskloom.observability.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class _Weights:
    capability: float
    performance: float
    reliability: float


class AgentDiscovery:
    """Capability-based executor selection with similar and degraded fallbacks.

    The capability view is rebuilt on every registry change, capability
    registration and capability request. Metrics are kept per
    ``(executor_id, capability)`` and feed the scoring of candidates.
    """

    def __init__(
        self,
        registry: ExecutorRegistry,
        config: DiscoveryConfig | None = None,
        *,
        metrics: MetricsStore | None = None,
    ) -> None:
        self._registry = registry
        self._config = config or DiscoveryConfig()
        self._metrics = metrics or MetricsStore(self._config)
        self._declared: dict[str, CapabilityRecord] = {}
        self._requests: dict[str, CapabilityRequest] = {}
        self._records: dict[str, CapabilityRecord] = {}
        registry.add_listener(self._on_registry_change)
        self.rebuild()

    # ------------------------------------------------------------------
    # Capability view
    # ------------------------------------------------------------------

    def rebuild(self) -> None:
        """Recompute the capability view and similarity index."""
        self._records = build_capability_view(
            self._registry.list_executors(),
            self._declared.values(),
            self._config,
        )
        log.debug("discovery.index.rebuilt", capability_count=len(self._records))

    def _on_registry_change(self, change: RegistryChange) -> None:
        if change.type == RegistryChangeType.UNREGISTERED:
            for declaration in self._declared.values():
                declaration.providers.discard(change.executor_id)
        self.rebuild()
        if change.type == RegistryChangeType.REGISTERED:
            executor = self._registry.get_executor(change.executor_id)
            if executor is not None:
                for capability in executor.capabilities:
                    self._fulfil_pending(capability.name, executor.id)

    def list_capabilities(self) -> list[CapabilityRecord]:
        """Return all capability records, sorted by name."""
        return sorted(self._records.values(), key=lambda r: r.name)

    def get_capability(self, name: str) -> CapabilityRecord | None:
        return self._records.get(name)

    def register_capability(
        self,
        name: str,
        description: str = "",
        executor_id: str | None = None,
    ) -> CapabilityRecord:
        """Declare a capability, optionally with a provider.

        Registering a provider fulfils pending requests for the capability.
        """
        declaration = self._declared.setdefault(name, CapabilityRecord(name))
        if description:
            declaration.description = description
        if executor_id:
            declaration.providers.add(executor_id)

        self.rebuild()
        log.info(
            "discovery.capability.registered",
            capability=name,
            executor_id=executor_id,
        )
        if executor_id:
            self._fulfil_pending(name, executor_id)
        return self._records[name]

    def request_capability(
        self,
        name: str,
        requester_id: str,
        priority: RequestPriority | str = RequestPriority.MEDIUM,
        reason: str = "",
    ) -> CapabilityRequest:
        """Record a need for a capability.

        The request is fulfilled immediately when an exact provider exists,
        otherwise it stays pending until one registers.
        """
        request = CapabilityRequest(
            capability=name,
            requester_id=requester_id,
            priority=RequestPriority(priority),
            reason=reason,
        )
        self._requests[request.id] = request
        self._declared.setdefault(name, CapabilityRecord(name)).requested_by.add(requester_id)
        self.rebuild()

        match = self._find_direct(
            DiscoveryOptions(capability=name, fallback_strategy=FallbackStrategy.STRICT)
        )
        if match is not None:
            request.fulfil(match.executor_id)

        log.info(
            "discovery.capability.requested",
            capability=name,
            requester_id=requester_id,
            priority=request.priority.value,
            status=request.status.value,
        )
        return request

    def _fulfil_pending(self, capability: str, executor_id: str) -> None:
        for request in self._requests.values():
            if request.capability == capability and request.status == RequestStatus.PENDING:
                request.fulfil(executor_id)
                log.info(
                    "discovery.request.fulfilled",
                    request_id=request.id,
                    capability=capability,
                    executor_id=executor_id,
                )

    def get_pending_requests(self) -> list[CapabilityRequest]:
        """Pending requests, highest priority first, then oldest first."""
        pending = [r for r in self._requests.values() if r.status == RequestStatus.PENDING]
        return sorted(pending, key=lambda r: (r.priority.rank, r.requested_at))

    def get_request(self, request_id: str) -> CapabilityRequest | None:
        return self._requests.get(request_id)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def update_metrics(
        self,
        executor_id: str,
        capability: str,
        update: MetricsUpdate,
    ) -> DiscoveryMetrics:
        """Fold the outcome of one execution attempt into the metrics."""
        metrics = self._metrics.record(executor_id, capability, update)
        log.debug(
            "discovery.metrics.updated",
            executor_id=executor_id,
            capability=capability,
            success_rate=round(metrics.success_rate, 4),
            reliability=round(metrics.reliability_score, 4),
            usage_count=metrics.usage_count,
        )
        return metrics

    def get_metrics(self, executor_id: str, capability: str) -> DiscoveryMetrics:
        return self._metrics.get(executor_id, capability)

    def reset_metrics(self) -> None:
        self._metrics.reset()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover_agent(self, options: DiscoveryOptions) -> DiscoveryResult | None:
        """Select an executor for ``options.capability``.

        Order: exact providers, then similar capabilities (SIMILAR and
        DEGRADED), then best coverage of the required capabilities (DEGRADED).

        Returns:
            The selection, or None when nothing qualifies.
        """
        result = self._discover(options)
        if result is None:
            log.info(
                "discovery.agent.not_found",
                capability=options.capability,
                strategy=options.fallback_strategy.value,
            )
        else:
            log.info(
                "discovery.agent.selected",
                capability=options.capability,
                executor_id=result.executor_id,
                score=round(result.score, 4),
                fallback=result.fallback.fallback_type.value if result.fallback else None,
            )
        return result

    def _discover(self, options: DiscoveryOptions) -> DiscoveryResult | None:
        if options.capability in self._records:
            match = self._find_direct(options)
            if match is not None:
                return match

        if options.fallback_strategy == FallbackStrategy.STRICT:
            return None

        match = self._find_similar(options)
        if match is not None:
            return match

        if options.fallback_strategy == FallbackStrategy.DEGRADED:
            return self._find_degraded(options)
        return None

    def _weights(self, options: DiscoveryOptions) -> _Weights:
        return _Weights(
            capability=(
                self._config.capability_weight
                if options.capability_weight is None
                else options.capability_weight
            ),
            performance=(
                self._config.performance_weight
                if options.performance_weight is None
                else options.performance_weight
            ),
            reliability=(
                self._config.reliability_weight
                if options.reliability_weight is None
                else options.reliability_weight
            ),
        )

    def _routable(self, providers: set[str], options: DiscoveryOptions) -> set[str]:
        # Declared providers may name executors that were never registered.
        return {
            executor_id
            for executor_id in providers - options.excluded_agent_ids
            if self._registry.get_executor(executor_id) is not None
        }

    def _find_direct(self, options: DiscoveryOptions) -> DiscoveryResult | None:
        record = self._records.get(options.capability)
        if record is None:
            return None

        candidates = sorted(self._routable(record.providers, options))
        if not candidates:
            return None

        preferred_id = options.preferred_agent_id
        if preferred_id is not None and preferred_id in candidates:
            metrics = self._metrics.get(preferred_id, options.capability)
            return DiscoveryResult(
                executor_id=preferred_id,
                capability=options.capability,
                score=metrics.total_score,
                metrics=metrics,
            )

        weights = self._weights(options)
        preferred = set(options.preferred_agent_ids)
        scored: list[tuple[float, str]] = []
        for executor_id in candidates:
            metrics = self._metrics.get(executor_id, options.capability)
            capability_score = 1.0
            if executor_id in preferred:
                capability_score += self._config.preferred_boost
            score = (
                capability_score * weights.capability
                + metrics.performance_score * weights.performance
                + metrics.reliability_score * weights.reliability
            )
            scored.append((score, executor_id))

        scored.sort(key=lambda item: (-item[0], item[1]))
        best_score, best_id = scored[0]
        return DiscoveryResult(
            executor_id=best_id,
            capability=options.capability,
            score=best_score,
            metrics=self._metrics.get(best_id, options.capability),
            alternatives=tuple(eid for _, eid in scored[1 : 1 + self._config.max_alternatives]),
        )

    def _similar_to(self, capability: str) -> list[tuple[str, float]]:
        record = self._records.get(capability)
        if record is not None:
            return record.similar
        return rank_similar(
            CapabilityRecord(capability),
            self._records.values(),
            self._config.similarity_threshold,
        )

    def _find_similar(self, options: DiscoveryOptions) -> DiscoveryResult | None:
        for name, similarity in self._similar_to(options.capability):
            match = self._find_direct(
                replace(options, capability=name, fallback_strategy=FallbackStrategy.STRICT)
            )
            if match is not None:
                return replace(
                    match,
                    fallback=FallbackDetails(
                        fallback_type=FallbackType.SIMILAR,
                        original_capability=options.capability,
                        matched_capability=name,
                        similarity_score=similarity,
                    ),
                )
        return None

    def _find_degraded(self, options: DiscoveryOptions) -> DiscoveryResult | None:
        required = set(options.required_capabilities or (options.capability,))
        provided: dict[str, set[str]] = {}
        for record in self._records.values():
            for executor_id in self._routable(record.providers, options):
                provided.setdefault(executor_id, set()).add(record.name)

        ranked: list[tuple[float, float, str]] = []
        for executor_id, capabilities in provided.items():
            coverage = len(required & capabilities) / len(required)
            if coverage > 0:
                ranked.append(
                    (coverage, self._metrics.mean_total_score(executor_id), executor_id)
                )
        if not ranked:
            return None

        ranked.sort(key=lambda item: (-item[0], -item[1], item[2]))
        coverage, _, best_id = ranked[0]
        return DiscoveryResult(
            executor_id=best_id,
            capability=options.capability,
            score=coverage,
            metrics=self._metrics.get(best_id, options.capability),
            alternatives=tuple(eid for _, _, eid in ranked[1 : 1 + self._config.max_alternatives]),
            fallback=FallbackDetails(
                fallback_type=FallbackType.DEGRADED,
                original_capability=options.capability,
                coverage=coverage,
            ),
        )
