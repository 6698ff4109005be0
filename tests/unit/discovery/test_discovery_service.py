"""Unit tests for taskloom.discovery.service.AgentDiscovery."""

from collections.abc import Callable

import pytest

from taskloom.agents import ExecutorCapability, ExecutorRegistry
from taskloom.discovery import (
    AgentDiscovery,
    DiscoveryOptions,
    FallbackStrategy,
    FallbackType,
    MetricsUpdate,
    RequestPriority,
    RequestStatus,
)


@pytest.fixture
def registry() -> ExecutorRegistry:
    return ExecutorRegistry()


@pytest.fixture
def discovery(registry: ExecutorRegistry) -> AgentDiscovery:
    return AgentDiscovery(registry)


class TestDirectDiscovery:
    """Exact providers of the requested capability."""

    def test_returns_provider(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("writer", ["writing"]))

        result = discovery.discover_agent(DiscoveryOptions(capability="writing"))

        assert result is not None
        assert result.executor_id == "writer"
        assert result.capability == "writing"
        assert result.fallback is None
        assert result.score == pytest.approx(1.0)

    def test_ties_break_by_id_with_alternatives(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        for executor_id in ("charlie", "alpha", "bravo"):
            registry.register(make_executor(executor_id, ["writing"]))

        result = discovery.discover_agent(DiscoveryOptions(capability="writing"))

        assert result is not None
        assert result.executor_id == "alpha"
        assert result.alternatives == ("bravo", "charlie")

    def test_failures_lower_ranking(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("alpha", ["writing"]))
        registry.register(make_executor("bravo", ["writing"]))
        for _ in range(3):
            discovery.update_metrics("alpha", "writing", MetricsUpdate(success=False))

        result = discovery.discover_agent(DiscoveryOptions(capability="writing"))

        assert result is not None
        assert result.executor_id == "bravo"
        assert discovery.get_metrics("alpha", "writing").reliability_score < 1.0

    def test_preferred_agent_id_wins_immediately(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("alpha", ["writing"]))
        registry.register(make_executor("bravo", ["writing"]))
        discovery.update_metrics("bravo", "writing", MetricsUpdate(success=False))

        result = discovery.discover_agent(
            DiscoveryOptions(capability="writing", preferred_agent_id="bravo")
        )

        assert result is not None
        assert result.executor_id == "bravo"

    def test_preferred_agent_ids_get_a_boost(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("alpha", ["writing"]))
        registry.register(make_executor("bravo", ["writing"]))

        result = discovery.discover_agent(
            DiscoveryOptions(capability="writing", preferred_agent_ids=("bravo",))
        )

        assert result is not None
        assert result.executor_id == "bravo"
        assert result.score == pytest.approx(1.0 + 0.2 * 0.4)

    def test_weight_overrides(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("alpha", ["writing"]))

        result = discovery.discover_agent(
            DiscoveryOptions(
                capability="writing",
                capability_weight=1.0,
                performance_weight=0.0,
                reliability_weight=0.0,
            )
        )

        assert result is not None
        assert result.score == pytest.approx(1.0)


class TestFallbacks:
    """Similar and degraded fallbacks."""

    def test_unknown_capability_uses_similar(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("solo", ["x2"]))

        result = discovery.discover_agent(
            DiscoveryOptions(capability="x", fallback_strategy=FallbackStrategy.SIMILAR)
        )

        assert result is not None
        assert result.executor_id == "solo"
        assert result.fallback is not None
        assert result.fallback.fallback_type == FallbackType.SIMILAR
        assert result.fallback.original_capability == "x"
        assert result.fallback.matched_capability == "x2"
        assert result.is_fallback

    def test_unknown_capability_strict_is_none(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("solo", ["x2"]))

        assert (
            discovery.discover_agent(
                DiscoveryOptions(capability="x", fallback_strategy=FallbackStrategy.STRICT)
            )
            is None
        )

    @pytest.mark.parametrize(
        ("strategy", "expected"),
        [
            (FallbackStrategy.STRICT, None),
            (FallbackStrategy.SIMILAR, "bravo"),
            (FallbackStrategy.DEGRADED, "bravo"),
        ],
    )
    def test_all_providers_excluded(
        self,
        registry: ExecutorRegistry,
        discovery: AgentDiscovery,
        make_executor: Callable,
        strategy: FallbackStrategy,
        expected: str | None,
    ) -> None:
        registry.register(make_executor("alpha", ["summarize"]))
        registry.register(make_executor("bravo", ["summarize-text"]))

        result = discovery.discover_agent(
            DiscoveryOptions(
                capability="summarize",
                excluded_agent_ids=frozenset({"alpha"}),
                fallback_strategy=strategy,
            )
        )

        if expected is None:
            assert result is None
        else:
            assert result is not None
            assert result.executor_id == expected
            assert result.executor_id != "alpha"

    def test_degraded_prefers_best_coverage(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("alpha", ["research"]))
        registry.register(make_executor("bravo", ["research", "writing"]))

        result = discovery.discover_agent(
            DiscoveryOptions(
                capability="report",
                required_capabilities=("research", "writing"),
                fallback_strategy=FallbackStrategy.DEGRADED,
            )
        )

        assert result is not None
        assert result.executor_id == "bravo"
        assert result.fallback is not None
        assert result.fallback.fallback_type == FallbackType.DEGRADED
        assert result.fallback.coverage == pytest.approx(1.0)
        assert result.alternatives == ("alpha",)

    def test_degraded_without_coverage_is_none(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("alpha", ["research"]))

        result = discovery.discover_agent(
            DiscoveryOptions(capability="painting", fallback_strategy=FallbackStrategy.DEGRADED)
        )

        assert result is None

    def test_similar_without_candidates_is_none(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("alpha", ["research"]))

        assert discovery.discover_agent(DiscoveryOptions(capability="painting")) is None


class TestCapabilityView:
    """Capability registration, requests and registry changes."""

    def test_registry_changes_rebuild_view(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(
            make_executor("writer", [ExecutorCapability("writing", "write documents")])
        )
        assert discovery.get_capability("writing") is not None
        assert discovery.get_capability("writing").description == "write documents"

        registry.unregister("writer")

        assert discovery.get_capability("writing") is None
        assert discovery.discover_agent(DiscoveryOptions(capability="writing")) is None

    def test_unregistering_drops_declared_provider(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("w1", ["writing"]))
        discovery.register_capability("writing", "write documents", executor_id="w1")

        registry.unregister("w1")

        strict = DiscoveryOptions(capability="writing", fallback_strategy=FallbackStrategy.STRICT)
        assert discovery.discover_agent(strict) is None
        assert discovery.get_capability("writing").providers == set()

    def test_declared_provider_needs_a_registered_executor(
        self, discovery: AgentDiscovery
    ) -> None:
        discovery.register_capability("translation", executor_id="polyglot")

        for strategy in FallbackStrategy:
            options = DiscoveryOptions(capability="translation", fallback_strategy=strategy)
            assert discovery.discover_agent(options) is None

    def test_register_capability(self, discovery: AgentDiscovery) -> None:
        record = discovery.register_capability("translation", "translate text", "polyglot")

        assert record.providers == {"polyglot"}
        assert [r.name for r in discovery.list_capabilities()] == ["translation"]

    def test_request_fulfilled_immediately_when_provider_exists(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("writer", ["writing"]))

        request = discovery.request_capability("writing", "task_1")

        assert request.status == RequestStatus.FULFILLED
        assert request.fulfiller_id == "writer"
        assert discovery.get_pending_requests() == []

    def test_pending_requests_fulfilled_on_registration(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        request = discovery.request_capability("translation", "task_1", reason="needs French")
        assert request.status == RequestStatus.PENDING
        assert discovery.get_capability("translation").requested_by == {"task_1"}

        registry.register(make_executor("polyglot", ["translation"]))

        assert discovery.get_request(request.id).status == RequestStatus.FULFILLED
        assert discovery.get_request(request.id).fulfiller_id == "polyglot"

    def test_register_capability_with_provider_fulfils_requests(
        self, discovery: AgentDiscovery
    ) -> None:
        request = discovery.request_capability("translation", "task_1")

        discovery.register_capability("translation", executor_id="polyglot")

        assert request.status == RequestStatus.FULFILLED

    def test_pending_requests_ordered_by_priority_then_age(
        self, discovery: AgentDiscovery
    ) -> None:
        low = discovery.request_capability("a", "r1", RequestPriority.LOW)
        high = discovery.request_capability("b", "r2", "high")
        medium = discovery.request_capability("c", "r3", RequestPriority.MEDIUM)
        high_later = discovery.request_capability("d", "r4", RequestPriority.HIGH)

        assert [r.id for r in discovery.get_pending_requests()] == [
            high.id,
            high_later.id,
            medium.id,
            low.id,
        ]

    def test_reset_metrics(
        self, registry: ExecutorRegistry, discovery: AgentDiscovery, make_executor: Callable
    ) -> None:
        registry.register(make_executor("writer", ["writing"]))
        discovery.update_metrics("writer", "writing", MetricsUpdate(success=False))

        discovery.reset_metrics()

        assert discovery.get_metrics("writer", "writing").usage_count == 0
