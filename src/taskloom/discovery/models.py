"""Value types for agent discovery."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from taskloom.discovery.metrics import DiscoveryMetrics


class FallbackStrategy(StrEnum):
    """How far discovery may stray from the requested capability.

    STRICT: exact providers only.
    SIMILAR: exact providers, then providers of similar capabilities.
    DEGRADED: as SIMILAR, then the executor covering most required capabilities.
    """

    STRICT = "strict"
    SIMILAR = "similar"
    DEGRADED = "degraded"


class FallbackType(StrEnum):
    """Which fallback produced a discovery result."""

    SIMILAR = "similar"
    DEGRADED = "degraded"


@dataclass(frozen=True, slots=True)
class DiscoveryOptions:
    """Parameters of one discovery request.

    Attributes:
        capability: Capability the task needs.
        excluded_agent_ids: Executors that must not be returned.
        preferred_agent_id: Returned immediately when it provides the capability.
        preferred_agent_ids: Executors whose capability score gets a boost.
        required_capabilities: Capabilities used for degraded coverage scoring.
        fallback_strategy: See FallbackStrategy.
        capability_weight: Overrides the configured capability weight.
        performance_weight: Overrides the configured performance weight.
        reliability_weight: Overrides the configured reliability weight.
    """

    capability: str
    excluded_agent_ids: frozenset[str] = frozenset()
    preferred_agent_id: str | None = None
    preferred_agent_ids: tuple[str, ...] = ()
    required_capabilities: tuple[str, ...] = ()
    fallback_strategy: FallbackStrategy = FallbackStrategy.SIMILAR
    capability_weight: float | None = None
    performance_weight: float | None = None
    reliability_weight: float | None = None


@dataclass(frozen=True, slots=True)
class FallbackDetails:
    """Why a result does not exactly match the requested capability.

    Attributes:
        fallback_type: similar or degraded.
        original_capability: What was asked for.
        matched_capability: Capability actually matched (similar fallback).
        similarity_score: Similarity between the two (similar fallback).
        coverage: Fraction of required capabilities covered (degraded fallback).
    """

    fallback_type: FallbackType
    original_capability: str
    matched_capability: str | None = None
    similarity_score: float | None = None
    coverage: float | None = None


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    """The executor chosen for a capability.

    Attributes:
        executor_id: Selected executor.
        capability: Capability the selection was made for.
        score: Total score of the selection.
        metrics: Stored metrics of the executor for that capability.
        alternatives: Runner-up executor ids, best first.
        fallback: Set when the match is not exact.
    """

    executor_id: str
    capability: str
    score: float
    metrics: DiscoveryMetrics
    alternatives: tuple[str, ...] = ()
    fallback: FallbackDetails | None = None

    @property
    def is_fallback(self) -> bool:
        return self.fallback is not None


class RequestPriority(StrEnum):
    """Priority of a capability request."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort key: lower ranks first."""
        return {"high": 0, "medium": 1, "low": 2}[self.value]


class RequestStatus(StrEnum):
    PENDING = "pending"
    FULFILLED = "fulfilled"


@dataclass(slots=True)
class CapabilityRequest:
    """A recorded need for a capability no executor provides yet.

    Attributes:
        capability: Requested capability name.
        requester_id: Who asked (executor, task or user id).
        priority: Request priority.
        reason: Free text.
        id: Request id.
        status: pending until a provider registers the capability.
        fulfiller_id: Executor that fulfilled the request.
        requested_at: When the request was made.
        fulfilled_at: When it was fulfilled.
    """

    capability: str
    requester_id: str
    priority: RequestPriority = RequestPriority.MEDIUM
    reason: str = ""
    id: str = field(default_factory=lambda: f"req_{uuid4().hex[:12]}")
    status: RequestStatus = RequestStatus.PENDING
    fulfiller_id: str | None = None
    requested_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    fulfilled_at: datetime | None = None

    def fulfil(self, executor_id: str) -> None:
        self.status = RequestStatus.FULFILLED
        self.fulfiller_id = executor_id
        self.fulfilled_at = datetime.now(UTC)
