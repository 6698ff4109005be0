"""Capability-based agent discovery."""

from taskloom.discovery.capabilities import (
    CapabilityRecord,
    build_capability_view,
    capability_similarity,
    rank_similar,
)
from taskloom.discovery.metrics import (
    DiscoveryMetrics,
    MetricsStore,
    MetricsUpdate,
    score_metrics,
)
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
from taskloom.discovery.service import AgentDiscovery

__all__ = [
    "AgentDiscovery",
    # Capability view
    "CapabilityRecord",
    "build_capability_view",
    "capability_similarity",
    "rank_similar",
    # Metrics
    "DiscoveryMetrics",
    "MetricsStore",
    "MetricsUpdate",
    "score_metrics",
    # Models
    "CapabilityRequest",
    "DiscoveryOptions",
    "DiscoveryResult",
    "FallbackDetails",
    "FallbackStrategy",
    "FallbackType",
    "RequestPriority",
    "RequestStatus",
]
