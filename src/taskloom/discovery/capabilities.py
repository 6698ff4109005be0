"""Capability registry view and similarity index.

The view maps each capability name to a CapabilityRecord (providers,
description, similar capabilities, direct fallbacks). It is derived from the
executor registry plus explicit declarations and requests, and rebuilt
whenever any of those change.

Similarity of capability A to capability B:

    0.4 if one name contains the other
  + 0.3 * |providers(A) & providers(B)| / max(|providers(A)|, 1)
  + 0.3 * |words(A) & words(B)| / max(|words(A)|, 1)

The score is asymmetric. B becomes a similar candidate of A above the
similarity threshold, and a direct fallback above the fallback threshold.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
import re

from taskloom.agents.base import Executor
from taskloom.config.models import DiscoveryConfig

NAME_CONTAINMENT_BONUS = 0.4
PROVIDER_OVERLAP_WEIGHT = 0.3
DESCRIPTION_OVERLAP_WEIGHT = 0.3

_WORD_RE = re.compile(r"[a-z0-9]+")


@dataclass(slots=True)
class CapabilityRecord:
    """One entry of the capability view.

    Attributes:
        name: Capability name.
        description: First non-empty description seen for it.
        providers: Ids of executors that provide it.
        fallbacks: Direct fallback capabilities, most similar first.
        similar: ``(name, score)`` similar capabilities, most similar first.
        requested_by: Requesters still waiting on or served by this capability.
    """

    name: str
    description: str = ""
    providers: set[str] = field(default_factory=set)
    fallbacks: list[str] = field(default_factory=list)
    similar: list[tuple[str, float]] = field(default_factory=list)
    requested_by: set[str] = field(default_factory=set)

    def merge(self, description: str = "", providers: Iterable[str] = ()) -> None:
        if description and not self.description:
            self.description = description
        self.providers.update(providers)


def description_words(text: str) -> set[str]:
    """Lower-cased alphanumeric words of a description."""
    return set(_WORD_RE.findall(text.lower()))


def capability_similarity(source: CapabilityRecord, target: CapabilityRecord) -> float:
    """Similarity of ``source`` to ``target`` (see module docstring)."""
    a, b = source.name.lower(), target.name.lower()
    name_bonus = NAME_CONTAINMENT_BONUS if (a in b or b in a) else 0.0

    provider_overlap = len(source.providers & target.providers) / max(len(source.providers), 1)

    source_words = description_words(source.description)
    word_overlap = len(source_words & description_words(target.description)) / max(
        len(source_words), 1
    )

    return (
        name_bonus
        + provider_overlap * PROVIDER_OVERLAP_WEIGHT
        + word_overlap * DESCRIPTION_OVERLAP_WEIGHT
    )


def rank_similar(
    source: CapabilityRecord,
    candidates: Iterable[CapabilityRecord],
    threshold: float,
) -> list[tuple[str, float]]:
    """Return candidates scoring above ``threshold``, best first then by name."""
    scored = [
        (candidate.name, capability_similarity(source, candidate))
        for candidate in candidates
        if candidate.name != source.name
    ]
    matches = [(name, score) for name, score in scored if score > threshold]
    matches.sort(key=lambda item: (-item[1], item[0]))
    return matches


def build_capability_view(
    executors: Iterable[Executor],
    declared: Iterable[CapabilityRecord],
    config: DiscoveryConfig,
) -> dict[str, CapabilityRecord]:
    """Build the full capability view with the similarity index linked in.

    Args:
        executors: Registered executors, in registration order.
        declared: Explicitly registered or requested capabilities.
        config: Supplies the similarity and fallback thresholds.

    Returns:
        Records keyed by capability name, in first-seen order.
    """
    records: dict[str, CapabilityRecord] = {}

    for executor in executors:
        for capability in executor.capabilities:
            record = records.setdefault(capability.name, CapabilityRecord(capability.name))
            record.merge(capability.description, [executor.id])

    for declaration in declared:
        record = records.setdefault(declaration.name, CapabilityRecord(declaration.name))
        record.merge(declaration.description, declaration.providers)
        record.requested_by.update(declaration.requested_by)

    for record in records.values():
        record.similar = rank_similar(record, records.values(), config.similarity_threshold)
        record.fallbacks = [
            name for name, score in record.similar if score > config.fallback_threshold
        ]

    return records
