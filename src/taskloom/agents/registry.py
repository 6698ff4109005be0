"""Executor registry.

Holds the executors available to the engine and answers capability lookups.
Listeners are notified on every registration change; agent discovery uses
this to rebuild its capability view.

Usage:
    registry = ExecutorRegistry()
    registry.register(FunctionExecutor("writer", ["writing"], write))

    writers = registry.find_executors_with_capability("writing")
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from taskloom.agents.base import Executor, capability_names
from taskloom.core.errors import ValidationError
from taskloom.observability.logging import get_logger

log = get_logger(__name__)


class RegistryChangeType(StrEnum):
    """Kind of registry change delivered to listeners."""

    REGISTERED = "registered"
    UNREGISTERED = "unregistered"


@dataclass(frozen=True, slots=True)
class RegistryChange:
    """A single registry change.

    Attributes:
        type: Whether the executor was added or removed.
        executor_id: The executor concerned.
    """

    type: RegistryChangeType
    executor_id: str


RegistryListener = Callable[[RegistryChange], None]


class ExecutorRegistry:
    """In-memory registry of executors, indexed by capability."""

    def __init__(self) -> None:
        self._executors: dict[str, Executor] = {}
        self._capability_index: dict[str, set[str]] = {}
        self._listeners: list[RegistryListener] = []

    def register(self, executor: Executor, *, replace: bool = False) -> None:
        """Add an executor.

        Args:
            executor: The executor to add.
            replace: Replace an executor already registered under the same id.

        Raises:
            ValidationError: If the id is taken and replace is False.
        """
        if executor.id in self._executors:
            if not replace:
                raise ValidationError(
                    f"Executor already registered: {executor.id}",
                    field="executor_id",
                    value=executor.id,
                )
            self._remove_from_index(executor.id)

        self._executors[executor.id] = executor
        for name in capability_names(executor):
            self._capability_index.setdefault(name, set()).add(executor.id)

        log.info(
            "agents.registry.executor_registered",
            executor_id=executor.id,
            capabilities=capability_names(executor),
        )
        self._notify(RegistryChange(RegistryChangeType.REGISTERED, executor.id))

    def unregister(self, executor_id: str) -> bool:
        """Remove an executor. Returns False if it was not registered."""
        if executor_id not in self._executors:
            return False

        self._remove_from_index(executor_id)
        del self._executors[executor_id]
        log.info("agents.registry.executor_unregistered", executor_id=executor_id)
        self._notify(RegistryChange(RegistryChangeType.UNREGISTERED, executor_id))
        return True

    def _remove_from_index(self, executor_id: str) -> None:
        for name in capability_names(self._executors[executor_id]):
            providers = self._capability_index.get(name)
            if providers is None:
                continue
            providers.discard(executor_id)
            if not providers:
                del self._capability_index[name]

    def get_executor(self, executor_id: str) -> Executor | None:
        """Return the executor registered under ``executor_id``, if any."""
        return self._executors.get(executor_id)

    def list_executors(self) -> list[Executor]:
        """Return all executors in registration order."""
        return list(self._executors.values())

    def find_executors_with_capability(self, capability: str) -> list[Executor]:
        """Return executors declaring ``capability``, in registration order."""
        ids = self._capability_index.get(capability, set())
        return [executor for executor in self._executors.values() if executor.id in ids]

    def add_listener(self, listener: RegistryListener) -> None:
        """Call ``listener`` after every registration change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: RegistryListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, change: RegistryChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                log.exception(
                    "agents.registry.listener_failed",
                    change=change.type.value,
                    executor_id=change.executor_id,
                )

    def __len__(self) -> int:
        return len(self._executors)

    def __contains__(self, executor_id: object) -> bool:
        return executor_id in self._executors


__all__ = [
    "ExecutorRegistry",
    "RegistryChange",
    "RegistryChangeType",
    "RegistryListener",
]
