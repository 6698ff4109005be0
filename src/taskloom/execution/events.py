"""Execution lifecycle events and the in-process event bus.

Events are immutable pydantic models. Handlers are called synchronously in
subscription order; a handler that raises is logged and skipped so the
remaining handlers still see the event.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from taskloom.observability.logging import get_logger

log = get_logger(__name__)


class ExecutionEventType(StrEnum):
    """Event types emitted by the task executor."""

    TASK_STARTED = "execution.task.started"
    TASK_COMPLETED = "execution.task.completed"
    TASK_FAILED = "execution.task.failed"
    PLAN_COMPLETED = "execution.plan.completed"


class ExecutionEvent(BaseModel, frozen=True):
    """A task or plan lifecycle event.

    Attributes:
        id: Unique event identifier.
        type: What happened.
        plan_id: Plan the event belongs to.
        task_id: Task concerned (None for plan-level events).
        timestamp: When it happened (UTC).
        payload: Event-specific data (executor id, error, counts, ...).
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: ExecutionEventType
    plan_id: str
    task_id: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    payload: dict[str, Any] = Field(default_factory=dict)


EventHandler = Callable[[ExecutionEvent], None]


@dataclass(frozen=True, slots=True)
class _Subscription:
    handler: EventHandler
    event_types: frozenset[ExecutionEventType] | None

    def accepts(self, event: ExecutionEvent) -> bool:
        return self.event_types is None or event.type in self.event_types


class EventBus:
    """Synchronous publish/subscribe for execution events."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, _Subscription] = {}

    def subscribe(
        self,
        handler: EventHandler,
        event_types: Iterable[ExecutionEventType] | None = None,
    ) -> str:
        """Register ``handler``; return the subscription id.

        Args:
            handler: Called with every matching event.
            event_types: Restrict delivery to these types (all types if None).
        """
        subscription_id = str(uuid4())
        types = frozenset(event_types) if event_types is not None else None
        self._subscriptions[subscription_id] = _Subscription(handler, types)
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Returns False if the id is unknown."""
        return self._subscriptions.pop(subscription_id, None) is not None

    def publish(self, event: ExecutionEvent) -> None:
        for subscription_id, subscription in list(self._subscriptions.items()):
            if not subscription.accepts(event):
                continue
            try:
                subscription.handler(event)
            except Exception:
                log.exception(
                    "execution.event_handler.failed",
                    subscription_id=subscription_id,
                    event_type=event.type.value,
                )

    def __len__(self) -> int:
        return len(self._subscriptions)
