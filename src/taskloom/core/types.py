"""Core types for Taskloom - Result type and domain aliases.

This module provides:
- Result[T, E]: success-or-failure container for expected failures
- Aliases for the identifiers that flow between planner, discovery and executor
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, cast

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")
F = TypeVar("F")


@dataclass(frozen=True, slots=True)
class Result(Generic[T, E]):
    """Either an Ok value or an Err value.

    Collaborators (LLM providers, decomposers) report expected failures such
    as unparsable output or rate limits through Result instead of raising.
    Exceptions stay reserved for programming errors and for the typed
    not-found / configuration errors of the engine.

    Usage:
        result = await decomposer.decompose(request)
        if result.is_ok:
            subtasks = result.value
        else:
            log.warning("planner.decomposition.skipped", error=str(result.error))
    """

    _value: T | None
    _error: E | None
    _is_ok: bool

    @classmethod
    def ok(cls, value: T) -> Result[T, E]:
        """Wrap a success value."""
        return cls(_value=value, _error=None, _is_ok=True)

    @classmethod
    def err(cls, error: E) -> Result[T, E]:
        """Wrap a failure value."""
        return cls(_value=None, _error=error, _is_ok=False)

    @property
    def is_ok(self) -> bool:
        """Return True if this Result holds a success value."""
        return self._is_ok

    @property
    def is_err(self) -> bool:
        """Return True if this Result holds a failure value."""
        return not self._is_ok

    def __repr__(self) -> str:
        if self._is_ok:
            return f"Ok({self._value!r})"
        return f"Err({self._error!r})"

    @property
    def value(self) -> T:
        """Return the Ok value.

        Raises:
            ValueError: If accessed on an Err result.
        """
        if not self._is_ok:
            msg = "Cannot access value on Err result"
            raise ValueError(msg)
        return cast(T, self._value)

    @property
    def error(self) -> E:
        """Return the Err value.

        Raises:
            ValueError: If accessed on an Ok result.
        """
        if self._is_ok:
            msg = "Cannot access error on Ok result"
            raise ValueError(msg)
        return cast(E, self._error)

    def unwrap(self) -> T:
        """Return the Ok value or raise ValueError carrying the error text."""
        if self._is_ok:
            return cast(T, self._value)
        raise ValueError(str(self._error))

    def unwrap_or(self, default: T) -> T:
        """Return the Ok value, or ``default`` for an Err."""
        if self._is_ok:
            return cast(T, self._value)
        return default

    def map(self, fn: Callable[[T], U]) -> Result[U, E]:
        """Apply ``fn`` to an Ok value; pass an Err through untouched."""
        if self._is_ok:
            return Result.ok(fn(cast(T, self._value)))
        return Result.err(cast(E, self._error))

    def map_err(self, fn: Callable[[E], F]) -> Result[T, F]:
        """Apply ``fn`` to an Err value; pass an Ok through untouched."""
        if self._is_ok:
            return Result.ok(cast(T, self._value))
        return Result.err(fn(cast(E, self._error)))


# Identifier aliases shared across the engine
TaskId = str
"""Identifier of a task inside a plan."""

PlanId = str
"""Identifier of a task plan."""

ExecutorId = str
"""Identifier of an executor (agent) in the registry."""

CapabilityName = str
"""Name of a capability an executor declares and a task can require."""

EventPayload = dict[str, Any]
"""Arbitrary JSON-serializable event payload."""
