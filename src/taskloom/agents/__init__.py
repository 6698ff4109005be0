"""Executors ("agents") and the registry that holds them."""

from taskloom.agents.base import (
    Executor,
    ExecutorCapability,
    ExecutorOutput,
    TaskInput,
    capability_names,
)
from taskloom.agents.executors import FunctionExecutor, LLMExecutor
from taskloom.agents.registry import ExecutorRegistry, RegistryChange, RegistryChangeType

__all__ = [
    # Protocol and data
    "Executor",
    "ExecutorCapability",
    "ExecutorOutput",
    "TaskInput",
    "capability_names",
    # Executors
    "FunctionExecutor",
    "LLMExecutor",
    # Registry
    "ExecutorRegistry",
    "RegistryChange",
    "RegistryChangeType",
]
