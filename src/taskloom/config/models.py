"""Pydantic models for Taskloom configuration.

All configuration validation happens through these models.

Classes:
    PlanningConfig: Goal decomposition limits and decomposer model
    DiscoveryConfig: Executor scoring weights, smoothing and similarity thresholds
    ExecutionConfig: Concurrency budget, timeout and retry policy
    LoggingConfig: Logging configuration
    CapabilityConfig: A capability declared by a configured executor
    ExecutorConfig: An LLM-backed executor declared in config.yaml
    TaskloomConfig: Top-level configuration combining all sections
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationInfo, field_validator

DEFAULT_MODEL = "openai/gpt-4o-mini"


class PlanningConfig(BaseModel, frozen=True):
    """Task planning configuration.

    Attributes:
        max_depth: Maximum decomposition depth below the root task
        max_subtasks: Maximum subtasks requested per decomposition
        model: Model used by the LLM decomposer
        temperature: Sampling temperature for decomposition
    """

    max_depth: int = Field(default=3, ge=0, le=10)
    max_subtasks: int = Field(default=5, ge=1, le=20)
    model: str = DEFAULT_MODEL
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)


class DiscoveryConfig(BaseModel, frozen=True):
    """Agent discovery configuration.

    Attributes:
        capability_weight: Weight of the capability score in the total
        performance_weight: Weight of the performance score in the total
        reliability_weight: Weight of the reliability score in the total
        preferred_boost: Capability score bonus for preferred executors
        smoothing_factor: Weight of history in the metric moving averages
        similarity_threshold: Minimum similarity for a similar-capability candidate
        fallback_threshold: Minimum similarity for a direct fallback capability
        latency_reference_ms: Latency at which the performance score is 0.5
        max_alternatives: Runner-up executors returned with a match
    """

    capability_weight: float = Field(default=0.4, ge=0.0)
    performance_weight: float = Field(default=0.3, ge=0.0)
    reliability_weight: float = Field(default=0.3, ge=0.0)
    preferred_boost: float = Field(default=0.2, ge=0.0, le=1.0)
    smoothing_factor: float = Field(default=0.9, ge=0.0, lt=1.0)
    similarity_threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    fallback_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    latency_reference_ms: float = Field(default=1000.0, gt=0.0)
    max_alternatives: int = Field(default=3, ge=0)

    @field_validator("fallback_threshold")
    @classmethod
    def validate_fallback_threshold(cls, v: float, info: ValidationInfo) -> float:
        """Validate that fallback_threshold >= similarity_threshold."""
        similarity = info.data.get("similarity_threshold", 0.2)
        if v < similarity:
            msg = f"fallback_threshold ({v}) must be >= similarity_threshold ({similarity})"
            raise ValueError(msg)
        return v


class ExecutionConfig(BaseModel, frozen=True):
    """Plan execution configuration.

    Attributes:
        parallel_limit: Maximum tasks running at once
        timeout_seconds: Wall-clock budget for one execute_plan call
        retry_count: Extra attempts after a failed executor call
        retry_delay_seconds: Pause between attempts
    """

    parallel_limit: int = Field(default=3, ge=1)
    timeout_seconds: float = Field(default=300.0, gt=0.0)
    retry_count: int = Field(default=2, ge=0)
    retry_delay_seconds: float = Field(default=1.0, ge=0.0)


class LoggingConfig(BaseModel, frozen=True):
    """Logging configuration.

    Attributes:
        level: Log level (debug, info, warning, error)
        mode: dev for console rendering, prod for JSON lines
        enable_file_logging: Also write JSON lines under ~/.taskloom/logs/
        max_log_days: Days of rotated log files to keep
    """

    level: Literal["debug", "info", "warning", "error"] = "info"
    mode: Literal["dev", "prod"] = "dev"
    enable_file_logging: bool = False
    max_log_days: int = Field(default=7, ge=1, le=365)


class CapabilityConfig(BaseModel, frozen=True):
    """A capability an executor declares.

    Attributes:
        name: Capability name used for routing
        description: Free text, also used for similarity between capabilities
    """

    name: str = Field(min_length=1)
    description: str = ""


class ExecutorConfig(BaseModel, frozen=True):
    """An LLM-backed executor declared in configuration.

    Attributes:
        id: Registry identifier
        description: What the executor is good at
        model: LiteLLM model string
        system_prompt: Instructions prepended to every task
        temperature: Sampling temperature
        capabilities: Capabilities the executor provides
    """

    id: str = Field(min_length=1)
    description: str = ""
    model: str = DEFAULT_MODEL
    system_prompt: str = "You are a focused assistant. Complete the task you are given."
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    capabilities: list[CapabilityConfig] = Field(default_factory=list)


class TaskloomConfig(BaseModel, frozen=True):
    """Top-level Taskloom configuration, validated against ~/.taskloom/config.yaml.

    Attributes:
        planning: Task planning configuration
        discovery: Agent discovery configuration
        execution: Plan execution configuration
        logging: Logging configuration
        executors: LLM executors to register at startup
    """

    planning: PlanningConfig = Field(default_factory=PlanningConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    executors: list[ExecutorConfig] = Field(default_factory=list)

    @field_validator("executors")
    @classmethod
    def validate_unique_executor_ids(cls, v: list[ExecutorConfig]) -> list[ExecutorConfig]:
        """Validate that executor ids are unique."""
        seen: set[str] = set()
        for executor in v:
            if executor.id in seen:
                msg = f"Duplicate executor id: {executor.id}"
                raise ValueError(msg)
            seen.add(executor.id)
        return v


def get_default_config() -> TaskloomConfig:
    """Get the default configuration with a starter set of executors."""
    return TaskloomConfig(
        executors=[
            ExecutorConfig(
                id="researcher",
                description="Gathers facts and analyses sources",
                system_prompt="You are a meticulous researcher. Report findings concisely.",
                capabilities=[
                    CapabilityConfig(name="research", description="find and collect information"),
                    CapabilityConfig(name="analysis", description="analyse information and data"),
                ],
            ),
            ExecutorConfig(
                id="writer",
                description="Drafts and edits prose",
                system_prompt="You are a clear technical writer.",
                capabilities=[
                    CapabilityConfig(name="writing", description="write and edit documents"),
                    CapabilityConfig(
                        name="summarization", description="summarize documents and information"
                    ),
                ],
            ),
            ExecutorConfig(
                id="coder",
                description="Writes and reviews code",
                system_prompt="You are a senior software engineer. Answer with working code.",
                capabilities=[
                    CapabilityConfig(name="code-generation", description="write code"),
                    CapabilityConfig(name="code-review", description="review code for defects"),
                ],
            ),
        ],
    )


def get_config_dir() -> Path:
    """Get the Taskloom configuration directory path (~/.taskloom/)."""
    return Path.home() / ".taskloom"
