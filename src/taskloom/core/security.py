"""Security utilities for Taskloom.

Keeps secrets out of logs and bounds the size of text that comes back from
language models before the planner or an executor parses it.
"""

from typing import Any

# Upper bound for LLM output accepted by the decomposer and LLM executors
MAX_LLM_RESPONSE_LENGTH = 100_000

# Upper bound for a goal passed to plan creation
MAX_GOAL_LENGTH = 20_000

SENSITIVE_FIELD_NAMES = frozenset(
    {
        "password",
        "api_key",
        "apikey",
        "api-key",
        "secret",
        "token",
        "credential",
        "authorization",
        "bearer",
        "private",
    }
)

SENSITIVE_PREFIXES = (
    "sk-",
    "pk-",
    "bearer ",
    "token ",
    "secret_",
    "AIza",
)


def mask_api_key(api_key: str, visible_chars: int = 4) -> str:
    """Mask an API key for safe logging/display.

    Example:
        >>> mask_api_key("sk-1234567890abcdef")
        'sk-...cdef'
    """
    if not api_key:
        return "<empty>"

    if len(api_key) <= visible_chars + 4:
        return "*" * len(api_key)

    if "-" in api_key[:6]:
        prefix = api_key[: api_key.index("-") + 1]
        return f"{prefix}...{api_key[-visible_chars:]}"

    return f"...{api_key[-visible_chars:]}"


def is_sensitive_field(field_name: str) -> bool:
    """Return True if a field name suggests it holds a secret."""
    if not field_name:
        return False
    field_lower = field_name.lower()
    return any(sensitive in field_lower for sensitive in SENSITIVE_FIELD_NAMES)


def is_sensitive_value(value: Any) -> bool:
    """Return True if a string value looks like a key or token."""
    if not isinstance(value, str):
        return False
    value_lower = value.lower()
    return any(value_lower.startswith(prefix.lower()) for prefix in SENSITIVE_PREFIXES)


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive values masked, recursively.

    Example:
        >>> sanitize_for_logging({"api_key": "sk-secret123", "name": "test"})
        {'api_key': '<REDACTED>', 'name': 'test'}
    """
    result: dict[str, Any] = {}
    for key, value in data.items():
        if is_sensitive_field(key):
            result[key] = "<REDACTED>"
        elif isinstance(value, str) and is_sensitive_value(value):
            result[key] = mask_api_key(value)
        elif isinstance(value, dict):
            result[key] = sanitize_for_logging(value)
        else:
            result[key] = value
    return result


class InputValidator:
    """Size and emptiness checks for text crossing the engine boundary.

    Each check returns ``(is_valid, error_message)``; the message is empty
    when the input is valid.
    """

    @staticmethod
    def validate_goal(goal: str) -> tuple[bool, str]:
        """Validate a goal description handed to plan creation."""
        if not goal or not goal.strip():
            return False, "Goal cannot be empty"

        if len(goal.strip()) > MAX_GOAL_LENGTH:
            return False, f"Goal exceeds maximum length ({MAX_GOAL_LENGTH} chars)"

        return True, ""

    @staticmethod
    def validate_llm_response(response: str) -> tuple[bool, str]:
        """Validate LLM response length. An empty response is valid."""
        if not response:
            return True, ""

        if len(response) > MAX_LLM_RESPONSE_LENGTH:
            return False, f"LLM response exceeds maximum length ({MAX_LLM_RESPONSE_LENGTH} chars)"

        return True, ""
