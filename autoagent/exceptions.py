"""Exception types shared across the agent."""

from __future__ import annotations


class AgentError(Exception):
    """Base class for agent errors."""


class ConfigError(AgentError):
    """Configuration file or environment value is invalid."""


class BackendError(AgentError):
    """A backend call failed (transport error, HTTP error or tool error)."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation
