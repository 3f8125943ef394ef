"""context-tiers exception hierarchy.

All library exceptions inherit from ContextTiersError so callers can catch
one base class. None of them are retried internally.
"""


class ContextTiersError(Exception):
    """Base exception for all context-tiers errors."""

    def __init__(self, message: str = "", *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class UnknownAgentError(ContextTiersError):
    """No descriptor is registered under the requested agent id."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"unknown agent: {agent_id}")
        self.agent_id = agent_id


class InsufficientBudgetError(ContextTiersError):
    """No representation of the agent fits inside the requested budget."""

    def __init__(self, agent_id: str, budget_tokens: int, minimum_tokens: int) -> None:
        super().__init__(
            f"budget of {budget_tokens} tokens is too small for agent {agent_id}; "
            f"minimum is {minimum_tokens}"
        )
        self.agent_id = agent_id
        self.budget_tokens = budget_tokens
        self.minimum_tokens = minimum_tokens


class DescriptorError(ContextTiersError):
    """An agent descriptor or its source files are invalid."""


class SectionNotFoundError(ContextTiersError):
    """A markdown section reference could not be resolved."""


class ConfigError(ContextTiersError, ValueError):
    """Invalid or missing configuration."""
