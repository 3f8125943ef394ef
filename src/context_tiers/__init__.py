"""Progressive context loading for agent instruction documents."""

from context_tiers.agents.resolver import ContextTierResolver
from context_tiers.agents.types import AgentDescriptor, Tier, TierSelection
from context_tiers.errors import (
    ContextTiersError,
    DescriptorError,
    InsufficientBudgetError,
    UnknownAgentError,
)

__all__ = [
    "AgentDescriptor",
    "ContextTierResolver",
    "ContextTiersError",
    "DescriptorError",
    "InsufficientBudgetError",
    "Tier",
    "TierSelection",
    "UnknownAgentError",
]
