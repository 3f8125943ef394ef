"""Context-tier resolution: pick the most detailed representation that fits a budget."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from types import MappingProxyType

from context_tiers.agents.types import TIER_LADDER, AgentDescriptor, TierSelection
from context_tiers.errors import DescriptorError, InsufficientBudgetError, UnknownAgentError

logger = logging.getLogger(__name__)


class ContextTierResolver:
    """Read-only resolver over an injected descriptor table.

    The table is copied at construction, so later changes to the caller's
    mapping are not observed. Safe to share between threads.
    """

    def __init__(self, descriptors: Mapping[str, AgentDescriptor]) -> None:
        table: dict[str, AgentDescriptor] = {}
        for key, descriptor in descriptors.items():
            if key != descriptor.agent_id:
                raise DescriptorError(
                    f"descriptor table key {key!r} does not match agent_id "
                    f"{descriptor.agent_id!r}"
                )
            table[key] = descriptor
        self._descriptors: Mapping[str, AgentDescriptor] = MappingProxyType(table)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[str]:
        return iter(self.agent_ids())

    def agent_ids(self) -> list[str]:
        return sorted(self._descriptors)

    def get(self, agent_id: str) -> AgentDescriptor:
        descriptor = self._descriptors.get(agent_id)
        if descriptor is None:
            raise UnknownAgentError(agent_id)
        return descriptor

    def minimum_budget(self, agent_id: str) -> int:
        """Smallest budget that resolves for this agent: its least detailed tier."""
        descriptor = self.get(agent_id)
        least_detailed = descriptor.available_tiers()[0]
        return descriptor.token_count(least_detailed) or 0

    def resolve(self, agent_id: str, budget_tokens: int) -> TierSelection:
        """Return the most detailed tier of ``agent_id`` that fits ``budget_tokens``.

        Tiers missing from the descriptor are skipped. Raises
        ``UnknownAgentError`` for unregistered ids and ``InsufficientBudgetError``
        (carrying the minimum viable budget) when no tier fits.
        """
        descriptor = self.get(agent_id)
        if isinstance(budget_tokens, bool) or not isinstance(budget_tokens, int):
            raise ValueError(f"budget_tokens must be an integer, got {budget_tokens!r}")
        if budget_tokens < 0:
            raise ValueError(f"budget_tokens must be >= 0, got {budget_tokens}")

        for tier in TIER_LADDER:
            tokens = descriptor.token_count(tier)
            if tokens is None or tokens > budget_tokens:
                continue
            representation = descriptor.representation(tier)
            if representation is None:
                continue
            selection = TierSelection(
                agent_id=agent_id,
                tier=tier,
                representation=representation,
                token_count=tokens,
                full_tokens=descriptor.full_tokens,
            )
            logger.debug(
                "resolved %s to %s tier (%d/%d tokens, budget %d)",
                agent_id,
                tier.value,
                tokens,
                descriptor.full_tokens,
                budget_tokens,
            )
            return selection

        raise InsufficientBudgetError(agent_id, budget_tokens, self.minimum_budget(agent_id))
