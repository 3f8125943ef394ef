"""Split one token budget across several agents and resolve each share."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from context_tiers.agents.resolver import ContextTierResolver
from context_tiers.agents.types import Tier, TierSelection
from context_tiers.errors import InsufficientBudgetError

logger = logging.getLogger(__name__)

TASK_TIERS: dict[str, Tier] = {
    "quick_lookup": Tier.MINIMAL,
    "data_retrieval": Tier.MINIMAL,
    "analysis": Tier.STANDARD,
    "implementation": Tier.FULL,
    "deep_research": Tier.FULL,
    "complex_task": Tier.FULL,
}
DEFAULT_TASK_TIER = Tier.STANDARD

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

# Below these shares, the recommended tier is capped regardless of task.
MINIMAL_ONLY_BELOW = 1000
STANDARD_ONLY_BELOW = 5000


@dataclass(frozen=True, slots=True)
class AgentRequest:
    agent_id: str
    task: str = "analysis"
    priority: str = "medium"


@dataclass(slots=True)
class Allocation:
    agent_id: str
    priority: str
    budget_tokens: int
    recommended_tier: Tier
    selection: TierSelection | None = None
    minimum_tokens: int | None = None

    @property
    def loaded(self) -> bool:
        return self.selection is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "priority": self.priority,
            "budget_tokens": self.budget_tokens,
            "recommended_tier": self.recommended_tier.value,
            "selection": self.selection.to_dict() if self.selection else None,
            "minimum_tokens": self.minimum_tokens,
        }


@dataclass(slots=True)
class LoadingPlan:
    total_budget: int
    reserved_tokens: int
    per_agent_tokens: int
    allocations: list[Allocation] = field(default_factory=list)

    @property
    def loading_order(self) -> list[str]:
        return [allocation.agent_id for allocation in self.allocations]

    @property
    def used_tokens(self) -> int:
        return sum(a.selection.token_count for a in self.allocations if a.selection)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_budget": self.total_budget,
            "reserved_tokens": self.reserved_tokens,
            "per_agent_tokens": self.per_agent_tokens,
            "used_tokens": self.used_tokens,
            "loading_order": self.loading_order,
            "allocations": [allocation.to_dict() for allocation in self.allocations],
        }


def recommend_tier(task: str, available_tokens: int) -> Tier:
    """Tier suggested by the kind of task, capped by how many tokens are available."""
    recommended = TASK_TIERS.get(task, DEFAULT_TASK_TIER)
    if available_tokens < MINIMAL_ONLY_BELOW:
        return Tier.MINIMAL
    if available_tokens < STANDARD_ONLY_BELOW and recommended is Tier.FULL:
        return Tier.STANDARD
    return recommended


def build_loading_plan(
    resolver: ContextTierResolver,
    requests: Iterable[AgentRequest],
    total_budget: int,
    reserved_fraction: float = 0.2,
) -> LoadingPlan:
    if isinstance(total_budget, bool) or not isinstance(total_budget, int) or total_budget < 0:
        raise ValueError(f"total_budget must be a non-negative integer, got {total_budget!r}")
    if not 0 <= reserved_fraction < 1:
        raise ValueError(f"reserved_fraction must be in [0, 1), got {reserved_fraction}")

    ordered = sorted(requests, key=lambda r: PRIORITY_ORDER.get(r.priority, 1))
    reserved = int(total_budget * reserved_fraction)
    per_agent = (total_budget - reserved) // len(ordered) if ordered else 0
    plan = LoadingPlan(
        total_budget=total_budget,
        reserved_tokens=reserved,
        per_agent_tokens=per_agent,
    )

    for request in ordered:
        descriptor = resolver.get(request.agent_id)
        recommended = recommend_tier(request.task, per_agent)
        budget = per_agent
        cap = descriptor.token_count(recommended)
        if cap is not None:
            budget = min(budget, cap)
        allocation = Allocation(
            agent_id=request.agent_id,
            priority=request.priority,
            budget_tokens=budget,
            recommended_tier=recommended,
        )
        try:
            allocation.selection = resolver.resolve(request.agent_id, budget)
        except InsufficientBudgetError as exc:
            allocation.minimum_tokens = exc.minimum_tokens
            logger.warning(
                "Plan share of %d tokens too small for %s (needs %d)",
                budget,
                request.agent_id,
                exc.minimum_tokens,
            )
        plan.allocations.append(allocation)

    logger.info(
        "Built loading plan for %d agents: %d/%d tokens used",
        len(plan.allocations),
        plan.used_tokens,
        total_budget,
    )
    return plan
