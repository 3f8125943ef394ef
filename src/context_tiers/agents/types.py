"""Agent descriptor data models."""

from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from context_tiers.errors import DescriptorError
from context_tiers.tokens import estimate_json_tokens, estimate_tokens


class Tier(str, Enum):
    MINIMAL = "minimal"
    STANDARD = "standard"
    FULL = "full"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {Tier.MINIMAL: 0, Tier.STANDARD: 1, Tier.FULL: 2}

# Most detailed first; the resolver walks this ladder top-down.
TIER_LADDER: tuple[Tier, ...] = (Tier.FULL, Tier.STANDARD, Tier.MINIMAL)


@dataclass(frozen=True, slots=True)
class AgentDescriptor:
    """One agent and its three representations.

    Summaries are optional. A summary and its token count are set together,
    and token counts never decrease from minimal to standard to full.

    Summaries are deep-copied on construction and ``representation()`` hands
    out a fresh copy, so callers never share mutable state with the table.
    """

    agent_id: str
    full_document: str
    full_tokens: int
    minimal_summary: dict[str, Any] | None = None
    minimal_tokens: int | None = None
    standard_summary: dict[str, Any] | None = None
    standard_tokens: int | None = None
    source_path: str = ""

    def __post_init__(self) -> None:
        if not self.agent_id or not self.agent_id.strip():
            raise DescriptorError("agent descriptor requires a non-empty agent_id")
        object.__setattr__(self, "minimal_summary", copy.deepcopy(self.minimal_summary))
        object.__setattr__(self, "standard_summary", copy.deepcopy(self.standard_summary))
        for tier in Tier:
            payload = self._payload(tier)
            tokens = self.token_count(tier)
            if (payload is None) != (tokens is None):
                raise DescriptorError(
                    f"agent {self.agent_id}: {tier.value} representation and token count "
                    "must be set together"
                )
            if tokens is not None and (
                isinstance(tokens, bool) or not isinstance(tokens, int) or tokens < 0
            ):
                raise DescriptorError(
                    f"agent {self.agent_id}: {tier.value} token count must be a "
                    f"non-negative integer, got {tokens!r}"
                )
        previous: tuple[Tier, int] | None = None
        for tier in self.available_tiers():
            tokens = self.token_count(tier) or 0
            if previous is not None and tokens < previous[1]:
                raise DescriptorError(
                    f"agent {self.agent_id}: {tier.value} tier has {tokens} tokens, "
                    f"fewer than {previous[0].value} tier ({previous[1]})"
                )
            previous = (tier, tokens)

    def _payload(self, tier: Tier) -> str | dict[str, Any] | None:
        if tier is Tier.FULL:
            return self.full_document
        if tier is Tier.STANDARD:
            return self.standard_summary
        return self.minimal_summary

    def representation(self, tier: Tier) -> str | dict[str, Any] | None:
        """Content of ``tier``; summaries come back as a caller-owned copy."""
        payload = self._payload(tier)
        if isinstance(payload, dict):
            return copy.deepcopy(payload)
        return payload

    def token_count(self, tier: Tier) -> int | None:
        if tier is Tier.FULL:
            return self.full_tokens
        if tier is Tier.STANDARD:
            return self.standard_tokens
        return self.minimal_tokens

    def available_tiers(self) -> tuple[Tier, ...]:
        """Present tiers, least detailed first."""
        return tuple(
            tier
            for tier in sorted(Tier, key=lambda t: t.rank)
            if self._payload(tier) is not None
        )

    @classmethod
    def from_documents(
        cls,
        agent_id: str,
        full_document: str,
        *,
        minimal_summary: dict[str, Any] | None = None,
        standard_summary: dict[str, Any] | None = None,
        minimal_tokens: int | None = None,
        standard_tokens: int | None = None,
        full_tokens: int | None = None,
        source_path: str = "",
        text_estimator: Callable[[str], int] = estimate_tokens,
        json_estimator: Callable[[Any], int] = estimate_json_tokens,
    ) -> AgentDescriptor:
        """Build a descriptor, estimating any token count that was not given."""
        if minimal_summary is not None and minimal_tokens is None:
            minimal_tokens = json_estimator(minimal_summary)
        if standard_summary is not None and standard_tokens is None:
            standard_tokens = json_estimator(standard_summary)
        if full_tokens is None:
            full_tokens = text_estimator(full_document)
        return cls(
            agent_id=agent_id,
            full_document=full_document,
            full_tokens=full_tokens,
            minimal_summary=minimal_summary,
            minimal_tokens=minimal_tokens,
            standard_summary=standard_summary,
            standard_tokens=standard_tokens,
            source_path=source_path,
        )


@dataclass(frozen=True, slots=True)
class TierSelection:
    agent_id: str
    tier: Tier
    representation: str | dict[str, Any]
    token_count: int
    full_tokens: int

    @property
    def reduction_percent(self) -> float:
        """Token saving of the chosen tier relative to the full document, in percent."""
        if self.full_tokens <= 0:
            return 0.0
        return (1 - self.token_count / self.full_tokens) * 100

    def to_dict(self, *, include_representation: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "agent_id": self.agent_id,
            "representation_tier": self.tier.value,
            "token_count": self.token_count,
            "reduction_percent": round(self.reduction_percent, 2),
        }
        if include_representation:
            payload["representation"] = self.representation
        return payload
