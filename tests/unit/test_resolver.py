import pytest

from context_tiers.agents.resolver import ContextTierResolver
from context_tiers.agents.types import AgentDescriptor, Tier
from context_tiers.errors import DescriptorError, InsufficientBudgetError, UnknownAgentError


@pytest.fixture
def resolver(sample_descriptor: AgentDescriptor) -> ContextTierResolver:
    return ContextTierResolver({sample_descriptor.agent_id: sample_descriptor})


def test_budget_above_full_document_returns_full(resolver: ContextTierResolver) -> None:
    selection = resolver.resolve("project_structure_agent", 8000)
    assert selection.tier is Tier.FULL
    assert selection.token_count == 4066
    assert selection.reduction_percent == 0.0
    assert selection.representation.startswith("# Project Structure Agent")


def test_budget_equal_to_full_document_returns_full(resolver: ContextTierResolver) -> None:
    assert resolver.resolve("project_structure_agent", 4066).tier is Tier.FULL


def test_budget_between_minimal_and_standard_returns_minimal(
    resolver: ContextTierResolver,
) -> None:
    selection = resolver.resolve("project_structure_agent", 200)
    assert selection.tier is Tier.MINIMAL
    assert selection.token_count == 100
    assert selection.reduction_percent == pytest.approx(97.54, abs=0.01)
    assert selection.representation == {"summary": "Lays out repository structure"}


@pytest.mark.parametrize("budget", [100, 150, 249])
def test_minimal_range_is_inclusive_at_lower_bound(
    resolver: ContextTierResolver, budget: int
) -> None:
    assert resolver.resolve("project_structure_agent", budget).tier is Tier.MINIMAL


@pytest.mark.parametrize("budget", [250, 1000, 4065])
def test_standard_range(resolver: ContextTierResolver, budget: int) -> None:
    selection = resolver.resolve("project_structure_agent", budget)
    assert selection.tier is Tier.STANDARD
    assert selection.token_count == 250


def test_budget_below_minimal_fails_with_minimum(resolver: ContextTierResolver) -> None:
    with pytest.raises(InsufficientBudgetError) as exc_info:
        resolver.resolve("project_structure_agent", 50)
    assert exc_info.value.minimum_tokens == 100
    assert exc_info.value.budget_tokens == 50
    assert exc_info.value.retryable is False


def test_zero_budget_fails(resolver: ContextTierResolver) -> None:
    with pytest.raises(InsufficientBudgetError):
        resolver.resolve("project_structure_agent", 0)


def test_unknown_agent(resolver: ContextTierResolver) -> None:
    with pytest.raises(UnknownAgentError) as exc_info:
        resolver.resolve("nonexistent", 1000)
    assert exc_info.value.agent_id == "nonexistent"


@pytest.mark.parametrize("budget", [-1, 1.5, "100", True])
def test_invalid_budget_rejected(resolver: ContextTierResolver, budget: object) -> None:
    with pytest.raises(ValueError):
        resolver.resolve("project_structure_agent", budget)  # type: ignore[arg-type]


def test_resolve_is_idempotent(resolver: ContextTierResolver) -> None:
    first = resolver.resolve("project_structure_agent", 300)
    second = resolver.resolve("project_structure_agent", 300)
    assert first == second


def test_missing_tiers_are_skipped() -> None:
    descriptor = AgentDescriptor(
        agent_id="ui_ux_agent",
        full_document="# UI/UX",
        full_tokens=900,
        minimal_summary={"summary": "Designs flows"},
        minimal_tokens=80,
    )
    resolver = ContextTierResolver({"ui_ux_agent": descriptor})
    assert resolver.resolve("ui_ux_agent", 500).tier is Tier.MINIMAL
    assert resolver.resolve("ui_ux_agent", 900).tier is Tier.FULL


def test_full_only_agent_reports_full_document_as_minimum() -> None:
    descriptor = AgentDescriptor(agent_id="solo", full_document="# Solo", full_tokens=300)
    resolver = ContextTierResolver({"solo": descriptor})
    assert resolver.minimum_budget("solo") == 300
    with pytest.raises(InsufficientBudgetError) as exc_info:
        resolver.resolve("solo", 299)
    assert exc_info.value.minimum_tokens == 300


def test_table_is_copied_at_construction(sample_descriptor: AgentDescriptor) -> None:
    table = {sample_descriptor.agent_id: sample_descriptor}
    resolver = ContextTierResolver(table)
    table.clear()
    assert "project_structure_agent" in resolver
    assert len(resolver) == 1
    assert list(resolver) == ["project_structure_agent"]


def test_mismatched_table_key_rejected(sample_descriptor: AgentDescriptor) -> None:
    with pytest.raises(DescriptorError):
        ContextTierResolver({"other": sample_descriptor})


def test_selection_to_dict(resolver: ContextTierResolver) -> None:
    payload = resolver.resolve("project_structure_agent", 300).to_dict()
    assert payload == {
        "agent_id": "project_structure_agent",
        "representation_tier": "standard",
        "token_count": 250,
        "reduction_percent": 93.85,
    }


def test_mutating_a_selection_does_not_leak_into_the_table(
    resolver: ContextTierResolver,
) -> None:
    first = resolver.resolve("project_structure_agent", 300)
    first.representation["injected"] = "x"
    first.representation["capabilities"].append("extra")

    second = resolver.resolve("project_structure_agent", 300)
    assert "injected" not in second.representation
    assert second.representation["capabilities"] == ["folder_layout", "naming_conventions"]
