import json
from pathlib import Path

import pytest

from context_tiers.agents.loader import reset_loader_caches
from context_tiers.agents.types import AgentDescriptor
from context_tiers.config import get_settings
from context_tiers.tokens import reset_tokenizer_cache


@pytest.fixture(autouse=True)
def test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("TOKEN_ESTIMATOR", "heuristic")
    monkeypatch.setenv("CHARS_PER_TOKEN", "4")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    reset_tokenizer_cache()
    reset_loader_caches()
    yield
    get_settings.cache_clear()
    reset_tokenizer_cache()
    reset_loader_caches()


@pytest.fixture
def sample_descriptor() -> AgentDescriptor:
    return AgentDescriptor(
        agent_id="project_structure_agent",
        full_document="# Project Structure Agent\n\nFull instructions.\n",
        full_tokens=4066,
        minimal_summary={"summary": "Lays out repository structure"},
        minimal_tokens=100,
        standard_summary={
            "summary": "Lays out repository structure",
            "capabilities": ["folder_layout", "naming_conventions"],
        },
        standard_tokens=250,
    )


def write_agent(
    agents_dir: Path,
    agent_id: str,
    body: str,
    summary: dict | None = None,
    summaries_dir: Path | None = None,
) -> None:
    agents_dir.mkdir(parents=True, exist_ok=True)
    (agents_dir / f"{agent_id}.md").write_text(body, encoding="utf-8")
    if summary is not None:
        assert summaries_dir is not None
        summaries_dir.mkdir(parents=True, exist_ok=True)
        (summaries_dir / f"{agent_id}.json").write_text(json.dumps(summary), encoding="utf-8")


PRD_DOCUMENT = (
    "# PRD Agent\n\n"
    "## Overview\n"
    "Creates comprehensive Product Requirements Documents.\n\n"
    "## Core Responsibilities\n"
    "- **Requirements Gathering**: interview stakeholders.\n"
    "- **User Story Creation**: write stories with acceptance criteria.\n\n"
    "### Prioritization\n"
    "Rank features by value and effort.\n\n"
    "## Workflows\n"
    "### 1. New Feature\n"
    "Validate, research, document.\n"
) + ("Detailed guidance paragraph for requirements work. " * 120)

PRD_SUMMARY = {
    "meta": {"agent": "prd_agent", "version": "1.0.0", "source_file": "ai-agents/prd_agent.md"},
    "summary": "Creates comprehensive Product Requirements Documents",
    "capabilities": ["requirements_gathering", "user_story_creation"],
    "workflows": {
        "available": ["new_feature"],
        "new_feature": {
            "description": "Workflow for new feature requirements",
            "md_reference": "ai-agents/prd_agent.md#workflows",
        },
    },
    "responsibilities": {
        "md_reference": "ai-agents/prd_agent.md#core-responsibilities",
    },
    "context_recommendations": {
        "minimal": {"sections": ["meta", "summary"], "tokens": 100, "description": "Identity"},
        "standard": {
            "sections": ["minimal", "capabilities", "workflows.available"],
            "tokens": 250,
            "description": "Identity and capabilities",
        },
        "detailed": {"sections": ["standard", "all_md_references_as_needed"], "tokens": 900},
    },
}


@pytest.fixture
def agent_tree(tmp_path: Path) -> tuple[Path, Path]:
    agents_dir = tmp_path / "ai-agents"
    summaries_dir = tmp_path / "machine-data" / "ai-agents-json"
    write_agent(agents_dir, "prd_agent", PRD_DOCUMENT, PRD_SUMMARY, summaries_dir)
    write_agent(
        agents_dir,
        "coder_agent",
        "# Coder Agent\n\n" + ("Implements features with tests. " * 80),
        {
            "meta": {"agent": "coder_agent"},
            "summary": "Implements features",
            "capabilities": ["implementation", "refactoring"],
            "dependencies": {"required_before": ["prd_agent"]},
        },
        summaries_dir,
    )
    write_agent(agents_dir, "ui_ux_agent", "# UI/UX Agent\n\n" + ("Designs flows. " * 40))
    return agents_dir, summaries_dir
