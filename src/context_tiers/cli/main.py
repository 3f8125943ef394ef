"""Click CLI group: list, resolve, plan, validate, and section commands."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import click

from context_tiers.agents.loader import load_descriptor_table, validate_descriptor_dirs
from context_tiers.agents.resolver import ContextTierResolver
from context_tiers.agents.sections import load_section_by_reference
from context_tiers.agents.strategy import AgentRequest, build_loading_plan
from context_tiers.agents.types import Tier
from context_tiers.config import get_settings, validate_settings
from context_tiers.errors import ContextTiersError
from context_tiers.logging import bind_context, clear_context, configure_logging


@dataclass(slots=True)
class CliState:
    agents_dir: Path
    summaries_dir: Path | None

    def resolver(self) -> ContextTierResolver:
        try:
            return ContextTierResolver(load_descriptor_table(self.agents_dir, self.summaries_dir))
        except ContextTiersError as exc:
            raise click.ClickException(str(exc)) from exc


def parse_agent_spec(spec: str) -> AgentRequest:
    """Parse ``agent_id[:task[:priority]]``."""
    parts = [part.strip() for part in spec.split(":")]
    if not parts[0] or len(parts) > 3:
        raise click.BadParameter(f"expected agent_id[:task[:priority]], got {spec!r}")
    request = AgentRequest(agent_id=parts[0])
    if len(parts) > 1 and parts[1]:
        request = AgentRequest(agent_id=request.agent_id, task=parts[1])
    if len(parts) > 2 and parts[2]:
        request = AgentRequest(agent_id=request.agent_id, task=request.task, priority=parts[2])
    return request


def _format_tokens(tokens: int | None) -> str:
    return "-" if tokens is None else str(tokens)


@click.group()
@click.option(
    "--agents-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Directory of <agent_id>.md documents (default: AGENTS_DIR).",
)
@click.option(
    "--summaries-dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Directory of <agent_id>.json summaries (default: SUMMARIES_DIR).",
)
@click.pass_context
def cli(ctx: click.Context, agents_dir: Path | None, summaries_dir: Path | None) -> None:
    """Resolve agent instructions to the context tier that fits a token budget."""
    settings = get_settings()
    try:
        validate_settings(settings)
    except ContextTiersError as exc:
        raise click.ClickException(str(exc)) from exc
    configure_logging(settings.log_level, json_output=settings.app_env == "prod")
    clear_context()
    bind_context(command=ctx.invoked_subcommand)
    ctx.obj = CliState(
        agents_dir=agents_dir or Path(settings.agents_dir),
        summaries_dir=summaries_dir or Path(settings.summaries_dir),
    )


@cli.command("list")
@click.option("--json", "json_output", is_flag=True, help="Print structured JSON output.")
@click.pass_obj
def list_agents(state: CliState, json_output: bool) -> None:
    """List agents with the token count of each tier."""
    resolver = state.resolver()
    rows = []
    for agent_id in resolver.agent_ids():
        descriptor = resolver.get(agent_id)
        rows.append({"agent_id": agent_id, **{t.value: descriptor.token_count(t) for t in Tier}})
    if json_output:
        click.echo(json.dumps(rows, indent=2))
        return
    for row in rows:
        click.echo(
            f"{row['agent_id']}: minimal={_format_tokens(row['minimal'])} "
            f"standard={_format_tokens(row['standard'])} full={row['full']}"
        )


@cli.command()
@click.argument("agent_id")
@click.option("--budget", type=click.IntRange(min=0), default=None, help="Token budget.")
@click.option("--json", "json_output", is_flag=True, help="Print structured JSON output.")
@click.option("--show-content", is_flag=True, help="Print the chosen representation.")
@click.pass_obj
def resolve(
    state: CliState,
    agent_id: str,
    budget: int | None,
    json_output: bool,
    show_content: bool,
) -> None:
    """Pick the most detailed representation of AGENT_ID within the budget."""
    if budget is None:
        budget = get_settings().default_budget_tokens
    bind_context(agent_id=agent_id, budget_tokens=budget)
    resolver = state.resolver()
    try:
        selection = resolver.resolve(agent_id, budget)
    except ContextTiersError as exc:
        raise click.ClickException(str(exc)) from exc

    if json_output:
        click.echo(json.dumps(selection.to_dict(include_representation=show_content), indent=2))
        return
    click.echo(
        f"{agent_id}: {selection.tier.value} ({selection.token_count} tokens, "
        f"{selection.reduction_percent:.1f}% reduction)"
    )
    if show_content:
        content = selection.representation
        if not isinstance(content, str):
            content = json.dumps(content, indent=2)
        click.echo(content)


@cli.command()
@click.argument("specs", nargs=-1, required=True)
@click.option("--budget", type=click.IntRange(min=0), default=None, help="Total token budget.")
@click.option("--json", "json_output", is_flag=True, help="Print structured JSON output.")
@click.pass_obj
def plan(state: CliState, specs: tuple[str, ...], budget: int | None, json_output: bool) -> None:
    """Split a budget across agents given as agent_id[:task[:priority]]."""
    settings = get_settings()
    requests = [parse_agent_spec(spec) for spec in specs]
    if budget is None:
        budget = settings.default_budget_tokens
    bind_context(budget_tokens=budget)
    resolver = state.resolver()
    try:
        loading_plan = build_loading_plan(
            resolver,
            requests,
            budget,
            reserved_fraction=settings.plan_reserved_fraction,
        )
    except ContextTiersError as exc:
        raise click.ClickException(str(exc)) from exc

    if json_output:
        click.echo(json.dumps(loading_plan.to_dict(), indent=2))
        return
    click.echo(
        f"budget: {loading_plan.total_budget} (reserved {loading_plan.reserved_tokens}, "
        f"{loading_plan.per_agent_tokens} per agent)"
    )
    for allocation in loading_plan.allocations:
        if allocation.selection is None:
            click.echo(
                f"  {allocation.agent_id}: skipped (needs {allocation.minimum_tokens} tokens)"
            )
        else:
            click.echo(
                f"  {allocation.agent_id}: {allocation.selection.tier.value} "
                f"({allocation.selection.token_count} tokens)"
            )
    click.echo(f"used: {loading_plan.used_tokens}")


@cli.command()
@click.pass_obj
def validate(state: CliState) -> None:
    """Check every agent document and summary, reporting all problems."""
    errors = validate_descriptor_dirs(state.agents_dir, state.summaries_dir)
    if errors:
        click.echo(f"{len(errors)} error(s) found:")
        for err in errors:
            click.echo(f"  ERROR: {err}")
        raise SystemExit(1)
    click.echo("All agent descriptors valid.")


@cli.command()
@click.argument("reference")
@click.option(
    "--root",
    type=click.Path(path_type=Path, file_okay=False),
    default=Path("."),
    show_default=True,
    help="Directory the reference path is relative to.",
)
def section(reference: str, root: Path) -> None:
    """Print one markdown section given as path/file.md#anchor."""
    try:
        found = load_section_by_reference(reference, root)
    except (ContextTiersError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(found.content)
    click.echo(f"\n({found.tokens} tokens)", err=True)
