"""Agent descriptor loader from disk with hot-reload support.

Layout::

    <agents_dir>/<agent_id>.md          full prose document (required)
    <summaries_dir>/<agent_id>.json     condensed summaries (optional)

An agent without a summary file only has the full tier.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from context_tiers.agents.sections import collect_md_references
from context_tiers.agents.types import AgentDescriptor
from context_tiers.errors import DescriptorError

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".md"
SUMMARY_SUFFIX = ".json"
IGNORED_DOCUMENTS = frozenset({"readme.md", "index.md"})

# Fields kept in the minimal tier when a summary has no context_recommendations.
MINIMAL_FIELDS = ("meta", "summary", "capabilities", "key_findings", "decisions", "next_agent_needs")
SUMMARY_LEVELS = ("minimal", "standard")
MD_REFERENCES_SECTION = "all_md_references_as_needed"

# Cache: agents_dir -> (agent ids, dir mtime)
_agent_ids_cache: dict[str, tuple[frozenset[str], float]] = {}

SourceSignature = tuple[tuple[str, float | None], ...]

# Cache: (agent_id, document path, summary path) -> (descriptor, source signature)
_descriptor_cache: dict[tuple[str, str, str], tuple[AgentDescriptor, SourceSignature]] = {}


def reset_loader_caches() -> None:
    """Clear in-process caches so agent discovery and descriptors are reloaded from disk."""
    _agent_ids_cache.clear()
    _descriptor_cache.clear()


def get_all_agent_ids(agents_dir: Path) -> frozenset[str]:
    """Discover agent ids from the markdown documents in ``agents_dir``."""
    if not agents_dir.is_dir():
        return frozenset()

    key = str(agents_dir)
    root_mtime = agents_dir.stat().st_mtime
    cached = _agent_ids_cache.get(key)
    if cached is not None:
        cached_ids, cached_mtime = cached
        if root_mtime <= cached_mtime:
            return cached_ids

    ids = frozenset(
        candidate.stem
        for candidate in agents_dir.iterdir()
        if candidate.is_file()
        and candidate.suffix == DOCUMENT_SUFFIX
        and candidate.name.lower() not in IGNORED_DOCUMENTS
    )
    _agent_ids_cache[key] = (ids, root_mtime)
    return ids


def _document_path(agent_id: str, agents_dir: Path) -> Path:
    return agents_dir / f"{agent_id}{DOCUMENT_SUFFIX}"


def _summary_path(agent_id: str, summaries_dir: Path | None) -> Path | None:
    if summaries_dir is None:
        return None
    return summaries_dir / f"{agent_id}{SUMMARY_SUFFIX}"


def _read_summary(path: Path | None) -> dict[str, Any] | None:
    if path is None or not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise DescriptorError(f"invalid summary JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise DescriptorError(f"summary {path} must contain a JSON object")
    return data


def _lookup_path(payload: dict[str, Any], dotted: str) -> tuple[bool, Any]:
    node: Any = payload
    for part in dotted.split("."):
        if not isinstance(node, dict) or part not in node:
            return False, None
        node = node[part]
    return True, node


def _declared_tokens(agent_id: str, level: str, raw: Any) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
        raise DescriptorError(
            f"agent {agent_id}: context_recommendations.{level}.tokens must be a "
            f"non-negative integer, got {raw!r}"
        )
    return raw


def _build_level(
    agent_id: str,
    summary: dict[str, Any],
    level: str,
    visiting: frozenset[str] = frozenset(),
) -> tuple[dict[str, Any] | None, int | None]:
    recommendations = summary.get("context_recommendations") or {}
    spec = recommendations.get(level)
    if isinstance(spec, dict):
        sections = spec.get("sections") or []
        if not isinstance(sections, list):
            raise DescriptorError(
                f"agent {agent_id}: context_recommendations.{level}.sections must be a "
                f"list, got {type(sections).__name__}"
            )
        declared = _declared_tokens(agent_id, level, spec.get("tokens"))
    elif isinstance(spec, list):
        # legacy shape: a bare list of sections
        sections = spec
        declared = None
    else:
        return None, None

    context: dict[str, Any] = {}
    for section in sections:
        if not isinstance(section, str):
            continue
        if section in SUMMARY_LEVELS:
            if section == level or section in visiting:
                continue
            nested, _ = _build_level(agent_id, summary, section, visiting | {level})
            if nested:
                context.update(nested)
        elif section == MD_REFERENCES_SECTION:
            references = collect_md_references(summary)
            if references:
                context["md_references"] = references
        elif "." in section:
            found, value = _lookup_path(summary, section)
            if found:
                context[section] = value
        elif section in summary:
            context[section] = summary[section]

    if not context:
        return None, None
    return context, declared


def build_summary_tiers(
    agent_id: str, summary: dict[str, Any]
) -> tuple[dict[str, Any] | None, int | None, dict[str, Any] | None, int | None]:
    """Derive ``(minimal, minimal_tokens, standard, standard_tokens)`` from a summary.

    Token counts are ``None`` when the summary does not declare them; the
    descriptor estimates those.
    """
    if isinstance(summary.get("context_recommendations"), dict):
        minimal, minimal_tokens = _build_level(agent_id, summary, "minimal")
        standard, standard_tokens = _build_level(agent_id, summary, "standard")
        return minimal, minimal_tokens, standard, standard_tokens

    minimal_fields = {key: summary[key] for key in MINIMAL_FIELDS if key in summary}
    return minimal_fields or None, None, summary, None


def _get_sources_signature(paths: list[Path | None]) -> SourceSignature:
    """(path, mtime) per source file; mtime is None for a file that is absent."""
    signature: list[tuple[str, float | None]] = []
    for path in paths:
        if path is None:
            continue
        mtime = path.stat().st_mtime if path.is_file() else None
        signature.append((str(path), mtime))
    return tuple(signature)


def load_descriptor(
    agent_id: str, agents_dir: Path, summaries_dir: Path | None = None
) -> AgentDescriptor:
    doc_path = _document_path(agent_id, agents_dir)
    if not doc_path.is_file():
        raise DescriptorError(f"agent {agent_id} missing full document: {doc_path}")
    summary_path = _summary_path(agent_id, summaries_dir)

    full_document = doc_path.read_text(encoding="utf-8")
    summary = _read_summary(summary_path)
    if summary is None:
        descriptor = AgentDescriptor.from_documents(
            agent_id, full_document, source_path=str(doc_path)
        )
    else:
        minimal, minimal_tokens, standard, standard_tokens = build_summary_tiers(
            agent_id, summary
        )
        descriptor = AgentDescriptor.from_documents(
            agent_id,
            full_document,
            minimal_summary=minimal,
            minimal_tokens=minimal_tokens,
            standard_summary=standard,
            standard_tokens=standard_tokens,
            source_path=str(doc_path),
        )

    key = (agent_id, str(doc_path), str(summary_path or ""))
    _descriptor_cache[key] = (descriptor, _get_sources_signature([doc_path, summary_path]))
    return descriptor


def load_descriptor_cached(
    agent_id: str, agents_dir: Path, summaries_dir: Path | None = None
) -> AgentDescriptor:
    """Load a descriptor, using cache while no source file was touched, added or removed."""
    doc_path = _document_path(agent_id, agents_dir)
    summary_path = _summary_path(agent_id, summaries_dir)
    key = (agent_id, str(doc_path), str(summary_path or ""))
    current = _get_sources_signature([doc_path, summary_path])

    cached = _descriptor_cache.get(key)
    if cached is not None:
        descriptor, signature = cached
        if current == signature:
            return descriptor
        logger.info("Hot-reloading agent descriptor: %s (sources changed)", agent_id)

    return load_descriptor(agent_id, agents_dir, summaries_dir)


def _orphan_summaries(agent_ids: frozenset[str], summaries_dir: Path | None) -> list[Path]:
    if summaries_dir is None or not summaries_dir.is_dir():
        return []
    return [
        candidate
        for candidate in sorted(summaries_dir.iterdir())
        if candidate.is_file()
        and candidate.suffix == SUMMARY_SUFFIX
        and candidate.stem not in agent_ids
    ]


def load_descriptor_table(
    agents_dir: Path, summaries_dir: Path | None = None
) -> dict[str, AgentDescriptor]:
    if not agents_dir.is_dir():
        raise DescriptorError(f"agents directory does not exist: {agents_dir}")
    agent_ids = get_all_agent_ids(agents_dir)
    if not agent_ids:
        raise DescriptorError(f"no agent documents found in {agents_dir}")

    descriptors: dict[str, AgentDescriptor] = {}
    for agent_id in sorted(agent_ids):
        try:
            descriptors[agent_id] = load_descriptor_cached(agent_id, agents_dir, summaries_dir)
        except DescriptorError as exc:
            # unusable summary: serve the full document only, `validate` reports the cause
            logger.warning("Ignoring summaries for %s: %s", agent_id, exc)
            descriptors[agent_id] = load_descriptor_cached(agent_id, agents_dir, None)

    for orphan in _orphan_summaries(agent_ids, summaries_dir):
        logger.warning("Skipping summary without a full document: %s", orphan)

    with_summaries = sum(1 for d in descriptors.values() if len(d.available_tiers()) > 1)
    logger.info(
        "Loaded %d agent descriptors from %s (%d with summaries)",
        len(descriptors),
        agents_dir,
        with_summaries,
    )
    return descriptors


def validate_descriptor_dirs(agents_dir: Path, summaries_dir: Path | None = None) -> list[str]:
    """Check every agent on disk and return all problems found."""
    errors: list[str] = []
    if not agents_dir.is_dir():
        errors.append(f"agents directory not found: {agents_dir}")
        return errors
    agent_ids = get_all_agent_ids(agents_dir)
    if not agent_ids:
        errors.append(f"no agent documents found in {agents_dir}")
        return errors

    for agent_id in sorted(agent_ids):
        prefix = f"[{agent_id}]"
        try:
            summary = _read_summary(_summary_path(agent_id, summaries_dir))
            if summary is not None:
                meta = summary.get("meta")
                meta_agent = meta.get("agent") if isinstance(meta, dict) else None
                if meta_agent is not None and meta_agent != agent_id:
                    errors.append(
                        f"{prefix} meta.agent mismatch: summary has '{meta_agent}', "
                        f"document is '{agent_id}'"
                    )
            load_descriptor(agent_id, agents_dir, summaries_dir)
        except DescriptorError as exc:
            errors.append(f"{prefix} {exc}")

    for orphan in _orphan_summaries(agent_ids, summaries_dir):
        errors.append(f"[{orphan.stem}] summary has no matching document: {orphan.name}")
    return errors
