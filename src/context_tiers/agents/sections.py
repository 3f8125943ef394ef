"""Markdown section lookup for ``path/file.md#anchor`` references.

Summaries point back into the full document with ``md_reference`` fields so a
caller holding a small tier can pull in one section instead of the whole file.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from context_tiers.errors import SectionNotFoundError
from context_tiers.tokens import estimate_tokens

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)(?:\s+#+)?\s*$")
_SLUG_DROP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class MarkdownSection:
    heading: str
    anchor: str
    level: int
    content: str
    tokens: int


def slugify_heading(heading: str) -> str:
    slug = _SLUG_DROP_RE.sub("", heading.strip().lower())
    return _SLUG_SPACE_RE.sub("-", slug)


def extract_section(markdown: str, anchor: str) -> MarkdownSection:
    """Return the section whose heading slug is ``anchor``.

    The section runs up to the next heading of the same or a higher level.
    Headings inside fenced code blocks are ignored.
    """
    lines = markdown.splitlines()
    start = -1
    end = len(lines)
    level = 0
    heading = ""
    in_fence = False
    for index, line in enumerate(lines):
        if line.lstrip().startswith("```"):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = _HEADING_RE.match(line)
        if not match:
            continue
        current_level = len(match.group(1))
        if start == -1:
            if slugify_heading(match.group(2)) == anchor:
                start = index
                level = current_level
                heading = match.group(2)
        elif current_level <= level:
            end = index
            break

    if start == -1:
        raise SectionNotFoundError(f"section anchor not found: {anchor}")

    content = "\n".join(lines[start:end]).rstrip()
    return MarkdownSection(
        heading=heading,
        anchor=anchor,
        level=level,
        content=content,
        tokens=estimate_tokens(content),
    )


def parse_reference(reference: str) -> tuple[str, str]:
    path, sep, anchor = reference.partition("#")
    if not sep or not path.strip() or not anchor.strip():
        raise ValueError(f"invalid section reference: {reference!r}")
    return path.strip(), anchor.strip()


def load_section_by_reference(reference: str, root: Path) -> MarkdownSection:
    rel_path, anchor = parse_reference(reference)
    doc_path = root / rel_path
    if not doc_path.is_file():
        raise SectionNotFoundError(f"referenced document not found: {doc_path}")
    return extract_section(doc_path.read_text(encoding="utf-8"), anchor)


def collect_md_references(payload: Any) -> dict[str, str]:
    """Map the dotted path of every ``md_reference`` field to its reference."""
    references: dict[str, str] = {}

    def _walk(node: Any, path: str) -> None:
        if isinstance(node, dict):
            for key, value in node.items():
                current = f"{path}.{key}" if path else str(key)
                if key == "md_reference" and isinstance(value, str):
                    references[path or "md_reference"] = value
                else:
                    _walk(value, current)
        elif isinstance(node, list):
            for index, item in enumerate(node):
                _walk(item, f"{path}.{index}" if path else str(index))

    _walk(payload, "")
    return references
