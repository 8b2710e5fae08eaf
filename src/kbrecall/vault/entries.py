"""Knowledge entry discovery, classification and light markdown structure."""

import re
from pathlib import Path
from typing import Any

from ..models import KnowledgeEntry

_FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL)
_HEADING_RE = re.compile(r"^(#{1,3})\s+(.+)$")


def classify_entry(rel_path: str, layout: dict[str, Any]) -> str:
    """Classify an entry by where it lives in the memory tree."""
    parts = Path(rel_path).parts
    name = Path(rel_path).name
    if rel_path in layout.get("core_files", []):
        return "core"
    if layout.get("daily_dir", "daily") in parts[:-1]:
        return "daily"
    if layout.get("weekly_dir", "weekly") in parts[:-1]:
        return "weekly"
    if layout.get("people_dir", "people") in parts[:-1]:
        return "people"
    if "OPERATING" in name:
        return "operational"
    return "topic"


def discover_entries(memory_path: str | Path, layout: dict[str, Any]) -> list[KnowledgeEntry]:
    """Find every markdown entry under the memory root.

    Hidden files and directories, and any directory listed in ``skip_dirs``,
    are ignored. Paths are returned root-relative with forward slashes, sorted.
    """
    root = Path(memory_path)
    if not root.exists():
        return []

    skip = set(layout.get("skip_dirs", []))
    entries = []
    for md_file in sorted(root.rglob("*.md")):
        rel = md_file.relative_to(root)
        if any(part.startswith(".") for part in rel.parts):
            continue
        if any(part in skip for part in rel.parts[:-1]):
            continue
        rel_path = rel.as_posix()
        entries.append(KnowledgeEntry(path=rel_path, type=classify_entry(rel_path, layout), root=root))
    return entries


def strip_frontmatter(text: str) -> str:
    """Drop a leading YAML frontmatter block, if any."""
    fm_match = _FRONTMATTER_RE.match(text)
    return text[fm_match.end():] if fm_match else text


def normalize_heading(heading: str) -> str:
    heading = heading.lower()
    heading = re.sub(r"[^a-z0-9\s]", "", heading)
    return re.sub(r"\s+", " ", heading).strip()


def extract_headings(text: str) -> set[str]:
    """Normalized level 1-3 headings, ignoring very short ones."""
    headings = set()
    for line in text.splitlines():
        match = _HEADING_RE.match(line)
        if match:
            normalized = normalize_heading(match.group(2))
            if len(normalized) > 3:
                headings.add(normalized)
    return headings


def split_sections(text: str) -> list[tuple[str, str]]:
    """Split an entry into ``(heading, body)`` sections.

    Text before the first heading becomes a section with an empty heading.
    Sections with no body text are dropped.
    """
    sections: list[tuple[str, str]] = []
    header = ""
    lines: list[str] = []
    for line in strip_frontmatter(text).splitlines():
        match = _HEADING_RE.match(line)
        if match:
            body = "\n".join(lines).strip()
            if body:
                sections.append((header, body))
            header = match.group(2).strip()
            lines = [line]
        else:
            lines.append(line)
    body = "\n".join(lines).strip()
    if body:
        sections.append((header, body))
    return sections


def first_segment(entry_path: str, memory_path: str | Path, max_chars: int = 300) -> str | None:
    """The first stored text segment of an entry, or None if unreadable."""
    try:
        text = (Path(memory_path) / entry_path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    sections = split_sections(text)
    if not sections:
        return None
    return sections[0][1][:max_chars]
