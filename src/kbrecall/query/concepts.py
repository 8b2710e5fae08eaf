"""Concept index lookup: entity matching and concept-scored entry search."""

import json
import logging
import math
import re
from pathlib import Path
from typing import Any

from ..models import RankedResult
from ..vault.entries import first_segment

logger = logging.getLogger(__name__)


class ConceptIndex:
    """Read-only view over the persisted concept index.

    The index maps a canonical concept name to the entries that mention it::

        {"concepts": {"defi": {"files": {"topics/defi.md": {"count": 4, "sections": [...]}},
                               "related": ["yield"], "totalMentions": 12}}}

    A bare top-level concept mapping is accepted too.
    """

    def __init__(self, concepts: dict[str, dict[str, Any]] | None = None):
        self.concepts = {name.lower(): data for name, data in (concepts or {}).items()}

    @classmethod
    def load(cls, path: str | Path) -> "ConceptIndex":
        """Load the index, degrading to an empty one if it is missing or corrupt."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Concept index not found at {path}")
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Concept index at {path} is unreadable: {e}")
            return cls()
        if not isinstance(data, dict):
            logger.warning(f"Concept index at {path} has unexpected shape")
            return cls()
        concepts = data.get("concepts", data)
        if not isinstance(concepts, dict):
            return cls()
        return cls({k: v for k, v in concepts.items() if isinstance(v, dict)})

    def __contains__(self, name: str) -> bool:
        return name.lower() in self.concepts

    def __len__(self) -> int:
        return len(self.concepts)

    def names(self) -> list[str]:
        return sorted(self.concepts)

    def files_for(self, name: str) -> dict[str, dict[str, Any]]:
        """Entry path -> {count, sections} for one concept."""
        files = self.concepts.get(name.lower(), {}).get("files", {})
        return files if isinstance(files, dict) else {}

    def file_record(self, name: str, path: str) -> dict[str, Any]:
        """The per-entry record for one concept; anything but a mapping reads as empty."""
        record = self.files_for(name).get(path)
        return record if isinstance(record, dict) else {}

    def mention_count(self, name: str, path: str) -> float:
        """Positive mention count of a concept in one entry, 1 when missing or invalid."""
        try:
            count = float(self.file_record(name, path).get("count", 1))
        except (TypeError, ValueError):
            return 1.0
        return count if math.isfinite(count) and count > 0 else 1.0

    def related(self, name: str) -> list[str]:
        return list(self.concepts.get(name.lower(), {}).get("related", []) or [])

    def total_mentions(self, name: str) -> int | None:
        entry = self.concepts.get(name.lower())
        if entry is None:
            return None
        total = entry.get("totalMentions")
        if total is not None:
            try:
                return int(total)
            except (TypeError, ValueError):
                pass
        files = self.files_for(name)
        if not files:
            return None
        return int(sum(self.mention_count(name, path) for path in files))


class EntityMatcher:
    """Matches known entity names and aliases inside query text.

    Aliases are tried longest first. A matched span is consumed so a shorter
    alias inside it cannot match again.
    """

    def __init__(
        self,
        aliases: dict[str, str] | None = None,
        entities: list[str] | None = None,
        index_concepts: list[str] | None = None,
    ):
        table: dict[str, str] = {}
        for name in index_concepts or []:
            if len(name) >= 3:
                table[name.lower()] = name.lower()
        for name in entities or []:
            table[name.lower()] = name.lower()
        for alias, canonical in (aliases or {}).items():
            table[alias.lower()] = canonical.lower()
        self.table = table
        self._ordered = sorted(table, key=lambda a: (-len(a), a))

    @classmethod
    def from_config(cls, config: dict[str, Any], index: ConceptIndex) -> "EntityMatcher":
        cfg = config.get("concepts", {})
        return cls(
            aliases=cfg.get("aliases", {}),
            entities=cfg.get("entities", []),
            index_concepts=index.names() if cfg.get("match_index_concepts", True) else [],
        )

    def match(self, text: str) -> list[str]:
        """Canonical entities found in ``text``, in order of appearance."""
        remaining = text.lower()
        found: dict[str, int] = {}
        for alias in self._ordered:
            pattern = re.compile(rf"(?<![a-z0-9]){re.escape(alias)}(?![a-z0-9])")
            m = pattern.search(remaining)
            if not m:
                continue
            canonical = self.table[alias]
            found[canonical] = min(found.get(canonical, m.start()), m.start())
            # Blank out every occurrence so nested aliases stay unmatched
            remaining = pattern.sub(lambda hit: " " * len(hit.group(0)), remaining)
        return sorted(found, key=lambda name: found[name])


def concept_search(
    entities: list[str],
    index: ConceptIndex,
    memory_path: str | Path,
    limit: int = 10,
) -> list[RankedResult]:
    """Rank entries by how often the matched entities appear in them.

    Files matching several entities get a co-occurrence boost of
    ``1 + 0.5 * (n - 1)``.
    """
    if not entities:
        return []

    scores: dict[str, float] = {}
    matched_by: dict[str, list[str]] = {}
    sections: dict[str, list[str]] = {}
    for entity in entities:
        for path in index.files_for(entity):
            info = index.file_record(entity, path)
            scores[path] = scores.get(path, 0.0) + index.mention_count(entity, path)
            matched_by.setdefault(path, [])
            if entity not in matched_by[path]:
                matched_by[path].append(entity)
            entry_sections = info.get("sections")
            for section in entry_sections if isinstance(entry_sections, list) else []:
                sections.setdefault(path, [])
                if section not in sections[path]:
                    sections[path].append(section)

    for path, ents in matched_by.items():
        if len(ents) > 1:
            scores[path] *= 1 + 0.5 * (len(ents) - 1)

    ranked = sorted(scores.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
    results = []
    for rank, (path, score) in enumerate(ranked, 1):
        snippet = first_segment(path, memory_path)
        if not snippet:
            where = ", ".join(sections.get(path, [])[:3]) or path
            snippet = f"[{', '.join(matched_by[path])}] in {where}"
        results.append(RankedResult(path=path, rank=rank, score=score, snippet=snippet, source="concept"))
    return results
