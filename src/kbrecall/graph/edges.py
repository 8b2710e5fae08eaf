"""Edge generators for the relationship graph.

Each generator looks at the full entry set from one angle and emits raw,
possibly parallel edges. Merging, normalization and pruning happen in
``builder``.
"""

import math
import re
from datetime import date
from itertools import combinations
from typing import Any

from ..models import EdgeReason, GraphEdge, KnowledgeEntry
from ..query.concepts import ConceptIndex
from ..vault.entries import extract_headings

_DAILY_RE = re.compile(r"(\d{4}-\d{2}-\d{2})\.md$")
_WEEKLY_RE = re.compile(r"(\d{4})-W(\d{2})\.md$")
GENERIC_STEMS = {"index", "memory", "readme", "notes"}


def _edge(source: str, target: str, weight: float, kind: str, detail: str, contribution: float | None = None) -> GraphEdge:
    return GraphEdge(
        source=source,
        target=target,
        weight=weight,
        reasons=[EdgeReason(kind, detail, weight if contribution is None else contribution)],
    )


def entity_edges(
    entries: list[KnowledgeEntry],
    index: ConceptIndex,
    graph_cfg: dict[str, Any],
) -> list[GraphEdge]:
    """Pairs of entries that share a reasonably rare concept.

    Weight is ``sqrt(min(countA, countB)) * 0.15 / sqrt(files)``, capped at 0.5
    per concept per pair.
    """
    known = {e.path for e in entries}
    noise = {n.lower() for n in graph_cfg.get("noise_concepts", [])}
    lo = graph_cfg.get("min_concept_files", 2)
    hi = graph_cfg.get("max_concept_files", 8)

    edges = []
    for concept in index.names():
        if concept in noise:
            continue
        file_map = index.files_for(concept)
        files = sorted(p for p in file_map if p in known)
        if len(files) < lo or len(files) > hi:
            continue
        rarity = 1.0 / math.sqrt(len(files))
        for a, b in combinations(files, 2):
            count = min(index.mention_count(concept, a), index.mention_count(concept, b))
            strength = math.sqrt(count) * 0.15 * rarity
            edges.append(_edge(a, b, min(strength, 0.5), "entity", concept, strength))
    return edges


def _reference_patterns(target: KnowledgeEntry) -> list[str]:
    patterns = [target.path, f"→ {target.basename}", f"({target.path})"]
    if len(target.stem) > 6 and target.stem.lower() not in GENERIC_STEMS:
        patterns.append(target.stem)
    return patterns


def xref_edges(entries: list[KnowledgeEntry]) -> list[GraphEdge]:
    """Explicit mentions of one entry inside another.

    Sources that reference more than five entries are treated as hubs and
    their edges are scaled by ``sqrt(5 / refs)``.
    """
    patterns = {e.path: _reference_patterns(e) for e in entries}
    edges = []
    for source in entries:
        text = source.text
        if not text:
            continue
        targets = [
            t.path for t in entries
            if t.path != source.path and any(p in text for p in patterns[t.path])
        ]
        if not targets:
            continue
        penalty = math.sqrt(5 / len(targets)) if len(targets) > 5 else 1.0
        weight = 0.4 * penalty
        for target in targets:
            edges.append(_edge(source.path, target, weight, "xref", f"{source.path} references {target}"))
    return edges


def _daily_date(entry: KnowledgeEntry) -> date | None:
    match = _DAILY_RE.search(entry.basename)
    if entry.type != "daily" or not match:
        return None
    try:
        return date.fromisoformat(match.group(1))
    except ValueError:
        return None


def temporal_edges(entries: list[KnowledgeEntry]) -> list[GraphEdge]:
    """Chronological neighbours among daily entries, plus weekly-to-daily links."""
    dailies = sorted(
        ((d, e.path) for e in entries if (d := _daily_date(e)) is not None),
    )

    edges = []
    for i, (day_a, path_a) in enumerate(dailies):
        for day_b, path_b in dailies[i + 1:i + 4]:
            days_apart = (day_b - day_a).days
            weight = 0.25 * math.exp(-0.5 * days_apart)
            if weight > 0.02:
                edges.append(_edge(path_a, path_b, weight, "temporal", f"{days_apart}d apart"))

    for entry in entries:
        match = _WEEKLY_RE.search(entry.basename)
        if entry.type != "weekly" or not match:
            continue
        try:
            monday = date.fromisocalendar(int(match.group(1)), int(match.group(2)), 1)
        except ValueError:
            continue
        for day, path in dailies:
            day_monday = date.fromisocalendar(*day.isocalendar()[:2], 1)
            if abs((day_monday - monday).days) <= 7:
                edges.append(_edge(entry.path, path, 0.3, "temporal", "weekly contains daily"))
    return edges


def section_edges(entries: list[KnowledgeEntry]) -> list[GraphEdge]:
    """Entries whose headings overlap (exact or substring matches)."""
    headings = {}
    for entry in entries:
        found = extract_headings(entry.text)
        if found:
            headings[entry.path] = found

    edges = []
    for a, b in combinations(sorted(headings), 2):
        ha, hb = headings[a], headings[b]
        shared = sum(1 for x in ha for y in hb if x == y or x in y or y in x)
        if not shared:
            continue
        union = len(ha) + len(hb) - shared
        weight = 0.3 * shared / union if union > 0 else 0.3
        if weight > 0.03:
            edges.append(_edge(a, b, weight, "section", f"{shared} shared heading(s)"))
    return edges
