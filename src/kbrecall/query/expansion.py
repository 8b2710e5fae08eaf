"""Rule-based query expansion.

Variants come from four independent strategies, in order: synonym, template
reformulation, interrogative stripping and concept co-occurrence. No model is
involved, so expansion is cheap and deterministic for a fixed concept index.
"""

import math
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable

from .concepts import ConceptIndex

_RECENT_RE = re.compile(r"recently|lately|these\s+days", re.IGNORECASE)
_QUESTION_RE = re.compile(
    r"^(?:what|who|when|where|why|how|did|do|does|is|are|was|were|can|could|should|would)\s+",
    re.IGNORECASE,
)


@dataclass
class TemplateRule:
    """A vague-query pattern and the elaborations it expands into."""
    name: str
    pattern: re.Pattern
    expand: Callable[[str, date], list[str]]


def _recent_dates(query: str, today: date) -> list[str]:
    return [_RECENT_RE.sub((today - timedelta(days=i)).isoformat(), query, count=1) for i in range(3)]


TEMPLATES: tuple[TemplateRule, ...] = (
    TemplateRule(
        "build",
        re.compile(r"\bwhat\s+(?:did\s+(?:i|we)\s+)?(?:build|create|make|ship)\b", re.IGNORECASE),
        lambda q, today: [
            "built created implemented shipped",
            "tools infrastructure scripts created",
        ],
    ),
    TemplateRule(
        "failure",
        re.compile(r"\bwhat\s+went\s+wrong\b|\bwhat\s+broke\b|\bwhat\s+failed\b", re.IGNORECASE),
        lambda q, today: [
            "bug error regression broke fix",
            "failure incident root cause",
        ],
    ),
    TemplateRule(
        "decisions",
        re.compile(r"\b(?:important|key|major)\s+decisions?\b", re.IGNORECASE),
        lambda q, today: [
            "decision strategy approach chose decided",
            "architecture organization structure",
        ],
    ),
    TemplateRule("recent", re.compile(r"\brecently\b|\blately\b|\bthese\s+days\b", re.IGNORECASE), _recent_dates),
)


def synonym_variant(query: str, synonyms: dict[str, list[str]]) -> str | None:
    """Append one unused synonym for the first domain keyword present."""
    lower = query.lower()
    words = re.findall(r"[a-z0-9]+", lower)
    for keyword, candidates in synonyms.items():
        if not any(w.startswith(keyword.lower()) for w in words):
            continue
        unused = [s for s in candidates if s.lower() not in lower]
        if unused:
            return f"{query} {unused[0]}"
    return None


def template_variants(query: str, today: date) -> list[str]:
    for rule in TEMPLATES:
        if rule.pattern.search(query):
            return rule.expand(query, today)[:2]
    return []


def strip_interrogative(query: str) -> str | None:
    stripped = _QUESTION_RE.sub("", query, count=1)
    stripped = re.sub(r"\?$", "", stripped).strip()
    if stripped != query and len(stripped) > 5:
        return stripped
    return None


def _is_noise(concept: str) -> bool:
    if "/" in concept or ":" in concept or ".md" in concept:
        return True
    return len(concept) < 3 or len(concept) > 40


def graph_expand(
    entities: list[str],
    query: str,
    index: ConceptIndex,
    max_variants: int = 2,
) -> list[str]:
    """Expand with concepts that co-occur with the recognized entities.

    Candidates are scored by how many query entities link to them, boosted
    when they are themselves index concepts and by their mention volume.
    """
    if not entities or not len(index):
        return []

    lower = query.lower()
    entity_set = {e.lower() for e in entities}
    links: dict[str, int] = {}
    for entity in entities:
        for related in index.related(entity):
            if not isinstance(related, str) or _is_noise(related):
                continue
            if related.lower() in entity_set or related.lower() in lower:
                continue
            links[related] = links.get(related, 0) + 1

    scored = []
    for concept, count in links.items():
        boost = 1.5 if concept in index else 1.0
        total = index.total_mentions(concept)
        mention_boost = min(math.log2(total + 1) / 4, 1.5) if total else 0.5
        scored.append((count * boost * mention_boost, concept))

    if not scored:
        return []
    scored.sort(key=lambda s: (-s[0], s[1]))

    variants = [f"{query} {scored[0][1]}"]
    if len(scored) >= 2 and scored[1][0] >= scored[0][0] * 0.5:
        variants.append(f"{scored[0][1]} {scored[1][1]}")
    return variants[:max_variants]


def expand_query(
    query: str,
    config: dict[str, Any],
    today: date | None = None,
    entities: list[str] | None = None,
    index: ConceptIndex | None = None,
) -> list[str]:
    """All expansion variants for ``query``, deduplicated and capped."""
    today = today or date.today()
    cfg = config.get("expansion", {})

    variants: list[str] = []
    synonym = synonym_variant(query, cfg.get("synonyms", {}))
    if synonym:
        variants.append(synonym)
    variants.extend(template_variants(query, today))
    stripped = strip_interrogative(query)
    if stripped:
        variants.append(stripped)
    if entities and index is not None:
        variants.extend(graph_expand(entities, query, index))

    unique: list[str] = []
    for v in variants:
        if v != query and v not in unique:
            unique.append(v)
    return unique[: cfg.get("max_variants", 3)]
