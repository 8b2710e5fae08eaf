"""Smart search: temporal, concept and expansion signals fused over semantic search."""

import logging
import math
import time
from datetime import date
from typing import Any

from ..models import RankedResult, SmartSearchResult
from ..search import SearchAdapter, get_search_adapter
from .concepts import ConceptIndex, EntityMatcher, concept_search
from .expansion import expand_query
from .fusion import choose_k, reciprocal_rank_fusion
from .temporal import TemporalResolver

logger = logging.getLogger(__name__)

SOURCES = ("semantic", "temporal", "concept", "expansion")


def smart_search(
    query: str,
    config: dict[str, Any],
    limit: int | None = None,
    now: date | None = None,
    adapter: SearchAdapter | None = None,
    index: ConceptIndex | None = None,
) -> SmartSearchResult:
    """Run every retrieval strategy for ``query`` and fuse them with RRF.

    Args:
        query: Natural language query.
        config: Application config.
        limit: Number of fused results (defaults to ``fusion.limit``).
        now: Reference date for temporal parsing (defaults to today).
        adapter: External search backend (defaults to the configured one).
        index: Concept index (defaults to loading ``concept_index_path``).

    Returns:
        SmartSearchResult with the fused ranking and per-strategy diagnostics.
    """
    start = time.monotonic()
    fusion_cfg = config.get("fusion", {})
    weights = fusion_cfg.get("weights", {})
    limit = limit or fusion_cfg.get("limit", 10)
    now = now or date.today()
    adapter = adapter or get_search_adapter(config)
    if index is None:
        index = ConceptIndex.load(config["concept_index_path"])

    result_sets: list[tuple[list[RankedResult], float]] = []

    resolver = TemporalResolver(config["memory_path"], config.get("layout", {}))
    temporal = resolver.resolve(query, now)

    semantic = adapter.search(query, limit)
    result_sets.append((semantic, weights.get("semantic", 1.0)))

    if temporal.files:
        temporal_results = resolver.search_files(temporal, query, limit)
        result_sets.append((temporal_results, weights.get("temporal", 2.0) * temporal.confidence))

    entities = EntityMatcher.from_config(config, index).match(query)
    if entities:
        concept_results = concept_search(entities, index, config["memory_path"], limit)
        if concept_results:
            weight = weights.get("concept_multi", 1.2) if len(entities) > 1 else weights.get("concept", 0.8)
            result_sets.append((concept_results, weight))

    variants = expand_query(query, config, today=now, entities=entities, index=index)
    expansion_results: list[RankedResult] = []
    for variant in variants:
        for r in adapter.search(variant, math.ceil(limit / 2)):
            r.source = "expansion"
            expansion_results.append(r)
    if expansion_results:
        result_sets.append((expansion_results, weights.get("expansion", 0.5)))

    k = choose_k(temporal, fusion_cfg)
    fused = reciprocal_rank_fusion(result_sets, k=k, limit=limit)

    contributions = {s: 0 for s in SOURCES}
    for r in fused:
        for s in r.sources:
            if s in contributions:
                contributions[s] += 1

    elapsed = int((time.monotonic() - start) * 1000)
    logger.info(f"smart search {query!r}: {len(fused)} results in {elapsed}ms (k={k})")
    return SmartSearchResult(
        query=query,
        temporal=temporal,
        expanded=variants,
        concept_matches=entities,
        results=fused,
        strategy_contributions=contributions,
        elapsed_ms=elapsed,
    )
