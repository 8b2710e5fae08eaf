"""Reciprocal rank fusion over independently produced ranked lists."""

from typing import Iterable

from ..models import FusedResult, RankedResult, TemporalReference


def reciprocal_rank_fusion(
    result_sets: Iterable[tuple[list[RankedResult], float]],
    k: int = 60,
    limit: int = 10,
) -> list[FusedResult]:
    """Fuse ranked lists by summing ``weight / (k + rank)`` per path.

    Ranks are 1-based positions within each list, so raw scores never need to
    be comparable across producers. The snippet of the best-ranked hit wins.
    """
    fused: dict[str, FusedResult] = {}
    for results, weight in result_sets:
        for position, result in enumerate(results, 1):
            contribution = weight / (k + position)
            entry = fused.get(result.path)
            if entry is None:
                fused[result.path] = FusedResult(
                    path=result.path,
                    rrf_score=contribution,
                    sources=[result.source],
                    best_rank=position,
                    snippet=result.snippet,
                )
                continue
            entry.rrf_score += contribution
            if result.source not in entry.sources:
                entry.sources.append(result.source)
            if position < entry.best_rank:
                entry.best_rank = position
                entry.snippet = result.snippet

    ranked = sorted(fused.values(), key=lambda r: r.rrf_score, reverse=True)
    return ranked[:limit]


def choose_k(temporal: TemporalReference | None, fusion_cfg: dict) -> int:
    """Smaller k when a confident date is present, so temporal hits dominate."""
    threshold = fusion_cfg.get("temporal_k_confidence", 0.8)
    if temporal is not None and temporal.found and temporal.confidence >= threshold:
        return fusion_cfg.get("temporal_k", 30)
    return fusion_cfg.get("k", 60)
