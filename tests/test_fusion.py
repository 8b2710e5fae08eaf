"""Tests for reciprocal rank fusion."""

import pytest

from kbrecall.models import RankedResult, TemporalReference
from kbrecall.query.fusion import choose_k, reciprocal_rank_fusion


def _ranked(paths, source="semantic"):
    return [RankedResult(path=p, rank=i, score=1.0 / i, snippet=f"{source}:{p}", source=source)
            for i, p in enumerate(paths, 1)]


def test_identical_lists_double_each_score():
    paths = ["a.md", "b.md", "c.md"]
    fused = reciprocal_rank_fusion([(_ranked(paths), 1.0), (_ranked(paths), 1.0)], k=60)
    assert [r.path for r in fused] == paths
    for rank, r in enumerate(fused, 1):
        assert r.rrf_score == pytest.approx(2 * (1 / (60 + rank)))
        assert r.best_rank == rank


def test_weighted_fusion_prefers_multi_source_hit():
    temporal = _ranked(["x.md"], "temporal")
    semantic = _ranked(["y.md", "z.md", "x.md"], "semantic")
    concept = _ranked(["x.md"], "concept")
    fused = reciprocal_rank_fusion([(temporal, 2.0), (semantic, 1.0), (concept, 0.8)], k=60)

    x, y = fused[0], fused[1]
    assert x.path == "x.md"
    assert x.rrf_score == pytest.approx(2.0 / 61 + 1.0 / 63 + 0.8 / 61)
    assert y.path == "y.md"
    assert y.rrf_score == pytest.approx(1.0 / 61)
    assert x.sources == ["temporal", "semantic", "concept"]
    assert x.best_rank == 1
    assert x.snippet == "temporal:x.md"


def test_more_lists_never_score_lower():
    a = _ranked(["p.md", "q.md"])
    b = _ranked(["p.md"])
    c = _ranked(["q.md", "p.md"])
    fused = {r.path: r for r in reciprocal_rank_fusion([(a, 1.0), (b, 1.0), (c, 1.0)])}
    assert fused["p.md"].rrf_score >= fused["q.md"].rrf_score


def test_snippet_follows_best_rank():
    first = _ranked(["n.md", "m.md"], "semantic")
    second = _ranked(["m.md"], "expansion")
    fused = {r.path: r for r in reciprocal_rank_fusion([(first, 1.0), (second, 0.5)])}
    assert fused["m.md"].snippet == "expansion:m.md"
    assert fused["m.md"].best_rank == 1


def test_limit_and_empty_input():
    assert reciprocal_rank_fusion([]) == []
    assert reciprocal_rank_fusion([([], 1.0)]) == []
    fused = reciprocal_rank_fusion([(_ranked([f"{i}.md" for i in range(20)]), 1.0)], limit=5)
    assert len(fused) == 5


def test_choose_k_uses_smaller_k_for_confident_dates():
    fusion_cfg = {"k": 60, "temporal_k": 30, "temporal_k_confidence": 0.8}
    assert choose_k(TemporalReference("relative", ["2026-02-11"], 0.9), fusion_cfg) == 30
    assert choose_k(TemporalReference("range", ["2026-02-01"], 0.7), fusion_cfg) == 60
    assert choose_k(TemporalReference.none(), fusion_cfg) == 60
