"""Tests for graph edge generation, merging, pruning and persistence."""

import json
import math

import pytest

from kbrecall.graph import GraphStore, build_graph
from kbrecall.graph.builder import build_nodes, merge_edges, normalize_edges, prune_edges, prune_threshold
from kbrecall.graph.edges import entity_edges, section_edges, temporal_edges, xref_edges
from kbrecall.models import EdgeReason, GraphEdge, KnowledgeEntry
from kbrecall.query.concepts import ConceptIndex
from kbrecall.vault.entries import discover_entries


def _entry(path, text="", type_="topic"):
    return KnowledgeEntry(path=path, type=type_, _text=text)


def _edge(a, b, w):
    return GraphEdge(source=a, target=b, weight=w, reasons=[EdgeReason("entity", "x", w)])


def test_entity_edge_weight_for_rare_concept():
    index = ConceptIndex({"solana": {"files": {"a.md": {"count": 4}, "b.md": {"count": 9}}}})
    edges = entity_edges([_entry("a.md"), _entry("b.md")], index, {})
    assert len(edges) == 1
    assert edges[0].weight == pytest.approx(math.sqrt(4) * 0.15 / math.sqrt(2))
    assert edges[0].weight == pytest.approx(0.212, abs=1e-3)
    assert edges[0].reasons[0].detail == "solana"


def test_entity_edges_respect_rarity_band_and_noise():
    entries = [_entry(f"{i}.md") for i in range(10)]
    index = ConceptIndex({
        "unique": {"files": {"0.md": {"count": 3}}},
        "everywhere": {"files": {f"{i}.md": {"count": 1} for i in range(9)}},
        "noisy": {"files": {"0.md": {"count": 1}, "1.md": {"count": 1}}},
        "unknown-files": {"files": {"0.md": {"count": 1}, "missing.md": {"count": 1}}},
    })
    assert entity_edges(entries, index, {"noise_concepts": ["noisy"]}) == []


def test_entity_edges_with_malformed_counts():
    index = ConceptIndex({
        "bare": {"files": {"a.md": 3, "b.md": 4}},
        "text": {"files": {"a.md": {"count": "4"}, "b.md": {"count": "9"}}},
    })
    edges = {e.reasons[0].detail: e for e in entity_edges([_entry("a.md"), _entry("b.md")], index, {})}
    assert edges["bare"].weight == pytest.approx(0.15 / math.sqrt(2))
    assert edges["text"].weight == pytest.approx(math.sqrt(4) * 0.15 / math.sqrt(2))


def test_build_graph_survives_malformed_concept_records(config):
    index = ConceptIndex({"kamino": {"files": {"MEMORY.md": "x", "topics/defi-strategy.md": {"count": None}}}})
    graph = build_graph(config, index=index)
    assert graph.node_count == 11


def test_xref_edges_and_hub_penalty():
    targets = [_entry(f"topics/target-{i}.md") for i in range(6)]
    hub = _entry("MEMORY.md", " ".join(t.path for t in targets))
    single = _entry("notes.md", "See → target-0.md for details")
    edges = xref_edges([hub, single] + targets)

    from_hub = [e for e in edges if e.source == "MEMORY.md"]
    assert len(from_hub) == 6
    assert from_hub[0].weight == pytest.approx(0.4 * math.sqrt(5 / 6))

    from_single = [e for e in edges if e.source == "notes.md"]
    assert [(e.target, e.weight) for e in from_single] == [("topics/target-0.md", 0.4)]


def test_xref_matches_distinctive_stem_only():
    long_stem = _entry("topics/moongate.md")
    generic = _entry("topics/index.md")
    source = _entry("a.md", "moongate work, see the index")
    targets = {e.target for e in xref_edges([source, long_stem, generic])}
    assert targets == {"topics/moongate.md"}


def test_temporal_edges_decay_and_weekly_links():
    entries = [
        _entry("daily/2026-02-09.md", type_="daily"),
        _entry("daily/2026-02-10.md", type_="daily"),
        _entry("daily/2026-02-20.md", type_="daily"),
        _entry("weekly/2026-W07.md", type_="weekly"),
    ]
    edges = {(e.source, e.target): e for e in temporal_edges(entries)}

    adjacent = edges[("daily/2026-02-09.md", "daily/2026-02-10.md")]
    assert adjacent.weight == pytest.approx(0.25 * math.exp(-0.5))
    assert adjacent.reasons[0].detail == "1d apart"
    # 10 days apart decays below the cutoff
    assert ("daily/2026-02-10.md", "daily/2026-02-20.md") not in edges

    weekly_targets = {t for (s, t) in edges if s == "weekly/2026-W07.md"}
    assert weekly_targets == {"daily/2026-02-09.md", "daily/2026-02-10.md", "daily/2026-02-20.md"}
    assert edges[("weekly/2026-W07.md", "daily/2026-02-09.md")].weight == 0.3


def test_section_edges_use_heading_overlap():
    a = _entry("a.md", "# Yield Strategy\n## Risks\n## Open Questions\n")
    b = _entry("b.md", "# Yield Strategy Notes\n## Risks\n")
    c = _entry("c.md", "# Unrelated\n## Log\n")
    edges = section_edges([a, b, c])
    assert len(edges) == 1
    # 2 matches, 3 + 2 - 2 unique
    assert edges[0].weight == pytest.approx(0.3 * 2 / 3)
    assert edges[0].reasons[0].type == "section"


def test_merge_combines_parallel_edges_and_drops_self_loops():
    raw = [_edge("b.md", "a.md", 0.5), _edge("a.md", "b.md", 0.25), _edge("a.md", "a.md", 1.0)]
    merged = merge_edges(raw)
    assert len(merged) == 1
    assert (merged[0].source, merged[0].target) == ("a.md", "b.md")
    assert merged[0].weight == pytest.approx(0.5 + 0.25 * 0.8)
    assert len(merged[0].reasons) == 2


def test_normalize_scales_by_global_max():
    edges = normalize_edges([_edge("a", "b", 0.4), _edge("b", "c", 0.1)])
    assert [e.weight for e in edges] == [1.0, pytest.approx(0.25)]
    assert normalize_edges([]) == []


def test_prune_threshold_uses_median():
    edges = [_edge("a", "b", 0.1), _edge("b", "c", 0.3), _edge("c", "d", 0.5), _edge("d", "e", 1.0)]
    assert prune_threshold(edges) == pytest.approx(0.55)
    assert [e.weight for e in prune_edges(edges)] == [1.0]

    low = [_edge("a", "b", 0.05), _edge("b", "c", 0.1), _edge("c", "d", 0.25)]
    assert prune_threshold(low) == 0.2
    assert [e.weight for e in prune_edges(low)] == [0.25]


def test_build_nodes_includes_isolated_entries():
    entries = [_entry("a.md"), _entry("b.md"), _entry("c.md")]
    nodes = build_nodes(entries, [_edge("a.md", "b.md", 0.5)])
    assert set(nodes) == {"a.md", "b.md", "c.md"}
    assert nodes["a.md"].edges == {"b.md": 0.5}
    assert nodes["b.md"].degree == 1
    assert nodes["c.md"].degree == 0


def test_build_graph_invariants(config):
    graph = build_graph(config)
    entries = discover_entries(config["memory_path"], config["layout"])
    assert set(graph.nodes) == {e.path for e in entries}
    assert "archive/old.md" not in graph.nodes

    pairs = set()
    for edge in graph.edges:
        assert 0.0 <= edge.weight <= 1.0
        assert edge.source != edge.target
        assert edge.key not in pairs
        pairs.add(edge.key)

    assert graph.edges
    assert max(e.weight for e in graph.edges) == 1.0
    for path, node in graph.nodes.items():
        assert node.degree == len(node.edges)
        assert node.weighted_degree == pytest.approx(sum(node.edges.values()))


def test_build_graph_strongest_link(config):
    graph = build_graph(config)
    assert graph.nodes["MEMORY.md"].edges["topics/defi-strategy.md"] == 1.0


def test_graph_store_roundtrip(config, tmp_path):
    graph = build_graph(config)
    store = GraphStore(tmp_path / "graph" / "memory-graph.json")
    store.save(graph)

    data = json.loads((tmp_path / "graph" / "memory-graph.json").read_text())
    assert {"version", "builtAt", "nodeCount", "edgeCount", "nodes", "edges", "clusters"} <= set(data)
    assert data["nodeCount"] == graph.node_count

    loaded = store.load()
    assert loaded.node_count == graph.node_count
    assert loaded.edge_count == graph.edge_count
    assert [c.members for c in loaded.clusters] == [c.members for c in graph.clusters]
    assert list((tmp_path / "graph").iterdir()) == [tmp_path / "graph" / "memory-graph.json"]


def test_graph_store_missing_or_corrupt(tmp_path):
    assert GraphStore(tmp_path / "absent.json").load() is None
    corrupt = tmp_path / "corrupt.json"
    corrupt.write_text("[1, 2")
    assert GraphStore(corrupt).load() is None


@pytest.mark.parametrize("payload", [
    {"version": 1, "nodes": [], "edges": [], "clusters": []},
    {"version": 1, "nodes": {"a.md": 3}, "edges": [], "clusters": []},
    {"version": 1, "nodes": {}, "edges": {"a.md": "b.md"}, "clusters": []},
    {"version": 1, "nodes": {}, "edges": [], "clusters": [{"label": "no id"}]},
])
def test_graph_store_wrong_shape_reads_as_missing(tmp_path, payload):
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(payload))
    assert GraphStore(path).load() is None
