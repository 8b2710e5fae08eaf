"""Build, persist and load the relationship graph."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np

from ..models import GraphEdge, GraphNode, KnowledgeEntry, MemoryGraph
from ..query.concepts import ConceptIndex
from ..snapshots import read_json, write_json_atomic
from ..vault.entries import discover_entries
from .clusters import detect_clusters
from .edges import entity_edges, section_edges, temporal_edges, xref_edges

logger = logging.getLogger(__name__)

REPEAT_FACTOR = 0.8


def merge_edges(raw: list[GraphEdge]) -> list[GraphEdge]:
    """Collapse parallel edges onto one canonical (sorted) pair.

    The first contribution counts in full, later ones at 0.8x. Self-pairs
    are dropped.
    """
    merged: dict[tuple[str, str], GraphEdge] = {}
    for edge in raw:
        if edge.source == edge.target:
            continue
        key = edge.key
        existing = merged.get(key)
        if existing is None:
            merged[key] = GraphEdge(source=key[0], target=key[1], weight=edge.weight, reasons=list(edge.reasons))
        else:
            existing.weight += edge.weight * REPEAT_FACTOR
            existing.reasons.extend(edge.reasons)
    return list(merged.values())


def normalize_edges(edges: list[GraphEdge]) -> list[GraphEdge]:
    """Scale by the global maximum weight and clamp into [0, 1]."""
    max_weight = max([e.weight for e in edges] + [0.001])
    for edge in edges:
        edge.weight = min(max(edge.weight / max_weight, 0.0), 1.0)
    return edges


def prune_threshold(edges: list[GraphEdge], floor: float = 0.2, median_factor: float = 1.1) -> float:
    if not edges:
        return floor
    weights = np.sort(np.array([e.weight for e in edges]))
    median = float(weights[len(weights) // 2])
    return max(floor, median * median_factor)


def prune_edges(edges: list[GraphEdge], floor: float = 0.2, median_factor: float = 1.1) -> list[GraphEdge]:
    """Keep only edges at or above ``max(floor, factor * median)``."""
    threshold = prune_threshold(edges, floor, median_factor)
    return [e for e in edges if e.weight >= threshold]


def build_nodes(entries: list[KnowledgeEntry], edges: list[GraphEdge]) -> dict[str, GraphNode]:
    """One node per entry, with adjacency from the surviving edges."""
    nodes = {e.path: GraphNode(path=e.path, type=e.type) for e in entries}
    for edge in edges:
        for a, b in ((edge.source, edge.target), (edge.target, edge.source)):
            node = nodes.get(a)
            if node is None:
                continue
            node.edges[b] = edge.weight
            node.degree += 1
            node.weighted_degree += edge.weight
    return nodes


def build_graph(
    config: dict[str, Any],
    entries: list[KnowledgeEntry] | None = None,
    index: ConceptIndex | None = None,
) -> MemoryGraph:
    """Run every edge generator over all entries and assemble the graph."""
    graph_cfg = config.get("graph", {})
    if entries is None:
        entries = discover_entries(config["memory_path"], config.get("layout", {}))
    if index is None:
        index = ConceptIndex.load(config["concept_index_path"])
    logger.info(f"Building graph over {len(entries)} entries")

    raw: list[GraphEdge] = []
    for name, generated in (
        ("entity", entity_edges(entries, index, graph_cfg)),
        ("xref", xref_edges(entries)),
        ("temporal", temporal_edges(entries)),
        ("section", section_edges(entries)),
    ):
        logger.info(f"  {name}: {len(generated)} raw edges")
        raw.extend(generated)

    edges = normalize_edges(merge_edges(raw))
    edges = prune_edges(
        edges,
        floor=graph_cfg.get("prune_floor", 0.2),
        median_factor=graph_cfg.get("prune_median_factor", 1.1),
    )
    logger.info(f"  {len(edges)} edges after merge and prune")

    nodes = build_nodes(entries, edges)
    clusters = detect_clusters(
        nodes,
        edges,
        max_passes=graph_cfg.get("cluster_passes", 20),
        seed=graph_cfg.get("cluster_seed"),
    )
    logger.info(f"  {len(clusters)} clusters")

    return MemoryGraph(
        nodes=nodes,
        edges=edges,
        clusters=clusters,
        built_at=datetime.now(timezone.utc).isoformat(),
    )


class GraphStore:
    """The persisted graph snapshot, replaced wholesale on every rebuild."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def save(self, graph: MemoryGraph) -> None:
        write_json_atomic(self.path, graph.to_dict())
        logger.info(f"Saved graph to {self.path}")

    def load(self) -> MemoryGraph | None:
        """The last saved graph, or None when it is absent or unreadable."""
        data = read_json(self.path)
        if not isinstance(data, dict):
            return None
        try:
            return MemoryGraph.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Graph snapshot at {self.path} is malformed: {e}")
            return None
