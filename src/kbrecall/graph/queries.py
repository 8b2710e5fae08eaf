"""Point queries against a built relationship graph."""

import math
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

from ..models import ExpandedResult, GraphNode, MemoryGraph, RankedResult


@dataclass
class Neighbor:
    path: str
    weight: float
    reasons: list[str] = field(default_factory=list)


def resolve_node(graph: MemoryGraph, name: str) -> str | None:
    """Find a node by exact path, path fragment, suffix or bare stem."""
    if name in graph.nodes:
        return name
    for path in sorted(graph.nodes):
        if name in path or path.endswith(name) or PurePosixPath(path).stem == name:
            return path
    return None


def neighbors(graph: MemoryGraph, name: str, limit: int = 10) -> list[Neighbor] | None:
    """Strongest neighbours of a node, or None when the node is unknown."""
    path = resolve_node(graph, name)
    if path is None:
        return None
    reasons_by_pair = {e.key: e.reasons for e in graph.edges}
    result = []
    for target, weight in graph.nodes[path].edges.items():
        key = tuple(sorted((path, target)))
        reasons = [f"{r.type}:{r.detail}" for r in reasons_by_pair.get(key, [])]
        result.append(Neighbor(path=target, weight=weight, reasons=reasons))
    result.sort(key=lambda n: (-n.weight, n.path))
    return result[:limit]


def isolated(graph: MemoryGraph, threshold: int = 2) -> list[GraphNode]:
    """Nodes with fewer than ``threshold`` edges, least connected first."""
    low = [n for n in graph.nodes.values() if n.degree < threshold]
    return sorted(low, key=lambda n: (n.degree, n.path))


def graph_stats(graph: MemoryGraph) -> dict[str, Any]:
    n = graph.node_count
    degrees = [node.degree for node in graph.nodes.values()]
    edge_types: dict[str, int] = {}
    for edge in graph.edges:
        for reason in edge.reasons:
            edge_types[reason.type] = edge_types.get(reason.type, 0) + 1
    return {
        "nodes": n,
        "edges": graph.edge_count,
        "density": 2 * graph.edge_count / (n * (n - 1)) if n > 1 else 0.0,
        "clusters": len(graph.clusters),
        "built_at": graph.built_at,
        "avg_degree": sum(degrees) / n if n else 0.0,
        "min_degree": min(degrees) if degrees else 0,
        "max_degree": max(degrees) if degrees else 0,
        "most_connected": sorted(graph.nodes.values(), key=lambda x: (-x.weighted_degree, x.path))[:8],
        "edge_types": dict(sorted(edge_types.items(), key=lambda kv: -kv[1])),
    }


def render_ascii(graph: MemoryGraph) -> str:
    """Cluster-by-cluster text picture of the graph."""
    lines = []
    for cluster in graph.clusters:
        lines.append(f"┌─ Cluster: {cluster.label} (coherence: {cluster.coherence:.2f}) ─┐")
        members = set(cluster.members)
        for member in cluster.members:
            node = graph.nodes[member]
            bar = "█" * math.ceil(node.weighted_degree * 3)
            lines.append(f"│ {bar:<12} {PurePosixPath(member).stem:<25} ({node.type})")
            top = sorted(
                ((t, w) for t, w in node.edges.items() if t in members),
                key=lambda tw: -tw[1],
            )[:3]
            for target, weight in top:
                lines.append(f"│   {'─' * math.ceil(weight * 10)}→ {PurePosixPath(target).stem}")
        lines.append("└" + "─" * 50 + "┘")
        lines.append("")

    unclustered = [n for n in graph.nodes.values() if n.cluster is None]
    if unclustered:
        lines.append("○ Unclustered:")
        for node in sorted(unclustered, key=lambda x: x.path):
            lines.append(f"  {PurePosixPath(node.path).stem} ({node.type}, degree: {node.degree})")
    return "\n".join(lines)


def context_expand(
    graph: MemoryGraph,
    initial: list[RankedResult],
    max_results: int = 8,
    seeds: int = 3,
    per_seed: int = 3,
    decay: float = 0.6,
) -> list[ExpandedResult]:
    """Widen a result set with the strongest one-hop graph neighbours.

    A neighbour reached from a seed scores ``seed score * edge weight * decay``.
    Seeds without a positive score contribute no neighbours.
    """
    seen: set[str] = set()
    expanded: list[ExpandedResult] = []
    for r in initial:
        if r.path not in seen:
            seen.add(r.path)
            expanded.append(ExpandedResult(path=r.path, score=r.score, source="search"))

    for r in initial[:seeds]:
        node = graph.nodes.get(r.path)
        if node is None or r.score <= 0:
            continue
        strongest = sorted(node.edges.items(), key=lambda tw: (-tw[1], tw[0]))[:per_seed]
        for target, weight in strongest:
            if target in seen:
                continue
            seen.add(target)
            expanded.append(ExpandedResult(
                path=target,
                score=r.score * weight * decay,
                source=f"graph({PurePosixPath(r.path).name})",
                seed=r.path,
            ))

    expanded.sort(key=lambda e: e.score, reverse=True)
    return expanded[:max_results]
