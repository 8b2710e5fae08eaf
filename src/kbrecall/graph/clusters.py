"""Weighted label propagation over the relationship graph."""

from collections import Counter
from pathlib import PurePosixPath

import numpy as np

from ..models import Cluster, GraphEdge, GraphNode


def propagate_labels(
    nodes: dict[str, GraphNode],
    edges: list[GraphEdge],
    max_passes: int = 20,
    seed: int | None = None,
) -> dict[str, int]:
    """Assign each node the label with the heaviest weighted neighbour vote.

    Every node starts with its own label. Each pass visits nodes in a fresh
    random order; a node only switches on a strict improvement over the vote
    for its current label. Stops early once a pass changes nothing.
    """
    order = sorted(nodes)
    labels = {path: i for i, path in enumerate(order)}
    adjacency: dict[str, dict[str, float]] = {path: {} for path in order}
    for edge in edges:
        if edge.source in adjacency and edge.target in adjacency:
            adjacency[edge.source][edge.target] = edge.weight
            adjacency[edge.target][edge.source] = edge.weight

    rng = np.random.default_rng(seed)
    for _ in range(max_passes):
        changed = 0
        for i in rng.permutation(len(order)):
            node = order[i]
            neighbours = adjacency[node]
            if not neighbours:
                continue
            votes: dict[int, float] = {}
            for neighbour, weight in neighbours.items():
                votes[labels[neighbour]] = votes.get(labels[neighbour], 0.0) + weight

            current = labels[node]
            current_vote = votes.get(current, 0.0)
            candidates = [(-vote, label) for label, vote in votes.items() if label != current]
            if not candidates:
                continue
            best_vote, best_label = min(candidates)
            if -best_vote > current_vote:
                labels[node] = best_label
                changed += 1
        if not changed:
            break
    return labels


def cluster_label(members: list[str], nodes: dict[str, GraphNode]) -> str:
    """Human-readable name for a group of entries."""
    types = [nodes[m].type for m in members]
    topics = [PurePosixPath(m).stem for m in sorted(members) if nodes[m].type == "topic"]
    if topics:
        return "+".join(topics)
    if all(t == "daily" for t in types):
        return "timeline"
    if "core" in types:
        return "core"
    parents = {PurePosixPath(m).parent.as_posix() for m in members}
    if len(parents) == 1 and parents != {"."}:
        return parents.pop().split("/")[-1]
    return Counter(types).most_common(1)[0][0]


def coherence(members: set[str], edges: list[GraphEdge]) -> float:
    """Average weight of edges with both endpoints inside the group."""
    inside = [e.weight for e in edges if e.source in members and e.target in members]
    return sum(inside) / len(inside) if inside else 0.0


def detect_clusters(
    nodes: dict[str, GraphNode],
    edges: list[GraphEdge],
    max_passes: int = 20,
    seed: int | None = None,
) -> list[Cluster]:
    """Group nodes by propagated label and write cluster ids back onto them.

    Singleton groups are discarded. Clusters are ordered by coherence and
    numbered in that order.
    """
    labels = propagate_labels(nodes, edges, max_passes=max_passes, seed=seed)
    groups: dict[int, list[str]] = {}
    for path, label in labels.items():
        groups.setdefault(label, []).append(path)

    scored = []
    for members in groups.values():
        if len(members) < 2:
            continue
        members = sorted(members)
        scored.append((coherence(set(members), edges), members))
    scored.sort(key=lambda s: (-s[0], s[1]))

    for node in nodes.values():
        node.cluster = None

    clusters = []
    for cluster_id, (score, members) in enumerate(scored):
        clusters.append(Cluster(id=cluster_id, label=cluster_label(members, nodes), members=members, coherence=score))
        for member in members:
            nodes[member].cluster = cluster_id
    return clusters
