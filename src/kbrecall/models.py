"""Data models used throughout kbrecall."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class KnowledgeEntry:
    """A persistent note, identified by its path relative to the memory root."""
    path: str
    type: str  # core | daily | weekly | topic | people | operational
    root: Path | None = None
    _text: str | None = field(default=None, repr=False, compare=False)

    @property
    def text(self) -> str:
        """Raw text, read lazily from disk. Unreadable entries read as empty."""
        if self._text is None:
            if self.root is None:
                self._text = ""
            else:
                try:
                    self._text = (self.root / self.path).read_text(encoding="utf-8", errors="replace")
                except OSError:
                    self._text = ""
        return self._text

    @property
    def stem(self) -> str:
        return Path(self.path).stem

    @property
    def basename(self) -> str:
        return Path(self.path).name


@dataclass
class TemporalReference:
    """The date(s) a query refers to."""
    type: str  # exact | range | relative | none
    dates: list[str] = field(default_factory=list)
    confidence: float = 0.0
    matched_text: str = ""
    files: list[str] = field(default_factory=list)
    range_start: str | None = None
    range_end: str | None = None
    week: str | None = None  # ISO week label, e.g. "2026-W06"

    @classmethod
    def none(cls) -> "TemporalReference":
        return cls(type="none")

    @property
    def found(self) -> bool:
        return self.type != "none"

    def to_dict(self) -> dict[str, Any]:
        data = {
            "type": self.type,
            "dates": list(self.dates),
            "confidence": self.confidence,
            "matchedText": self.matched_text,
            "files": list(self.files),
        }
        if self.range_start is not None:
            data["range"] = {"start": self.range_start, "end": self.range_end}
        if self.week is not None:
            data["week"] = self.week
        return data


@dataclass
class RankedResult:
    """One hit from one producer, before fusion."""
    path: str
    rank: int
    score: float
    snippet: str = ""
    source: str = "semantic"  # semantic | temporal | concept | expansion


@dataclass
class FusedResult:
    """A hit after reciprocal rank fusion."""
    path: str
    rrf_score: float
    sources: list[str]
    best_rank: int
    snippet: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "snippet": self.snippet,
            "rrfScore": self.rrf_score,
            "sources": list(self.sources),
            "bestRank": self.best_rank,
        }


@dataclass
class SmartSearchResult:
    """Everything one orchestrated query produced."""
    query: str
    temporal: TemporalReference
    expanded: list[str]
    concept_matches: list[str]
    results: list[FusedResult]
    strategy_contributions: dict[str, int]
    elapsed_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "temporal": self.temporal.to_dict() if self.temporal.found else None,
            "expanded": list(self.expanded),
            "conceptMatches": list(self.concept_matches),
            "results": [r.to_dict() for r in self.results],
            "strategyContributions": dict(self.strategy_contributions),
            "elapsed": self.elapsed_ms,
        }


@dataclass
class EdgeReason:
    """Why two entries are connected."""
    type: str  # entity | xref | temporal | section
    detail: str
    contribution: float


@dataclass
class GraphEdge:
    """A weighted, undirected relationship between two entries."""
    source: str
    target: str
    weight: float
    reasons: list[EdgeReason] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str]:
        a, b = sorted((self.source, self.target))
        return a, b

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "weight": self.weight,
            "reasons": [
                {"type": r.type, "detail": r.detail, "contribution": r.contribution}
                for r in self.reasons
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GraphEdge":
        return cls(
            source=data["source"],
            target=data["target"],
            weight=float(data["weight"]),
            reasons=[
                EdgeReason(r["type"], r.get("detail", ""), float(r.get("contribution", 0.0)))
                for r in data.get("reasons", [])
            ],
        )


@dataclass
class GraphNode:
    """One entry in the relationship graph."""
    path: str
    type: str
    edges: dict[str, float] = field(default_factory=dict)
    degree: int = 0
    weighted_degree: float = 0.0
    cluster: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "path": self.path,
            "type": self.type,
            "edges": dict(self.edges),
            "degree": self.degree,
            "weightedDegree": self.weighted_degree,
        }
        if self.cluster is not None:
            data["cluster"] = self.cluster
        return data

    @classmethod
    def from_dict(cls, path: str, data: dict[str, Any]) -> "GraphNode":
        return cls(
            path=path,
            type=data.get("type", "topic"),
            edges={k: float(v) for k, v in data.get("edges", {}).items()},
            degree=int(data.get("degree", 0)),
            weighted_degree=float(data.get("weightedDegree", 0.0)),
            cluster=data.get("cluster"),
        )


@dataclass
class Cluster:
    """A group of densely connected entries."""
    id: int
    label: str
    members: list[str]
    coherence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "members": list(self.members),
            "coherence": self.coherence,
        }


@dataclass
class MemoryGraph:
    """A full relationship graph snapshot."""
    nodes: dict[str, GraphNode]
    edges: list[GraphEdge]
    clusters: list[Cluster] = field(default_factory=list)
    built_at: str = ""
    version: int = 1

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "builtAt": self.built_at,
            "nodeCount": self.node_count,
            "edgeCount": self.edge_count,
            "nodes": {path: node.to_dict() for path, node in self.nodes.items()},
            "edges": [e.to_dict() for e in self.edges],
            "clusters": [c.to_dict() for c in self.clusters],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoryGraph":
        return cls(
            version=int(data.get("version", 1)),
            built_at=data.get("builtAt", ""),
            nodes={p: GraphNode.from_dict(p, n) for p, n in data.get("nodes", {}).items()},
            edges=[GraphEdge.from_dict(e) for e in data.get("edges", [])],
            clusters=[
                Cluster(
                    id=int(c["id"]),
                    label=c.get("label", ""),
                    members=list(c.get("members", [])),
                    coherence=float(c.get("coherence", 0.0)),
                )
                for c in data.get("clusters", [])
            ],
        )


@dataclass
class ExpandedResult:
    """A context-expansion hit: either an initial search hit or a graph neighbor."""
    path: str
    score: float
    source: str  # "search" or "graph(<seed basename>)"
    seed: str | None = None
