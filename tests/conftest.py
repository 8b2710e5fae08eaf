"""Shared test configuration and fixtures."""

import copy
import json
from datetime import date
from pathlib import Path

import pytest

from kbrecall.config import DEFAULT_CONFIG, expand_paths
from kbrecall.query.concepts import ConceptIndex
from kbrecall.search import SearchAdapter

# Thursday, ISO week 2026-W07
TODAY = date(2026, 2, 12)

MEMORY_FILES = {
    "MEMORY.md": (
        "# Memory\n\n"
        "Long-term notes. Strategy lives in topics/defi-strategy.md\n\n"
        "## Decisions\n"
        "We decided to keep the jitosol position passive.\n"
    ),
    "IDENTITY.md": "# Identity\n\nI am a research assistant that keeps written notes.\n",
    "daily/2026-02-09.md": "# 2026-02-09\n\n## Notes\nPlanned the week.\n",
    "daily/2026-02-10.md": "# 2026-02-10\n\n## Notes\nMoved funds into kamino vaults.\n",
    "daily/2026-02-11.md": (
        "# 2026-02-11\n\n"
        "## Notes\n"
        "Fixed the indexer bug that dropped headings. Shipped the release.\n"
    ),
    "daily/2026-02-12.md": "# 2026-02-12\n\n## Notes\nReviewed search quality.\n",
    "weekly/2026-W06.md": "# Week 6\n\n## Summary\nQuiet week, mostly reading.\n",
    "weekly/2026-W07.md": "# Week 7\n\n## Summary\nIndexer fixes and kamino rebalancing.\n",
    "topics/defi-strategy.md": (
        "# DeFi Strategy\n\n"
        "Passive yield first, never chase incentives.\n\n"
        "## Yield\n"
        "Kamino lending pays the most stable rate.\n\n"
        "## Decisions\n"
        "Stay in jitosol unless the peg breaks.\n"
    ),
    "topics/moongate.md": "# Wallet Project\n\nMPC wallet engineering work.\n",
    "people/contacts.md": "# People\n\n## Team\nPraneet leads the moongate backend.\n",
    "archive/old.md": "# Old\n\nArchived and ignored.\n",
    ".obsidian/workspace.md": "# Hidden\n",
}

CONCEPTS = {
    "concepts": {
        "kamino": {
            "files": {
                "topics/defi-strategy.md": {"count": 4, "sections": ["Yield"]},
                "daily/2026-02-10.md": {"count": 7, "sections": ["Notes"]},
            },
            "related": ["yield", "jitosol", "topics/defi-strategy.md"],
            "totalMentions": 11,
        },
        "jitosol": {
            "files": {
                "topics/defi-strategy.md": {"count": 2, "sections": ["Decisions"]},
                "MEMORY.md": {"count": 1, "sections": ["Decisions"]},
            },
            "related": ["kamino"],
            "totalMentions": 3,
        },
        "yield": {
            "files": {"topics/defi-strategy.md": {"count": 3, "sections": ["Yield"]}},
            "related": ["kamino"],
            "totalMentions": 15,
        },
        "moongate": {
            "files": {
                "topics/moongate.md": {"count": 2, "sections": []},
                "people/contacts.md": {"count": 2, "sections": ["Team"]},
            },
            "related": ["praneet"],
            "totalMentions": 4,
        },
        "ghost": {
            "files": {"topics/gone.md": {"count": 3, "sections": ["Old Plans", "Misc"]}},
            "related": [],
        },
    }
}


class StubAdapter(SearchAdapter):
    """Search backend returning canned results and recording queries."""

    def __init__(self, results=None, by_query=None, timeout=1.0):
        super().__init__(timeout=timeout)
        self.results = results if results is not None else []
        self.by_query = by_query or {}
        self.calls = []

    def _search(self, query, max_results):
        self.calls.append((query, max_results))
        return list(self.by_query.get(query, self.results))[:max_results]


class FailingAdapter(SearchAdapter):
    def _search(self, query, max_results):
        raise RuntimeError("backend down")


@pytest.fixture
def memory_root(tmp_path) -> Path:
    root = tmp_path / "memory"
    for rel, text in MEMORY_FILES.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def concept_index_path(tmp_path) -> Path:
    path = tmp_path / "state" / "concept-index.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(CONCEPTS), encoding="utf-8")
    return path


@pytest.fixture
def concept_index(concept_index_path) -> ConceptIndex:
    return ConceptIndex.load(concept_index_path)


@pytest.fixture
def config(tmp_path, memory_root, concept_index_path) -> dict:
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["memory_path"] = str(memory_root)
    cfg["concept_index_path"] = str(concept_index_path)
    cfg["graph_path"] = str(tmp_path / "state" / "memory-graph.json")
    cfg["search"]["chroma_path"] = str(tmp_path / "chroma")
    cfg["benchmark"]["history_path"] = str(tmp_path / "state" / "search-history.json")
    cfg["graph"]["cluster_seed"] = 7
    return expand_paths(cfg)


@pytest.fixture
def stub_adapter() -> StubAdapter:
    return StubAdapter(results=[
        {"path": "topics/moongate.md", "score": 0.61, "snippet": "MPC wallet engineering work."},
        {"path": "IDENTITY.md", "score": 0.42, "snippet": "I am a research assistant"},
    ])
