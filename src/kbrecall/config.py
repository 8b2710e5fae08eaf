"""Configuration management for kbrecall."""

import copy
import os
from pathlib import Path
from typing import Any

import yaml


DEFAULT_CONFIG = {
    "memory_path": "~/.kbrecall/memory",
    "concept_index_path": "~/.kbrecall/state/concept-index.json",
    "graph_path": "~/.kbrecall/state/memory-graph.json",
    "layout": {
        "daily_dir": "daily",
        "weekly_dir": "weekly",
        "topics_dir": "topics",
        "people_dir": "people",
        "core_files": ["MEMORY.md", "SOUL.md", "IDENTITY.md", "USER.md", "TOOLS.md"],
        "skip_dirs": ["archive"],
    },
    "search": {
        "backend": "none",  # none | command | chroma
        "command": [],
        "timeout": 15.0,
        "chroma_path": "~/.kbrecall/chroma",
        "collection": "documents",
        "embedding_model": "intfloat/e5-large-v2",
    },
    "fusion": {
        "k": 60,
        "temporal_k": 30,
        "temporal_k_confidence": 0.8,
        "limit": 10,
        "weights": {
            "semantic": 1.0,
            "temporal": 2.0,
            "concept": 0.8,
            "concept_multi": 1.2,
            "expansion": 0.5,
        },
    },
    "concepts": {
        "aliases": {},
        "entities": [],
        "match_index_concepts": True,
    },
    "expansion": {
        "max_variants": 3,
        "synonyms": {
            "mistake": ["error", "bug", "fix", "regression"],
            "decision": ["decided", "chose", "strategy", "approach"],
            "problem": ["issue", "bug", "error", "failure"],
            "build": ["built", "created", "implemented", "shipped"],
            "learn": ["learned", "discovered", "insight", "lesson"],
            "memory": ["recall", "search", "notes"],
            "security": ["injection", "attack", "vulnerability"],
            "rules": ["never", "always", "forbidden", "allowlist"],
            "people": ["contacts", "team", "colleagues"],
            "work": ["project", "ticket", "engineering"],
        },
    },
    "graph": {
        "min_concept_files": 2,
        "max_concept_files": 8,
        "noise_concepts": [],
        "prune_floor": 0.2,
        "prune_median_factor": 1.1,
        "cluster_passes": 20,
        "cluster_seed": None,
    },
    "context": {
        "seeds": 3,
        "neighbors_per_seed": 3,
        "decay": 0.6,
        "max_results": 8,
        "initial_results": 5,
    },
    "benchmark": {
        "cases_path": None,
        "history_path": "~/.kbrecall/state/search-history.json",
        "history_size": 20,
    },
}

_PATH_KEYS = ("memory_path", "concept_index_path", "graph_path")


def _find_config_file() -> Path | None:
    """Look for config.yaml in standard locations."""
    candidates = [
        Path.cwd() / "config" / "config.yaml",
        Path.cwd() / "config.yaml",
        Path.home() / ".kbrecall" / "config.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return None


def load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration, merging defaults with file and env vars."""
    cfg = copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else _find_config_file()
    if path and path.exists():
        with open(path) as f:
            file_cfg = yaml.safe_load(f) or {}
        _deep_merge(cfg, file_cfg)

    # Env overrides
    if memory_path := os.environ.get("KBRECALL_MEMORY_PATH"):
        cfg["memory_path"] = memory_path

    return expand_paths(cfg)


def expand_paths(cfg: dict[str, Any]) -> dict[str, Any]:
    """Expand ``~`` and resolve every path-valued setting in place."""
    for key in _PATH_KEYS:
        cfg[key] = str(Path(cfg[key]).expanduser().resolve())
    cfg["search"]["chroma_path"] = str(Path(cfg["search"]["chroma_path"]).expanduser().resolve())
    bench = cfg["benchmark"]
    bench["history_path"] = str(Path(bench["history_path"]).expanduser().resolve())
    if bench.get("cases_path"):
        bench["cases_path"] = str(Path(bench["cases_path"]).expanduser().resolve())
    return cfg


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in-place."""
    for k, v in override.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
