"""Abstract base class for search adapters and factory function."""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any

from ..models import RankedResult

logger = logging.getLogger(__name__)


class SearchAdapter(ABC):
    """Common interface for external semantic search backends.

    Callers use ``search()``, which bounds the backend call by ``timeout``
    seconds and turns any failure into an empty list. Backends implement
    ``_search()`` and return dicts with ``path``, ``score`` and ``snippet``.
    """

    name = "semantic"

    def __init__(self, timeout: float = 15.0):
        self.timeout = timeout

    @abstractmethod
    def _search(self, query: str, max_results: int) -> list[dict[str, Any]]:
        """Run the query against the backend, best hit first."""

    def search(self, query: str, max_results: int = 10) -> list[RankedResult]:
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._search, query, max_results)
        try:
            raw = future.result(timeout=self.timeout)
        except FutureTimeout:
            logger.warning(f"{type(self).__name__} timed out after {self.timeout}s for {query!r}")
            return []
        except Exception as e:
            logger.warning(f"{type(self).__name__} failed for {query!r}: {e}")
            return []
        finally:
            executor.shutdown(wait=False)
        return self._to_ranked(raw, max_results)

    def _to_ranked(self, raw: Any, max_results: int) -> list[RankedResult]:
        if not isinstance(raw, list):
            logger.warning(f"{type(self).__name__} returned malformed results")
            return []
        results = []
        for item in raw:
            if not isinstance(item, dict) or not item.get("path"):
                continue
            try:
                score = float(item.get("score") or 0.0)
            except (TypeError, ValueError):
                score = 0.0
            results.append(RankedResult(
                path=str(item["path"]),
                rank=len(results) + 1,
                score=score,
                snippet=str(item.get("snippet") or ""),
                source="semantic",
            ))
            if len(results) >= max_results:
                break
        return results


class NullSearchAdapter(SearchAdapter):
    """No backend configured: every search is empty."""

    def _search(self, query: str, max_results: int) -> list[dict[str, Any]]:
        return []


def get_search_adapter(config: dict[str, Any]) -> SearchAdapter:
    """Factory: return the right search adapter based on config."""
    search_cfg = config.get("search", {})
    backend = search_cfg.get("backend", "none")
    timeout = float(search_cfg.get("timeout", 15.0))

    if backend == "none":
        return NullSearchAdapter(timeout=timeout)
    elif backend == "command":
        from .command import CommandSearchAdapter
        return CommandSearchAdapter(search_cfg.get("command", []), timeout=timeout)
    elif backend == "chroma":
        from .chromadb import ChromaSearchAdapter
        return ChromaSearchAdapter(
            chroma_path=search_cfg["chroma_path"],
            memory_path=config["memory_path"],
            collection=search_cfg.get("collection", "documents"),
            model_name=search_cfg.get("embedding_model", "intfloat/e5-large-v2"),
            timeout=timeout,
        )
    else:
        raise ValueError(f"Unknown search backend: {backend}")
