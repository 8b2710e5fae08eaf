"""ChromaDB + sentence-transformers search adapter."""

from pathlib import Path
from typing import Any

from .base import SearchAdapter


class ChromaSearchAdapter(SearchAdapter):
    """Semantic search over a persistent ChromaDB collection of entry chunks.

    Chunks carry their originating file in ``metadata["source"]``; hits are
    mapped back to memory-root-relative entry paths and only the best chunk
    per entry is kept.
    """

    def __init__(
        self,
        chroma_path: str,
        memory_path: str,
        collection: str = "documents",
        model_name: str = "intfloat/e5-large-v2",
        timeout: float = 15.0,
    ):
        super().__init__(timeout=timeout)
        self.chroma_path = Path(chroma_path)
        self.memory_path = Path(memory_path)
        self.collection_name = collection
        self.model_name = model_name
        self._model = None
        self._client = None

    @property
    def model(self):
        """Lazy-load the embedding model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    @property
    def client(self):
        if self._client is None:
            import chromadb
            self._client = chromadb.PersistentClient(path=str(self.chroma_path))
        return self._client

    def _relative(self, source: str) -> str:
        path = Path(source)
        if path.is_absolute():
            try:
                return path.relative_to(self.memory_path).as_posix()
            except ValueError:
                return path.as_posix()
        return path.as_posix()

    def _search(self, query: str, max_results: int) -> list[dict[str, Any]]:
        # e5 models need "query: " prefix for queries
        embedding = self.model.encode(f"query: {query}").tolist()
        collection = self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        # Over-fetch since several chunks can belong to the same entry
        results = collection.query(
            query_embeddings=[embedding],
            n_results=max_results * 3,
            include=["documents", "metadatas", "distances"],
        )

        best: dict[str, dict[str, Any]] = {}
        if results and results["ids"] and results["ids"][0]:
            for i, doc_id in enumerate(results["ids"][0]):
                metadata = results["metadatas"][0][i] if results["metadatas"] else {}
                source = (metadata or {}).get("source") or doc_id
                path = self._relative(source)
                score = max(0.0, 1 - (results["distances"][0][i] if results["distances"] else 0))
                if path not in best or score > best[path]["score"]:
                    best[path] = {
                        "path": path,
                        "score": score,
                        "snippet": (results["documents"][0][i] if results["documents"] else "")[:300],
                    }

        ranked = sorted(best.values(), key=lambda r: r["score"], reverse=True)
        return ranked[:max_results]
