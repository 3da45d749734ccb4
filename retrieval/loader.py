"""Load persisted FAISS vector stores and run similarity search.

A store directory holds ``index.faiss`` and a ``metadata.json`` list whose
entries line up with the index rows. Each entry carries the chunk ``text`` plus
arbitrary metadata (source path, title, ...). Building stores is out of scope
here; this module only reads them.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

try:
    import faiss  # type: ignore
except ImportError as exc:  # pragma: no cover - runtime dependency
    raise RuntimeError(
        "The faiss library is required for loading vector stores. Install faiss-cpu via pip or conda."
    ) from exc

from .config import EmbeddingConfig
from .embedding_client import EmbeddingClient

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.faiss"
METADATA_FILENAME = "metadata.json"


class VectorStoreLoader:
    """Read-only view over one persisted store directory."""

    def __init__(
        self,
        store_dir: str,
        *,
        embedding_config: Optional[EmbeddingConfig] = None,
        embedding_client: Optional[EmbeddingClient] = None,
    ) -> None:
        self.store_dir = Path(store_dir)
        self.embedding_client = embedding_client or EmbeddingClient(embedding_config or EmbeddingConfig())
        self._index: Optional[Any] = None
        self._chunks: List[Dict[str, Any]] = []

    @property
    def is_loaded(self) -> bool:
        return self._index is not None and bool(self._chunks)

    def load(self) -> None:
        index_path = self.store_dir / INDEX_FILENAME
        metadata_path = self.store_dir / METADATA_FILENAME
        for path in (index_path, metadata_path):
            if not path.exists():
                raise FileNotFoundError(f"Vector store file missing: {path}")

        chunks = json.loads(metadata_path.read_text(encoding="utf-8"))
        if not isinstance(chunks, list):
            raise ValueError(f"{METADATA_FILENAME} must contain a list of chunk entries")

        self._index = faiss.read_index(str(index_path))
        self._chunks = chunks
        if self._index.ntotal != len(chunks):
            logger.warning(
                "Store %s has %d vectors but %d metadata entries", self.store_dir, self._index.ntotal, len(chunks)
            )
        logger.info("Loaded vector store %s (%d chunk(s))", self.store_dir, len(chunks))

    def search(self, query: str, top_k: int = 4) -> List[Dict[str, Any]]:
        """Embed ``query`` and return up to ``top_k`` chunks, nearest first.

        Each result is ``{"id", "score", "text", "metadata"}`` where ``score``
        is the raw FAISS distance and ``metadata`` is the chunk entry without
        its text.
        """
        if not query or top_k <= 0:
            raise ValueError("search needs a non-empty query and a positive top_k")
        if self._index is None:
            raise RuntimeError("Vector store is not loaded. Call load() first.")

        vectors = self.embedding_client.embed_documents([query])
        if not vectors or not vectors[0]:
            raise RuntimeError("Embedding service returned no vector for the query")
        query_vector = np.asarray([vectors[0]], dtype="float32")
        if query_vector.shape[1] != self._index.d:
            raise ValueError(
                f"Query embedding has {query_vector.shape[1]} dimensions, store expects {self._index.d}"
            )

        distances, rows = self._index.search(query_vector, min(top_k, self._index.ntotal))
        hits: List[Dict[str, Any]] = []
        for row, distance in zip(rows[0].tolist(), distances[0].tolist()):
            if row < 0:
                continue
            chunk = dict(self._chunks[row]) if row < len(self._chunks) else {}
            text = chunk.pop("text", "")
            hits.append({"id": row, "score": float(distance), "text": text, "metadata": chunk})
        return hits


def load_vector_store(
    store_dir: str,
    *,
    embedding_config: Optional[EmbeddingConfig] = None,
    embedding_client: Optional[EmbeddingClient] = None,
) -> VectorStoreLoader:
    """Return a :class:`VectorStoreLoader` with its index already in memory."""
    loader = VectorStoreLoader(store_dir, embedding_config=embedding_config, embedding_client=embedding_client)
    loader.load()
    return loader
