"""Document search collaborator used by the chat and agent tools."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from .config import RetrievalConfig
from .embedding_client import EmbeddingClient
from .loader import VectorStoreLoader, load_vector_store

logger = logging.getLogger(__name__)

Documents = List[Dict[str, Any]]


@runtime_checkable
class RetrievalService(Protocol):
    """Anything that can search documents for a query."""

    def search_documents(self, query: str) -> Documents: ...


RetrievalFactory = Callable[[], RetrievalService]


class VectorStoreRetrievalService:
    """Search a persisted FAISS vector store.

    The store is loaded on first search, so constructing one is cheap and a
    fresh instance can be created for every tool call.
    """

    def __init__(
        self,
        config: Optional[RetrievalConfig] = None,
        *,
        embedding_client: Optional[EmbeddingClient] = None,
    ) -> None:
        self.config = config or RetrievalConfig()
        self.embedding_client = embedding_client
        self._loader: Optional[VectorStoreLoader] = None

    def search_documents(self, query: str) -> Documents:
        if not self.config.store_dir:
            raise RuntimeError("No vector store directory configured for document search")
        if self._loader is None:
            self._loader = load_vector_store(
                self.config.store_dir,
                embedding_config=self.config.embedding,
                embedding_client=self.embedding_client,
            )
        logger.info("Searching documents in %s (top_k=%d)", self.config.store_dir, self.config.top_k)
        return self._loader.search(query, top_k=self.config.top_k)


def build_retrieval_factory(config: Optional[RetrievalConfig] = None) -> RetrievalFactory:
    """Return a factory producing a fresh retrieval service per call."""
    resolved = config or RetrievalConfig()

    def factory() -> RetrievalService:
        return VectorStoreRetrievalService(resolved)

    return factory
