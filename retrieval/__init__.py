"""Document retrieval backed by persisted FAISS vector stores."""

from .config import EmbeddingConfig, RetrievalConfig
from .loader import VectorStoreLoader, load_vector_store
from .service import RetrievalFactory, RetrievalService, VectorStoreRetrievalService, build_retrieval_factory

__all__ = [
    "EmbeddingConfig",
    "RetrievalConfig",
    "RetrievalFactory",
    "RetrievalService",
    "VectorStoreLoader",
    "VectorStoreRetrievalService",
    "build_retrieval_factory",
    "load_vector_store",
]
