"""Configuration objects for document retrieval."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class EmbeddingConfig:
    """Embedding endpoint used to encode queries."""

    endpoint: str = "https://api.openai.com/v1/embeddings"
    model: str = "text-embedding-3-small"
    api_key: Optional[str] = None
    batch_size: int = 32
    request_timeout: int = 60
    model_kwargs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RetrievalConfig:
    """Where the persisted vector store lives and how much to return."""

    store_dir: Optional[str] = None
    top_k: int = 4
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
