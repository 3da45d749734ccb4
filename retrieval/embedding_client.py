"""Client for OpenAI-compatible embedding endpoints."""

from __future__ import annotations

import logging
from typing import Dict, List

import requests

from .config import EmbeddingConfig

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Embed texts in batches against ``config.endpoint``."""

    def __init__(self, config: EmbeddingConfig) -> None:
        self.config = config

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """Return one embedding vector per input text, in order."""
        vectors: List[List[float]] = []
        batch_size = max(1, self.config.batch_size)
        for start in range(0, len(texts), batch_size):
            batch = texts[start : start + batch_size]
            vectors.extend(self._embed_batch(batch))
        return vectors

    def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        payload: Dict[str, object] = {"model": self.config.model, "input": batch}
        if self.config.model_kwargs:
            payload.update(self.config.model_kwargs)

        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        logger.debug("Embedding batch of %d text(s) via %s", len(batch), self.config.endpoint)
        response = requests.post(
            self.config.endpoint,
            json=payload,
            headers=headers,
            timeout=self.config.request_timeout,
        )
        response.raise_for_status()
        data = response.json().get("data") or []
        # Providers may return items out of order; "index" restores it.
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        if len(ordered) != len(batch):
            raise RuntimeError(f"Embedding service returned {len(ordered)} vector(s) for {len(batch)} input(s)")
        return [list(item.get("embedding") or []) for item in ordered]
