"""Embedding model management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
from sentence_transformers import SentenceTransformer

from chatsearch.errors import EmbeddingFailure

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EmbeddingConfig:
    model_name: str = DEFAULT_MODEL
    batch_size: int = 16
    normalize: bool = True
    device: str | None = None


class EmbeddingModel:
    """Thin wrapper around `SentenceTransformer` for chunk and query embeddings.

    The model is loaded once; its identity is fixed by the config and its
    output dimension is checked on every call.
    """

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self.config = config or EmbeddingConfig()
        self._model = self._load_model()
        self.dimension = int(self._model.get_sentence_embedding_dimension())
        logger.info(
            "Loaded embedding model %s (dimension %d, device %s)",
            self.config.model_name,
            self.dimension,
            self.config.device or "auto",
        )

    def _load_model(self) -> SentenceTransformer:
        return SentenceTransformer(self.config.model_name, device=self.config.device)

    def embed(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray:
        """Return a float32 matrix with one embedding row per input text.

        Raises:
            ValueError: if any input is empty or whitespace only.
            EmbeddingFailure: if the model errors or returns malformed output.
        """
        sentences = list(texts)
        for sentence in sentences:
            if not sentence or not sentence.strip():
                raise ValueError("Cannot embed an empty string")
        if not sentences:
            return np.empty((0, self.dimension), dtype="float32")

        try:
            embeddings = self._model.encode(
                sentences,
                batch_size=self.config.batch_size,
                show_progress_bar=False,
                convert_to_numpy=True,
                normalize_embeddings=self.config.normalize,
            )
        except Exception as exc:
            logger.error("Embedding model %s failed: %s", self.config.model_name, exc)
            raise EmbeddingFailure(f"Embedding model error: {exc}") from exc

        embeddings = np.asarray(embeddings, dtype="float32")
        expected = (len(sentences), self.dimension)
        if embeddings.shape != expected:
            raise EmbeddingFailure(
                f"Embedding model returned shape {embeddings.shape}, expected {expected}"
            )
        if not np.all(np.isfinite(embeddings)):
            raise EmbeddingFailure("Embedding model returned non-finite values")
        return embeddings
