"""Semantic search interface."""

from __future__ import annotations

import asyncio
import logging
from typing import List

from chatsearch.embedding.encoder import EmbeddingModel
from chatsearch.errors import EmbeddingFailure, SearchFailure, StoreUnavailable
from chatsearch.index.indexer import embed_with_timeout
from chatsearch.index.scoring import ScoreTransform, get_score_transform
from chatsearch.index.storage import SQLiteVectorStore
from chatsearch.models import SearchResult

LOGGER = logging.getLogger(__name__)


class Searcher:
    """High-level API to query one session's slice of the vector store."""

    def __init__(
        self,
        embedder: EmbeddingModel,
        store: SQLiteVectorStore,
        *,
        score_transform: ScoreTransform | None = None,
        embed_timeout: float = 30.0,
    ) -> None:
        self.embedder = embedder
        self.store = store
        self.score_transform = score_transform or get_score_transform(store.metric)
        self.embed_timeout = embed_timeout

    async def search(self, query: str, session_id: str, *, top_k: int = 5) -> List[SearchResult]:
        if not query or not query.strip():
            return []
        if top_k < 1:
            raise ValueError("top_k must be positive")

        # Fail fast instead of spending an embedding call on a dead store
        if not self.store.ready:
            raise StoreUnavailable(self.store.failure_reason or "collection not initialized")

        try:
            embedding = (
                await embed_with_timeout(self.embedder, [query], self.embed_timeout)
            )[0]
        except EmbeddingFailure as exc:
            LOGGER.error("Query embedding failed: %s", exc)
            raise SearchFailure(str(exc)) from exc

        matches = await asyncio.to_thread(
            self.store.query, embedding, top_k=top_k, session_id=session_id
        )

        results: List[SearchResult] = []
        for metadata, distance in matches:
            if distance is None:
                continue
            results.append(
                SearchResult(
                    file_path=metadata.file_path,
                    content=metadata.content,
                    score=self.score_transform(distance),
                )
            )

        if not self.score_transform.monotonic:
            results.sort(key=lambda result: result.score, reverse=True)

        LOGGER.debug("Search in session %s returned %d results", session_id, len(results))
        return results
