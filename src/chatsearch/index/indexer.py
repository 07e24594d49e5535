"""Virtual file indexing pipeline."""

from __future__ import annotations

import asyncio
import logging
from typing import List

import numpy as np

from chatsearch.embedding.encoder import EmbeddingModel
from chatsearch.errors import EmbeddingFailure, IndexingFailure, StoreUnavailable
from chatsearch.index.storage import SQLiteVectorStore
from chatsearch.models import Chunk, EntryMetadata, IndexedEntry, IndexResult
from chatsearch.utils.files import is_lock_file, make_entry_id
from chatsearch.utils.text import chunk_lines

LOGGER = logging.getLogger(__name__)


async def embed_with_timeout(
    embedder: EmbeddingModel, texts: List[str], timeout: float
) -> np.ndarray:
    """Run one batch embedding call in a worker thread, bounded by ``timeout``."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(embedder.embed, texts), timeout)
    except asyncio.TimeoutError as exc:
        raise EmbeddingFailure(f"Embedding timed out after {timeout:g}s") from exc


class Indexer:
    """Chunks, embeds and stores one revision of a virtual file."""

    def __init__(
        self,
        embedder: EmbeddingModel,
        store: SQLiteVectorStore,
        *,
        chunk_size: int = 20,
        overlap: int = 5,
        embed_timeout: float = 30.0,
        purge_stale: bool = True,
    ) -> None:
        self.embedder = embedder
        self.store = store
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.embed_timeout = embed_timeout
        self.purge_stale = purge_stale

    async def index_file(self, file_path: str, content: str, session_id: str) -> IndexResult:
        """Index ``content`` as the current revision of ``file_path``.

        Returns a skipped result for lock files and a zero-chunk result for
        blank files. Nothing is written unless every chunk was embedded.
        """
        if is_lock_file(file_path):
            LOGGER.info("Skipping lock file %s", file_path)
            return IndexResult(chunk_count=0, skipped=True)

        # Fail fast instead of spending an embedding call on a dead store
        if not self.store.ready:
            raise StoreUnavailable(self.store.failure_reason or "collection not initialized")

        chunks = chunk_lines(content, chunk_size=self.chunk_size, overlap=self.overlap)
        if not chunks:
            LOGGER.info("No content chunks in %s, nothing to embed", file_path)
            if self.purge_stale:
                await self._commit(session_id, file_path, [])
            return IndexResult(chunk_count=0)

        try:
            embeddings = await embed_with_timeout(
                self.embedder, [chunk.text for chunk in chunks], self.embed_timeout
            )
        except EmbeddingFailure as exc:
            LOGGER.error("Embedding failed for %s: %s", file_path, exc)
            raise IndexingFailure(file_path, str(exc)) from exc

        if len(embeddings) != len(chunks):
            raise IndexingFailure(
                file_path, f"expected {len(chunks)} embeddings, got {len(embeddings)}"
            )

        entries = self._build_entries(session_id, file_path, chunks, embeddings)
        await self._commit(session_id, file_path, entries)

        LOGGER.info(
            "Indexed %s for session %s (%d chunks)", file_path, session_id, len(entries)
        )
        return IndexResult(chunk_count=len(entries))

    @staticmethod
    def _build_entries(
        session_id: str, file_path: str, chunks: List[Chunk], embeddings: np.ndarray
    ) -> List[IndexedEntry]:
        return [
            IndexedEntry(
                id=make_entry_id(session_id, file_path, ordinal),
                embedding=vector,
                metadata=EntryMetadata(
                    file_path=file_path, content=chunk.text, session_id=session_id
                ),
                ordinal=ordinal,
            )
            for ordinal, (chunk, vector) in enumerate(zip(chunks, embeddings))
        ]

    async def _commit(
        self, session_id: str, file_path: str, entries: List[IndexedEntry]
    ) -> None:
        try:
            await asyncio.to_thread(
                self.store.replace_file,
                session_id,
                file_path,
                entries,
                purge_stale=self.purge_stale,
            )
        except StoreUnavailable:
            raise
        except Exception as exc:
            LOGGER.exception("Failed to store chunks of %s", file_path)
            raise IndexingFailure(file_path, str(exc)) from exc
