"""Tests for the semantic search pipeline."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
import pytest

from chatsearch.errors import EmbeddingFailure, SearchFailure, StoreUnavailable
from chatsearch.index.scoring import ScoreTransform
from chatsearch.index.search import Searcher
from chatsearch.index.storage import SQLiteVectorStore
from chatsearch.models import EntryMetadata, IndexedEntry, SearchResult
from chatsearch.utils.files import make_entry_id


def _metadata(file_path: str, session_id: str = "chat-1") -> EntryMetadata:
    return EntryMetadata(file_path=file_path, content=f"content of {file_path}", session_id=session_id)


@pytest.fixture
def mock_embedder():
    embedder = MagicMock()
    embedder.embed.return_value = np.array([[0.1, 0.2, 0.3]], dtype="float32")
    return embedder


@pytest.fixture
def mock_store():
    store = MagicMock()
    store.metric = "cosine"
    store.query.return_value = []
    return store


class TestSearcher:
    """Test Searcher with a mocked store."""

    def test_scores_from_distances(self, mock_embedder, mock_store) -> None:
        """Distances 0.1, 0.4, 0.9 become scores 0.9, 0.6, 0.1 in that order."""
        mock_store.query.return_value = [
            (_metadata("a.py"), 0.1),
            (_metadata("b.py"), 0.4),
            (_metadata("c.py"), 0.9),
        ]
        searcher = Searcher(mock_embedder, mock_store)

        results = asyncio.run(searcher.search("find me", "chat-1", top_k=5))

        assert [r.file_path for r in results] == ["a.py", "b.py", "c.py"]
        assert [r.score for r in results] == pytest.approx([0.9, 0.6, 0.1])
        assert results[0].content == "content of a.py"

    def test_query_is_scoped_to_session(self, mock_embedder, mock_store) -> None:
        searcher = Searcher(mock_embedder, mock_store)

        asyncio.run(searcher.search("query", "chat-7", top_k=3))

        kwargs = mock_store.query.call_args[1]
        assert kwargs["session_id"] == "chat-7"
        assert kwargs["top_k"] == 3

    def test_default_top_k(self, mock_embedder, mock_store) -> None:
        searcher = Searcher(mock_embedder, mock_store)

        asyncio.run(searcher.search("query", "chat-1"))

        assert mock_store.query.call_args[1]["top_k"] == 5

    @pytest.mark.parametrize("query", ["", "   ", "\n\t"])
    def test_empty_query_skips_embedder(self, mock_embedder, mock_store, query: str) -> None:
        searcher = Searcher(mock_embedder, mock_store)

        results = asyncio.run(searcher.search(query, "chat-1"))

        assert results == []
        mock_embedder.embed.assert_not_called()
        mock_store.query.assert_not_called()

    def test_skips_missing_distances(self, mock_embedder, mock_store) -> None:
        mock_store.query.return_value = [
            (_metadata("a.py"), 0.2),
            (_metadata("b.py"), None),
        ]
        searcher = Searcher(mock_embedder, mock_store)

        results = asyncio.run(searcher.search("query", "chat-1"))

        assert [r.file_path for r in results] == ["a.py"]

    def test_embedding_failure_becomes_search_failure(self, mock_embedder, mock_store) -> None:
        mock_embedder.embed.side_effect = EmbeddingFailure("model offline")
        searcher = Searcher(mock_embedder, mock_store)

        with pytest.raises(SearchFailure, match="model offline") as excinfo:
            asyncio.run(searcher.search("query", "chat-1"))

        assert isinstance(excinfo.value.__cause__, EmbeddingFailure)
        mock_store.query.assert_not_called()

    def test_store_unavailable_propagates(self, mock_embedder, mock_store) -> None:
        mock_store.query.side_effect = StoreUnavailable("collection not initialized")
        searcher = Searcher(mock_embedder, mock_store)

        with pytest.raises(StoreUnavailable):
            asyncio.run(searcher.search("query", "chat-1"))

    def test_store_not_ready_skips_embedder(self, mock_embedder, mock_store) -> None:
        mock_store.ready = False
        mock_store.failure_reason = "unable to open database file"
        searcher = Searcher(mock_embedder, mock_store)

        with pytest.raises(StoreUnavailable, match="unable to open database file"):
            asyncio.run(searcher.search("query", "chat-1"))

        mock_embedder.embed.assert_not_called()
        mock_store.query.assert_not_called()

    def test_invalid_top_k(self, mock_embedder, mock_store) -> None:
        searcher = Searcher(mock_embedder, mock_store)

        with pytest.raises(ValueError):
            asyncio.run(searcher.search("query", "chat-1", top_k=0))

    def test_transform_follows_store_metric(self, mock_embedder, mock_store) -> None:
        mock_store.metric = "l2"
        mock_store.query.return_value = [(_metadata("a.py"), 1.0)]
        searcher = Searcher(mock_embedder, mock_store)

        results = asyncio.run(searcher.search("query", "chat-1"))

        assert results[0].score == pytest.approx(0.5)

    def test_non_monotonic_transform_is_resorted(self, mock_embedder, mock_store) -> None:
        mock_store.query.return_value = [
            (_metadata("a.py"), 0.1),
            (_metadata("b.py"), 0.4),
            (_metadata("c.py"), 0.9),
        ]
        transform = ScoreTransform("custom", lambda d: d, monotonic=False)
        searcher = Searcher(mock_embedder, mock_store, score_transform=transform)

        results = asyncio.run(searcher.search("query", "chat-1"))

        assert [r.file_path for r in results] == ["c.py", "b.py", "a.py"]

    def test_returns_search_results(self, mock_embedder, mock_store) -> None:
        mock_store.query.return_value = [(_metadata("a.py"), 0.25)]
        searcher = Searcher(mock_embedder, mock_store)

        results = asyncio.run(searcher.search("query", "chat-1"))

        assert results == [SearchResult(file_path="a.py", content="content of a.py", score=0.75)]


class TestSearcherWithStore:
    """Test Searcher against a real SQLite store."""

    def test_uninitialized_store_fails_fast(self, tmp_path: Path, mock_embedder) -> None:
        store = SQLiteVectorStore(tmp_path / "test.db", dimension=3)
        searcher = Searcher(mock_embedder, store)

        with pytest.raises(StoreUnavailable, match="not initialized"):
            asyncio.run(searcher.search("query", "chat-1"))

        mock_embedder.embed.assert_not_called()

    def test_never_returns_other_sessions(self, tmp_path: Path, mock_embedder) -> None:
        store = SQLiteVectorStore(tmp_path / "test.db", dimension=3)
        store.initialize()
        query_vector = np.array([0.1, 0.2, 0.3], dtype="float32")
        entries = []
        for session_id, file_path in [
            ("chat-1", "mine.py"),
            ("chat-2", "exact-match.py"),
            ("chat-2", "other.py"),
            ("chat-1", "also-mine.py"),
        ]:
            entries.append(
                IndexedEntry(
                    id=make_entry_id(session_id, file_path, 0),
                    embedding=query_vector if session_id == "chat-2" else np.array([0.3, 0.2, 0.1]),
                    metadata=_metadata(file_path, session_id),
                    ordinal=0,
                )
            )
        store.upsert(entries)
        searcher = Searcher(mock_embedder, store)

        results = asyncio.run(searcher.search("query", "chat-1", top_k=10))

        assert sorted(r.file_path for r in results) == ["also-mine.py", "mine.py"]
        store.close()
