"""SQLite-backed vector collection namespaced by chat session."""

from __future__ import annotations

import enum
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple

import numpy as np

from chatsearch.errors import ConfigurationError, StoreUnavailable
from chatsearch.index.scoring import SCORE_TRANSFORMS, compute_distances
from chatsearch.models import EntryMetadata, IndexedEntry

LOGGER = logging.getLogger(__name__)


class StoreStatus(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


class SQLiteVectorStore:
    """Persistence layer for chunk embeddings of virtual files.

    The store never computes embeddings: every vector arrives precomputed.
    It starts ``UNINITIALIZED``; ``initialize()`` moves it to ``READY`` or
    ``FAILED``, and every operation raises ``StoreUnavailable`` unless it is
    ``READY``.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        dimension: int | None,
        collection_name: str = "virtual_files",
        metric: str = "cosine",
    ) -> None:
        if metric not in SCORE_TRANSFORMS:
            raise ConfigurationError(f"Unknown distance metric: {metric}")
        if not collection_name.isidentifier():
            raise ConfigurationError(f"Invalid collection name: {collection_name!r}")
        self.db_path = Path(db_path)
        self.dimension = dimension
        self.collection_name = collection_name
        self.metric = metric
        self.status = StoreStatus.UNINITIALIZED
        self.failure_reason: str | None = None
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def ready(self) -> bool:
        return self.status is StoreStatus.READY

    @property
    def connection(self) -> sqlite3.Connection:
        self._require_ready()
        assert self._conn is not None
        return self._conn

    def initialize(self) -> StoreStatus:
        """Open the database and get or create the collection.

        Failures are logged and recorded, not raised; callers learn about them
        through ``StoreUnavailable`` on the next operation.
        """
        if self.status is not StoreStatus.UNINITIALIZED:
            return self.status
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=NORMAL;")
            self._ensure_schema()
        except (sqlite3.Error, ConfigurationError) as exc:
            LOGGER.error("Failed to initialize collection '%s': %s", self.collection_name, exc)
            self.status = StoreStatus.FAILED
            self.failure_reason = str(exc)
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            return self.status

        self.status = StoreStatus.READY
        LOGGER.info("Collection '%s' loaded from %s", self.collection_name, self.db_path)
        return self.status

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            if self.status is StoreStatus.READY:
                self.status = StoreStatus.UNINITIALIZED

    def _require_ready(self) -> None:
        if self.status is StoreStatus.FAILED:
            raise StoreUnavailable(self.failure_reason)
        if self.status is not StoreStatus.READY:
            raise StoreUnavailable("collection not initialized")

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        self._require_ready()
        with self._lock:
            conn = self.connection
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        conn = self._conn
        assert conn is not None
        table = self.collection_name
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS collections (
                    name TEXT PRIMARY KEY,
                    metric TEXT NOT NULL,
                    dimension INTEGER NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            existing = conn.execute(
                "SELECT metric, dimension FROM collections WHERE name = ?", (table,)
            ).fetchone()
            if existing is not None and self.dimension is None:
                # Maintenance callers open an existing collection without a model
                self.dimension = int(existing["dimension"])
            if existing is None:
                if self.dimension is None:
                    raise ConfigurationError(
                        f"Collection '{table}' does not exist and no dimension was given"
                    )
                conn.execute(
                    "INSERT INTO collections(name, metric, dimension) VALUES (?, ?, ?)",
                    (table, self.metric, self.dimension),
                )
            elif existing["metric"] != self.metric or existing["dimension"] != self.dimension:
                raise ConfigurationError(
                    f"Collection '{table}' was created with metric={existing['metric']} "
                    f"dimension={existing['dimension']}, "
                    f"not metric={self.metric} dimension={self.dimension}"
                )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    ordinal INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    embedding BLOB NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.execute(
                f"""CREATE INDEX IF NOT EXISTS idx_{table}_session_file
                    ON {table}(session_id, file_path)
                """
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def _check_dimension(self, vector: np.ndarray) -> np.ndarray:
        vector = np.asarray(vector, dtype="float32")
        if vector.shape != (self.dimension,):
            raise ValueError(
                f"Embedding has shape {vector.shape}, collection expects ({self.dimension},)"
            )
        return vector

    def upsert(self, entries: Sequence[IndexedEntry]) -> None:
        """Insert or fully replace entries by id, as one transaction."""
        self._require_ready()
        rows = [
            (
                entry.id,
                entry.metadata.session_id,
                entry.metadata.file_path,
                entry.ordinal,
                entry.metadata.content,
                sqlite3.Binary(self._check_dimension(entry.embedding).tobytes()),
            )
            for entry in entries
        ]
        if not rows:
            return
        with self.transaction() as conn:
            self._write_rows(conn, rows)

    def _write_rows(self, conn: sqlite3.Connection, rows: List[tuple]) -> None:
        conn.executemany(
            f"""
            INSERT INTO {self.collection_name}
                (id, session_id, file_path, ordinal, content, embedding)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                session_id = excluded.session_id,
                file_path = excluded.file_path,
                ordinal = excluded.ordinal,
                content = excluded.content,
                embedding = excluded.embedding,
                updated_at = CURRENT_TIMESTAMP
            """,
            rows,
        )

    def replace_file(
        self,
        session_id: str,
        file_path: str,
        entries: Sequence[IndexedEntry],
        *,
        purge_stale: bool = True,
    ) -> int:
        """Upsert one file's entries and optionally drop its trailing ordinals.

        Returns the number of stale entries removed.
        """
        self._require_ready()
        for entry in entries:
            if entry.metadata.session_id != session_id or entry.metadata.file_path != file_path:
                raise ValueError(f"Entry {entry.id} does not belong to {session_id}/{file_path}")
        rows = [
            (
                entry.id,
                session_id,
                file_path,
                entry.ordinal,
                entry.metadata.content,
                sqlite3.Binary(self._check_dimension(entry.embedding).tobytes()),
            )
            for entry in entries
        ]
        removed = 0
        with self.transaction() as conn:
            if rows:
                self._write_rows(conn, rows)
            if purge_stale:
                removed = conn.execute(
                    f"""
                    DELETE FROM {self.collection_name}
                    WHERE session_id = ? AND file_path = ? AND ordinal >= ?
                    """,
                    (session_id, file_path, len(rows)),
                ).rowcount
        if removed:
            LOGGER.debug("Removed %d stale chunks of %s", removed, file_path)
        return removed

    def query(
        self,
        embedding: np.ndarray,
        *,
        top_k: int,
        session_id: str,
    ) -> List[Tuple[EntryMetadata, float | None]]:
        """Return up to ``top_k`` nearest entries of one session.

        Results are ordered by ascending distance; ties keep insertion order.
        A distance that cannot be computed is returned as ``None``.
        """
        self._require_ready()
        if top_k < 1:
            raise ValueError("top_k must be positive")
        query = self._check_dimension(embedding)
        with self._lock:
            rows = self.connection.execute(
                f"""
                SELECT file_path, content, session_id, embedding
                FROM {self.collection_name}
                WHERE session_id = ?
                ORDER BY rowid
                """,
                (session_id,),
            ).fetchall()

        if not rows:
            return []

        matrix = np.vstack([np.frombuffer(row["embedding"], dtype="float32") for row in rows])
        distances = compute_distances(matrix, query, self.metric)
        # NaN sorts last, which keeps comparable entries ahead of it
        order = np.argsort(distances, kind="stable")[:top_k]

        results: List[Tuple[EntryMetadata, float | None]] = []
        for idx in order:
            row = rows[idx]
            distance = float(distances[idx])
            results.append(
                (
                    EntryMetadata(
                        file_path=row["file_path"],
                        content=row["content"],
                        session_id=row["session_id"],
                    ),
                    distance if np.isfinite(distance) else None,
                )
            )
        return results

    def count(self, session_id: str | None = None) -> int:
        self._require_ready()
        with self._lock:
            if session_id is None:
                row = self.connection.execute(
                    f"SELECT COUNT(*) AS n FROM {self.collection_name}"
                ).fetchone()
            else:
                row = self.connection.execute(
                    f"SELECT COUNT(*) AS n FROM {self.collection_name} WHERE session_id = ?",
                    (session_id,),
                ).fetchone()
        return int(row["n"])

    def list_files(self, session_id: str) -> List[dict]:
        """List indexed files of a session with their chunk counts."""
        self._require_ready()
        with self._lock:
            rows = self.connection.execute(
                f"""
                SELECT file_path, COUNT(*) AS chunk_count, MAX(updated_at) AS updated_at
                FROM {self.collection_name}
                WHERE session_id = ?
                GROUP BY file_path
                ORDER BY file_path
                """,
                (session_id,),
            ).fetchall()
        return [dict(row) for row in rows]

    def delete_session(self, session_id: str) -> int:
        """Remove every entry of a session."""
        with self.transaction() as conn:
            removed = conn.execute(
                f"DELETE FROM {self.collection_name} WHERE session_id = ?",
                (session_id,),
            ).rowcount
        LOGGER.info("Removed %d entries of session %s", removed, session_id)
        return removed
