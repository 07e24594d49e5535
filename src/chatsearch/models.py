"""Core chatsearch data models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True, slots=True)
class Chunk:
    """Window of consecutive lines taken from one file."""

    source_lines: Tuple[str, ...]
    text: str
    start_line: int = 0


@dataclass(frozen=True, slots=True)
class EntryMetadata:
    """Metadata stored next to every embedding."""

    file_path: str
    content: str
    session_id: str


@dataclass(slots=True)
class IndexedEntry:
    """Unit of storage in the vector collection."""

    id: str
    embedding: np.ndarray
    metadata: EntryMetadata
    ordinal: int


@dataclass(frozen=True, slots=True)
class SearchResult:
    file_path: str
    content: str
    score: float


@dataclass(frozen=True, slots=True)
class IndexResult:
    """Outcome of indexing one file revision."""

    chunk_count: int = 0
    skipped: bool = False
