"""Line-based chunking of virtual file content."""

from __future__ import annotations

from typing import List

from chatsearch.errors import ConfigurationError
from chatsearch.models import Chunk


def chunk_lines(text: str, *, chunk_size: int = 20, overlap: int = 5) -> List[Chunk]:
    """Split text into overlapping windows of lines.

    Windows start every ``chunk_size - overlap`` lines and hold up to
    ``chunk_size`` lines. The last window may be shorter. Windows that are
    blank once stripped are dropped.
    """
    if chunk_size < 1:
        raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0 or overlap >= chunk_size:
        raise ConfigurationError(
            f"overlap must be in [0, chunk_size), got overlap={overlap} chunk_size={chunk_size}"
        )
    if not text:
        return []

    lines = text.split("\n")
    step = chunk_size - overlap
    chunks: List[Chunk] = []
    for start in range(0, len(lines), step):
        window = tuple(lines[start : start + chunk_size])
        joined = "\n".join(window)
        if not joined.strip():
            continue
        chunks.append(Chunk(source_lines=window, text=joined, start_line=start))
    return chunks
