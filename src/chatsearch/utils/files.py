"""Helpers for virtual file paths and entry identity."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable, Iterator


def is_lock_file(file_path: str) -> bool:
    """Return True for lock-file-like paths such as ``package-lock.json``.

    The marker only counts past the first character, so a path that *starts*
    with ``-lock`` is still indexed.
    """
    return file_path.find("-lock") > 0


def make_entry_id(session_id: str, file_path: str, ordinal: int) -> str:
    """Derive the stable id of one chunk of one file in one session."""
    sha = hashlib.sha256()
    sha.update(session_id.encode("utf-8"))
    sha.update(b"\0")
    sha.update(file_path.encode("utf-8"))
    return f"{sha.hexdigest()[:32]}-{ordinal}"


def iter_text_paths(inputs: Iterable[Path]) -> Iterator[Path]:
    """Yield file paths from input paths, descending into directories."""
    for item in inputs:
        if item.is_dir():
            yield from iter_text_paths(
                sorted(child for child in item.rglob("*") if child.is_file())
            )
        elif item.is_file():
            yield item
