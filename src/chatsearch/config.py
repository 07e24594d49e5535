"""Application configuration defaults."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from chatsearch.embedding.encoder import DEFAULT_MODEL
from chatsearch.errors import ConfigurationError
from chatsearch.index.scoring import SCORE_TRANSFORMS

_COLLECTION_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _get_default_db_path() -> Path:
    """Get the default database path for the current working context."""
    # Prefer a local data/ directory when running from a checkout
    local_db = Path("data/chatsearch.db")
    if local_db.exists():
        return local_db

    return Path.home() / ".chatsearch" / "chatsearch.db"


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    model_name: str = DEFAULT_MODEL
    chunk_size: int = 20
    overlap: int = 5
    top_k: int = 5
    metric: str = "cosine"
    collection_name: str = "virtual_files"
    embed_timeout: float = 30.0
    purge_stale: bool = True

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path

    def validate(self) -> "AppConfig":
        """Raise ConfigurationError for settings the pipelines cannot run with."""
        if self.chunk_size < 1:
            raise ConfigurationError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.overlap < 0 or self.overlap >= self.chunk_size:
            raise ConfigurationError(
                f"overlap must be in [0, chunk_size), got overlap={self.overlap} "
                f"chunk_size={self.chunk_size}"
            )
        if self.top_k < 1:
            raise ConfigurationError(f"top_k must be positive, got {self.top_k}")
        if self.metric not in SCORE_TRANSFORMS:
            raise ConfigurationError(f"Unknown distance metric: {self.metric}")
        if not _COLLECTION_NAME.match(self.collection_name):
            raise ConfigurationError(f"Invalid collection name: {self.collection_name!r}")
        if self.embed_timeout <= 0:
            raise ConfigurationError("embed_timeout must be positive")
        return self
