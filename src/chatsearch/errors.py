"""Error types raised by the indexing and retrieval pipelines."""

from __future__ import annotations


class ChatSearchError(Exception):
    """Base error for chatsearch operations."""

    pass


class ConfigurationError(ChatSearchError):
    """Invalid chunking, metric or store parameters."""

    pass


class EmbeddingFailure(ChatSearchError):
    """The embedding model errored, timed out or returned a malformed vector."""

    pass


class StoreUnavailable(ChatSearchError):
    """The vector collection is not initialized or cannot be reached."""

    def __init__(self, reason: str | None = None) -> None:
        message = "Vector store is not available"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.reason = reason


class IndexingFailure(ChatSearchError):
    """Indexing of a single file was abandoned; nothing was written."""

    def __init__(self, file_path: str, reason: str) -> None:
        super().__init__(f"Failed to index {file_path}: {reason}")
        self.file_path = file_path
        self.reason = reason


class SearchFailure(ChatSearchError):
    """The query could not be embedded."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Search failed: {reason}")
        self.reason = reason
