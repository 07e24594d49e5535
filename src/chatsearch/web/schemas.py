"""Request and response models for the semantic search endpoint."""

from __future__ import annotations

from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

INDEX_VIRTUAL_FILE = "INDEX_VIRTUAL_FILE"
SEARCH = "SEARCH"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class IndexVirtualFilePayload(_CamelModel):
    chat_id: str = Field(alias="chatId", min_length=1)
    file_path: str = Field(alias="filePath", min_length=1)
    content: str


class SearchPayload(_CamelModel):
    chat_id: str = Field(alias="chatId", min_length=1)
    query: str


class IndexVirtualFileRequest(BaseModel):
    type: Literal["INDEX_VIRTUAL_FILE"]
    payload: IndexVirtualFilePayload


class SearchRequest(BaseModel):
    type: Literal["SEARCH"]
    payload: SearchPayload


SemanticSearchRequest = Annotated[
    Union[IndexVirtualFileRequest, SearchRequest],
    Field(discriminator="type"),
]

REQUEST_ADAPTER = TypeAdapter(SemanticSearchRequest)

SUPPORTED_TYPES = frozenset({INDEX_VIRTUAL_FILE, SEARCH})


class IndexResponse(_CamelModel):
    success: bool
    chunks: int | None = None
    error: str | None = None


class SearchResultModel(_CamelModel):
    file_path: str = Field(alias="filePath")
    content: str
    score: float


class SearchResponse(_CamelModel):
    results: List[SearchResultModel]
