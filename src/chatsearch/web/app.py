"""FastAPI application exposing virtual file indexing and search."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict

from fastapi import Body, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from chatsearch.config import AppConfig
from chatsearch.embedding.encoder import EmbeddingConfig, EmbeddingModel
from chatsearch.errors import IndexingFailure, SearchFailure, StoreUnavailable
from chatsearch.index.indexer import Indexer
from chatsearch.index.search import Searcher
from chatsearch.index.storage import SQLiteVectorStore
from chatsearch.web.schemas import (
    REQUEST_ADAPTER,
    SUPPORTED_TYPES,
    IndexResponse,
    IndexVirtualFileRequest,
    SearchRequest,
    SearchResponse,
    SearchResultModel,
)

LOGGER = logging.getLogger(__name__)


def _client_error(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _build_store(config: AppConfig, dimension: int) -> SQLiteVectorStore:
    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)
    return SQLiteVectorStore(
        resolved_db,
        dimension=dimension,
        collection_name=config.collection_name,
        metric=config.metric,
    )


def create_app(
    config: AppConfig | None = None,
    *,
    embedder: EmbeddingModel | None = None,
    store: SQLiteVectorStore | None = None,
) -> FastAPI:
    """Build the app; the model and store are created once at startup unless injected."""
    config = (config or AppConfig()).validate()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
        model = embedder
        if model is None:
            model = await asyncio.to_thread(
                EmbeddingModel, EmbeddingConfig(model_name=config.model_name)
            )
        vector_store = store if store is not None else _build_store(config, model.dimension)
        await asyncio.to_thread(vector_store.initialize)

        app.state.config = config
        app.state.store = vector_store
        app.state.indexer = Indexer(
            model,
            vector_store,
            chunk_size=config.chunk_size,
            overlap=config.overlap,
            embed_timeout=config.embed_timeout,
            purge_stale=config.purge_stale,
        )
        app.state.searcher = Searcher(model, vector_store, embed_timeout=config.embed_timeout)
        try:
            yield
        finally:
            if store is None:
                vector_store.close()

    app = FastAPI(title="chatsearch", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/status")
    async def status(request: Request) -> Dict[str, Any]:
        vector_store: SQLiteVectorStore = request.app.state.store
        return {
            "store": vector_store.status.value,
            "reason": vector_store.failure_reason,
            "model": config.model_name,
            "metric": vector_store.metric,
        }

    @app.post("/api/semantic-search")
    async def semantic_search(request: Request, body: Dict[str, Any] = Body(...)) -> Any:
        action = body.get("type")
        payload = body.get("payload")
        if not isinstance(payload, dict):
            return _client_error("payload is required")
        if not payload.get("chatId"):
            return _client_error("chatId is required")
        if action not in SUPPORTED_TYPES:
            return _client_error(f"Unsupported operation: {action}")

        try:
            parsed = REQUEST_ADAPTER.validate_python(body)
        except ValidationError as exc:
            missing = ", ".join(
                str(error["loc"][-1]) for error in exc.errors() if error.get("loc")
            )
            return _client_error(f"Invalid payload: {missing}")

        if isinstance(parsed, IndexVirtualFileRequest):
            return await _index_virtual_file(request.app.state.indexer, parsed)
        if isinstance(parsed, SearchRequest):
            return await _search(request.app.state.searcher, parsed, config.top_k)
        return _client_error(f"Unsupported operation: {action}")

    return app


async def _index_virtual_file(indexer: Indexer, parsed: IndexVirtualFileRequest) -> JSONResponse:
    payload = parsed.payload
    try:
        result = await indexer.index_file(payload.file_path, payload.content, payload.chat_id)
    except StoreUnavailable as exc:
        LOGGER.error("Store unavailable while indexing %s: %s", payload.file_path, exc)
        response = IndexResponse(success=False, error=str(exc))
        return JSONResponse(status_code=503, content=response.model_dump(exclude_none=True))
    except IndexingFailure as exc:
        response = IndexResponse(success=False, error=str(exc))
        return JSONResponse(status_code=500, content=response.model_dump(exclude_none=True))

    if result.skipped:
        response = IndexResponse(success=False, error="skipped")
        return JSONResponse(status_code=400, content=response.model_dump(exclude_none=True))

    response = IndexResponse(success=True, chunks=result.chunk_count)
    return JSONResponse(content=response.model_dump(exclude_none=True))


async def _search(searcher: Searcher, parsed: SearchRequest, top_k: int) -> JSONResponse:
    payload = parsed.payload
    try:
        results = await searcher.search(payload.query, payload.chat_id, top_k=top_k)
    except StoreUnavailable as exc:
        LOGGER.error("Store unavailable while searching: %s", exc)
        return JSONResponse(status_code=503, content={"error": str(exc)})
    except SearchFailure as exc:
        return JSONResponse(status_code=500, content={"error": str(exc)})

    response = SearchResponse(
        results=[
            SearchResultModel(file_path=r.file_path, content=r.content, score=r.score)
            for r in results
        ]
    )
    return JSONResponse(content=response.model_dump(by_alias=True))


app = create_app()
