"""Command line interface for chatsearch."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List

import typer
from rich.console import Console
from rich.table import Table

from chatsearch.config import AppConfig
from chatsearch.embedding.encoder import EmbeddingConfig, EmbeddingModel
from chatsearch.errors import ChatSearchError, ConfigurationError, StoreUnavailable
from chatsearch.index.indexer import Indexer
from chatsearch.index.search import Searcher
from chatsearch.index.storage import SQLiteVectorStore
from chatsearch.utils.files import iter_text_paths


LOGGER = logging.getLogger(__name__)
console = Console()
app = typer.Typer(help="chatsearch - session scoped semantic search over virtual files")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _open_store(config: AppConfig, dimension: int | None) -> SQLiteVectorStore:
    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)
    store = SQLiteVectorStore(
        resolved_db,
        dimension=dimension,
        collection_name=config.collection_name,
        metric=config.metric,
    )
    store.initialize()
    if not store.ready:
        console.print(f"[red]Vector store unavailable: {store.failure_reason}[/red]")
        raise typer.Exit(code=1)
    return store


def _load_config(**overrides) -> AppConfig:
    try:
        return AppConfig(**overrides).validate()
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def index(
    inputs: List[Path] = typer.Argument(
        ..., help="Files or directories to index as virtual files.", resolve_path=True
    ),
    session: str = typer.Option(..., "--session", "-s", help="Chat session id"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    model: str = typer.Option(AppConfig().model_name, help="Sentence-transformer model name"),
    chunk_size: int = typer.Option(AppConfig().chunk_size, help="Chunk size in lines"),
    overlap: int = typer.Option(AppConfig().overlap, help="Chunk overlap in lines"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Index files from disk into a chat session."""
    _setup_logging(verbose)
    config = _load_config(
        db_path=db, model_name=model, chunk_size=chunk_size, overlap=overlap
    )

    paths = list(iter_text_paths(inputs))
    if not paths:
        console.print("[yellow]No files found.[/yellow]")
        return

    embedder = EmbeddingModel(EmbeddingConfig(model_name=config.model_name))
    store = _open_store(config, embedder.dimension)
    indexer = Indexer(
        embedder,
        store,
        chunk_size=config.chunk_size,
        overlap=config.overlap,
        embed_timeout=config.embed_timeout,
        purge_stale=config.purge_stale,
    )

    indexed = skipped = failed = 0
    try:
        for path in paths:
            try:
                content = path.read_text(encoding="utf-8")
            except (UnicodeDecodeError, OSError) as exc:
                LOGGER.warning("Cannot read %s: %s", path, exc)
                failed += 1
                continue
            try:
                result = asyncio.run(indexer.index_file(str(path), content, session))
            except StoreUnavailable as exc:
                console.print(f"[red]{exc}[/red]")
                raise typer.Exit(code=1)
            except ChatSearchError as exc:
                console.print(f"[red]{exc}[/red]")
                failed += 1
                continue
            if result.skipped:
                skipped += 1
            else:
                indexed += 1
    finally:
        store.close()

    console.print(f"Indexed: {indexed}, skipped: {skipped}, failed: {failed}")


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    session: str = typer.Option(..., "--session", "-s", help="Chat session id"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    model: str = typer.Option(AppConfig().model_name, help="Sentence-transformer model name"),
    top_k: int = typer.Option(AppConfig().top_k, help="Number of results to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Execute a semantic search within one chat session."""
    _setup_logging(verbose)
    config = _load_config(db_path=db, model_name=model, top_k=top_k)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")

    embedder = EmbeddingModel(EmbeddingConfig(model_name=config.model_name))
    store = _open_store(config, embedder.dimension)
    searcher = Searcher(embedder, store, embed_timeout=config.embed_timeout)

    try:
        results = asyncio.run(searcher.search(query, session, top_k=config.top_k))
    except ChatSearchError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        store.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("File")
    table.add_column("Snippet")

    for result in results:
        snippet = result.content.replace("\n", " ")
        table.add_row(f"{result.score:.4f}", result.file_path, snippet[:180])

    console.print(table)


@app.command()
def files(
    session: str = typer.Option(..., "--session", "-s", help="Chat session id"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """List the files indexed for a chat session."""
    config = _load_config(db_path=db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")

    store = _open_store(config, None)
    try:
        indexed = store.list_files(session)
    finally:
        store.close()

    if not indexed:
        console.print(f"[yellow]No files indexed for session {session}.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("File")
    table.add_column("Chunks")
    table.add_column("Updated")
    for row in indexed:
        table.add_row(row["file_path"], str(row["chunk_count"]), str(row["updated_at"]))

    console.print(table)


@app.command()
def purge(
    session: str = typer.Option(..., "--session", "-s", help="Chat session id"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Remove every indexed chunk of a chat session."""
    config = _load_config(db_path=db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Database not found, nothing to purge.[/yellow]")
        return

    store = _open_store(config, None)
    try:
        removed = store.delete_session(session)
    finally:
        store.close()
    console.print(f"Removed {removed} chunks from session {session}.")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    from chatsearch.web.app import app as web_app

    console.print(f"Starting API on http://{host}:{port}")
    uvicorn.run(web_app, host=host, port=port, reload=False, log_level="info")
