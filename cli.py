"""CLI entrypoint for cearch using Typer."""

import sys
from pathlib import Path
from typing import NoReturn, Optional

import typer

from core.config import get_config, validate_config
from core.errors import CearchError
from core.logging import configure_logging, logger
from core.utils import display_path
from indexer.embeddings import make_embedder
from indexer.pipeline import build_index
from indexer.repo import (
    ensure_state_dir,
    list_tracked_files,
    models_dir_for,
    remove_state_dir,
    require_git_root,
    state_dir_for,
)
from indexer.search import search_symbols
from indexer.store import VectorStore

SETUP_ERROR_EXIT = 2

app = typer.Typer()


def _fail(error: CearchError) -> NoReturn:
    """Print a setup error and exit."""
    typer.echo(f"error: {error}", err=True)
    raise typer.Exit(code=SETUP_ERROR_EXIT)


@app.callback()
def callback(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")):
    """cearch - semantic search over the functions and classes of a git repository."""
    configure_logging(verbose, get_config().log_level)


@app.command()
def init():
    """Create the index directory and download the embedding model."""
    config = get_config()
    try:
        root = require_git_root(Path.cwd())
        validate_config(config)
        state_dir = ensure_state_dir(state_dir_for(root, config.state_dir))
        embedder = make_embedder(config, models_dir_for(state_dir))
    except CearchError as e:
        _fail(e)

    typer.echo(f"Initialized {state_dir} ({embedder.name}, dim {embedder.dimension})")


@app.command()
def index(force: bool = typer.Option(False, "--force", help="Re-index every file (always the case today)")):
    """Index every tracked file of the current repository."""
    config = get_config()
    if force:
        logger.debug("--force given; every file is re-indexed regardless")

    try:
        root = require_git_root(Path.cwd())
        validate_config(config)
        files = list_tracked_files(root)
        state_dir = ensure_state_dir(state_dir_for(root, config.state_dir))
        embedder = make_embedder(config, models_dir_for(state_dir))
        store = VectorStore.create(state_dir, embedder.dimension, embedder.name)
    except CearchError as e:
        _fail(e)

    with store:
        with typer.progressbar(length=len(files), label="Indexing", file=sys.stderr) as progress:
            stats = build_index(
                files,
                embedder,
                store,
                batch_size=config.index_batch_size,
                workers=config.index_workers,
                max_bytes=config.index_max_bytes,
                on_file=lambda _path: progress.update(1),
            )

    typer.echo(
        f"Indexed {stats.symbols_indexed} symbols from {stats.files} files"
        + (f" ({stats.files_failed} files failed)" if stats.files_failed else "")
    )


@app.command()
def query(
    text: str = typer.Argument(..., help="Code snippet or description to search for"),
    num_results: Optional[int] = typer.Option(None, "--num-results", "-n", help="Number of results to return"),
):
    """Find the symbols most similar to TEXT."""
    config = get_config()
    k = config.query_num_results if num_results is None else num_results

    try:
        root = require_git_root(Path.cwd())
        state_dir = state_dir_for(root, config.state_dir)
        store = VectorStore.open_read(state_dir)
    except CearchError as e:
        _fail(e)

    with store:
        try:
            embedder = make_embedder(config, models_dir_for(state_dir))
            results = search_symbols(text, k, embedder, store)
        except CearchError as e:
            _fail(e)

    for result in results:
        typer.echo(f"{display_path(result.path, root)}:{result.line} {result.name} {result.distance:.3f}")


@app.command()
def clean():
    """Delete the index and cached models of the current repository."""
    config = get_config()
    try:
        root = require_git_root(Path.cwd())
        removed = remove_state_dir(state_dir_for(root, config.state_dir))
    except CearchError as e:
        _fail(e)

    typer.echo("Index removed" if removed else "Nothing to clean")


if __name__ == "__main__":
    app()
