"""Index build: parse files, embed symbols in batches, persist each pair."""

import logging
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Deque, Iterable, Iterator, List, Optional, Tuple

from core.errors import CearchError, EmbedError, StoreError
from core.utils import batched
from indexer.embeddings import Embedder
from indexer.store import VectorStore
from indexer.symbols import Symbol, extract_symbols

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 64

ParseOutcome = Tuple[Path, Optional[List[Symbol]]]


@dataclass
class IndexStats:
    """Counters for one indexing run."""
    files: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    symbols_found: int = 0
    symbols_indexed: int = 0
    batches_failed: int = 0
    symbols_dropped: int = 0
    inserts_failed: int = 0


def _parse_file(path: Path, max_bytes: int = 0) -> ParseOutcome:
    """Extract symbols from one file; None marks a failed file."""
    try:
        if max_bytes > 0 and path.stat().st_size > max_bytes:
            logger.debug(f"Skipping {path}: larger than {max_bytes} bytes")
            return path, []
        return path, extract_symbols(path)
    except OSError as e:
        logger.warning(f"Failed to read {path}: {e}")
    except CearchError as e:
        logger.warning(f"Failed to parse {path}: {e}")
    return path, None


def parse_files(files: Iterable[Path], workers: int = 1, max_bytes: int = 0) -> Iterator[ParseOutcome]:
    """
    Parse files, yielding results in input order.

    With workers > 1 parsing runs on a thread pool with at most
    2 * workers files in flight.
    """
    if workers <= 1:
        for path in files:
            yield _parse_file(Path(path), max_bytes)
        return

    pending: Deque[Future] = deque()
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cearch-parse") as pool:
        for path in files:
            pending.append(pool.submit(_parse_file, Path(path), max_bytes))
            if len(pending) >= workers * 2:
                yield pending.popleft().result()
        while pending:
            yield pending.popleft().result()


def _persist_batch(batch: List[Symbol], embedder: Embedder, store: VectorStore, stats: IndexStats) -> None:
    try:
        vectors = embedder.embed([symbol.code for symbol in batch])
    except EmbedError as e:
        first = batch[0]
        logger.warning(f"Failed to embed {len(batch)} symbols from {first.path}: {e}")
        stats.batches_failed += 1
        stats.symbols_dropped += len(batch)
        return

    for symbol, vector in zip(batch, vectors):
        try:
            store.insert(symbol, vector)
        except (StoreError, EmbedError) as e:
            logger.warning(f"Failed to store {symbol.path}:{symbol.line} {symbol.name}: {e}")
            stats.inserts_failed += 1
            continue
        stats.symbols_indexed += 1


def build_index(
    files: Iterable[Path],
    embedder: Embedder,
    store: VectorStore,
    batch_size: int = DEFAULT_BATCH_SIZE,
    workers: int = 1,
    max_bytes: int = 0,
    on_file: Optional[Callable[[Path], None]] = None,
) -> IndexStats:
    """
    Index every file once.

    File, batch and symbol failures are logged and skipped; they never abort
    the run. Symbols are not retained after they are stored.

    Args:
        files: Absolute paths, typically from list_tracked_files.
        embedder: Model used for every batch.
        store: Destination store; its dimension must match the embedder.
        batch_size: Symbols per embedding call.
        workers: Parser threads; 1 parses inline.
        max_bytes: Skip files larger than this; 0 disables the limit.
        on_file: Called after each file has been handled.

    Returns:
        Counters describing the run.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    stats = IndexStats()
    for path, symbols in parse_files(files, workers=workers, max_bytes=max_bytes):
        stats.files += 1
        if symbols is None:
            stats.files_failed += 1
        elif not symbols:
            stats.files_skipped += 1
        else:
            stats.symbols_found += len(symbols)
            for batch in batched(symbols, batch_size):
                _persist_batch(batch, embedder, store, stats)
        if on_file is not None:
            on_file(path)

    logger.info(
        f"Indexed {stats.symbols_indexed}/{stats.symbols_found} symbols "
        f"from {stats.files} files ({stats.files_failed} failed)"
    )
    return stats
