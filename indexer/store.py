"""
SQLite-backed vector store for symbols.

Symbol metadata lives in a plain `symbols` table and vectors in a sqlite-vec
`vec0` virtual table. Both rows share one rowid and are written in the same
transaction. Nearest-neighbor search is an exact L2 scan done by sqlite-vec.
"""

import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import List, NamedTuple, Optional, Sequence, Union

import numpy as np
import sqlite_vec

from core.errors import DimensionMismatchError, NotFoundError, StoreError
from indexer.symbols import Symbol

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.sqlite"

# sqlite-vec refuses vec0 KNN queries with a larger k; beyond it knn falls back to a full scan.
MAX_K = 4096

_SCHEMA = """
CREATE TABLE IF NOT EXISTS symbols (
    id INTEGER PRIMARY KEY,
    path TEXT NOT NULL,
    line INTEGER NOT NULL,
    kind TEXT NOT NULL,
    name TEXT NOT NULL,
    code TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_KNN_SQL = """
SELECT s.path, s.line, s.name, v.distance
FROM (
    SELECT rowid, distance
    FROM vec_index
    WHERE embedding MATCH ? AND k = ?
) AS v
JOIN symbols s ON s.id = v.rowid
ORDER BY v.distance, s.id
"""

_SCAN_SQL = """
SELECT s.path, s.line, s.name, vec_distance_l2(v.embedding, ?) AS distance
FROM vec_index v
JOIN symbols s ON s.id = v.rowid
ORDER BY distance, s.id
LIMIT ?
"""

VectorLike = Union[Sequence[float], np.ndarray]

_vec_lock = threading.Lock()
_vec_version: Optional[str] = None


class QueryResult(NamedTuple):
    """One nearest-neighbor hit."""
    path: Path
    line: int
    name: str
    distance: float  # L2 distance, smaller is closer


def index_path(state_dir: Path) -> Path:
    """Location of the database inside a state directory."""
    return Path(state_dir) / INDEX_FILENAME


def _load_vec_extension(conn: sqlite3.Connection) -> None:
    """Load sqlite-vec into a connection; records the extension version once per process."""
    global _vec_version
    try:
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
    except (AttributeError, sqlite3.Error) as e:
        raise StoreError(f"failed to load sqlite-vec extension: {e}") from e

    with _vec_lock:
        if _vec_version is None:
            (_vec_version,) = conn.execute("SELECT vec_version()").fetchone()
            logger.debug(f"sqlite-vec {_vec_version} loaded")


def _to_blob(vector: np.ndarray) -> bytes:
    return vector.astype(np.float32).tobytes()


class VectorStore:
    """Persistent store of symbol metadata and embeddings."""

    def __init__(self, db_path: Path, read_only: bool = False):
        self.db_path = Path(db_path)
        self.read_only = read_only
        try:
            self._conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise StoreError(f"failed to open index {self.db_path}: {e}") from e
        try:
            _load_vec_extension(self._conn)
        except StoreError:
            self._conn.close()
            raise
        self._dimension: Optional[int] = None
        self._model = ""

    @classmethod
    def create(cls, state_dir: Path, dimension: int, model: str = "") -> "VectorStore":
        """
        Create the index, or open it if it already exists.

        Args:
            state_dir: Directory holding the database.
            dimension: Vector width baked into the schema.
            model: Name of the embedding model, recorded for readers.

        Raises:
            StoreError: If the directory or schema cannot be created, or an
                existing index was built with a different dimension.
        """
        if dimension < 1:
            raise StoreError(f"dimension must be >= 1, got {dimension}")

        state_dir = Path(state_dir)
        try:
            state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"failed to create {state_dir}: {e}") from e

        store = cls(index_path(state_dir))
        try:
            store._init_schema(dimension, model)
        except BaseException:
            store.close()
            raise
        return store

    @classmethod
    def open_read(cls, state_dir: Path) -> "VectorStore":
        """
        Open an existing index for queries.

        Raises:
            NotFoundError: If no index exists in state_dir.
            StoreError: If the index cannot be opened or has no recorded dimension.
        """
        db_path = index_path(state_dir)
        if not db_path.is_file():
            raise NotFoundError(f"no index at {db_path}; run `cearch index` first")

        store = cls(db_path, read_only=True)
        try:
            store._conn.execute("PRAGMA query_only = ON")
            store._load_meta()
        except sqlite3.Error as e:
            store.close()
            raise StoreError(f"failed to read index {db_path}: {e}") from e
        except BaseException:
            store.close()
            raise
        return store

    def _init_schema(self, dimension: int, model: str) -> None:
        try:
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA synchronous = NORMAL")
            self._conn.executescript(_SCHEMA)
            existing = self._read_meta("dimension")
            if existing is not None and int(existing) != dimension:
                raise StoreError(
                    f"index at {self.db_path} has dimension {existing}, not {dimension}; "
                    "run `cearch clean` and re-index"
                )
            existing_model = self._read_meta("model")
            if model and existing_model and existing_model != model:
                raise StoreError(
                    f"index at {self.db_path} was built with {existing_model}, not {model}; "
                    "run `cearch clean` and re-index"
                )
            self._conn.execute(
                f"CREATE VIRTUAL TABLE IF NOT EXISTS vec_index USING vec0(embedding float[{dimension}])"
            )
            with self._conn:
                self._conn.execute(
                    "INSERT OR IGNORE INTO meta(key, value) VALUES ('dimension', ?)", (str(dimension),)
                )
                self._conn.execute(
                    "INSERT OR IGNORE INTO meta(key, value) VALUES ('created_at', ?)", (str(time.time()),)
                )
                if model:
                    self._conn.execute(
                        "INSERT OR IGNORE INTO meta(key, value) VALUES ('model', ?)", (model,)
                    )
        except sqlite3.Error as e:
            raise StoreError(f"failed to initialize index {self.db_path}: {e}") from e
        self._load_meta()

    def _read_meta(self, key: str) -> Optional[str]:
        row = self._conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def _load_meta(self) -> None:
        dimension = self._read_meta("dimension")
        if dimension is None:
            raise StoreError(f"index at {self.db_path} has no recorded dimension")
        self._dimension = int(dimension)
        self._model = self._read_meta("model") or ""

    @property
    def dimension(self) -> int:
        """Vector width of this index."""
        return self._dimension

    @property
    def model(self) -> str:
        """Embedding model the index was created with, if recorded."""
        return self._model

    def _check_vector(self, vector: VectorLike) -> np.ndarray:
        arr = np.asarray(vector, dtype=np.float32)
        if arr.ndim != 1 or arr.shape[0] != self._dimension:
            raise DimensionMismatchError(self._dimension, int(arr.size))
        return arr

    def insert(self, symbol: Symbol, embedding: VectorLike) -> int:
        """
        Write a symbol and its vector as one atomic unit.

        Returns:
            The shared row id.

        Raises:
            DimensionMismatchError: If the embedding has the wrong length; nothing is written.
            StoreError: If the write fails; the transaction is rolled back.
        """
        if self.read_only:
            raise StoreError(f"index {self.db_path} was opened read-only")
        vector = self._check_vector(embedding)
        kind = getattr(symbol.kind, "value", symbol.kind)

        try:
            with self._conn:
                cursor = self._conn.execute(
                    "INSERT INTO symbols(path, line, kind, name, code) VALUES (?, ?, ?, ?, ?)",
                    (str(symbol.path), symbol.line, kind, symbol.name, symbol.code),
                )
                rowid = cursor.lastrowid
                self._conn.execute(
                    "INSERT INTO vec_index(rowid, embedding) VALUES (?, ?)",
                    (rowid, _to_blob(vector)),
                )
        except sqlite3.Error as e:
            raise StoreError(f"failed to insert {symbol.path}:{symbol.line} {symbol.name}: {e}") from e
        return rowid

    def knn(self, query: VectorLike, k: int) -> List[QueryResult]:
        """
        Return up to k nearest symbols by L2 distance, closest first.

        k <= 0 returns an empty list. Ties are ordered by row id.

        Raises:
            DimensionMismatchError: If the query vector has the wrong length.
            StoreError: If the query fails.
        """
        if k <= 0:
            return []
        vector = self._check_vector(query)

        try:
            total = self.count()
            if total == 0:
                return []
            limit = min(k, total)
            sql = _KNN_SQL if limit <= MAX_K else _SCAN_SQL
            rows = self._conn.execute(sql, (_to_blob(vector), limit)).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"nearest-neighbor query failed: {e}") from e

        return [
            QueryResult(path=Path(path), line=int(line), name=name, distance=float(distance))
            for path, line, name, distance in rows
        ]

    def count(self) -> int:
        """Number of indexed symbols."""
        try:
            (n,) = self._conn.execute("SELECT COUNT(*) FROM symbols").fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"failed to count symbols: {e}") from e
        return int(n)

    def close(self) -> None:
        """Close the underlying connection."""
        self._conn.close()

    def __enter__(self) -> "VectorStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
