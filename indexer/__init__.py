"""Symbol indexing and semantic search."""

from .embeddings import Embedder, HashEmbedder, SentenceTransformerEmbedder, make_embedder
from .pipeline import IndexStats, build_index
from .search import search_symbols
from .store import QueryResult, VectorStore
from .symbols import Symbol, SymbolKind, extract_symbols

__all__ = [
    "Embedder",
    "HashEmbedder",
    "SentenceTransformerEmbedder",
    "make_embedder",
    "IndexStats",
    "build_index",
    "search_symbols",
    "QueryResult",
    "VectorStore",
    "Symbol",
    "SymbolKind",
    "extract_symbols",
]
