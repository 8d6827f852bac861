"""Semantic search over an index."""

import logging
from typing import List

from core.errors import EmbedError
from indexer.embeddings import Embedder
from indexer.store import QueryResult, VectorStore

logger = logging.getLogger(__name__)


def search_symbols(text: str, k: int, embedder: Embedder, store: VectorStore) -> List[QueryResult]:
    """
    Return the k symbols closest to text, closest first.

    Raises:
        EmbedError: If the query cannot be embedded.
        StoreError: If the lookup fails.
    """
    vectors = embedder.embed([text])
    if len(vectors) == 0:
        raise EmbedError("query embedding produced no vector")

    if store.model and embedder.name and store.model != embedder.name:
        logger.warning(
            f"Index was built with {store.model}, querying with {embedder.name}; "
            "distances may be meaningless"
        )

    results = store.knn(vectors[0], k)
    logger.debug(f"Query returned {len(results)} results")
    return results
