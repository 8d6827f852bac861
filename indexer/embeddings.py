"""Embedding models for semantic search."""

import hashlib
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from core.config import Config
from core.errors import ConfigError, EmbedError

logger = logging.getLogger(__name__)


class Embedder(ABC):
    """Turns text snippets into fixed-dimension float32 vectors."""

    name: str = ""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Length of every vector this embedder returns."""

    @abstractmethod
    def _encode(self, texts: List[str]) -> np.ndarray:
        """Encode a non-empty batch; returns shape (len(texts), dimension)."""

    def embed(self, texts: Sequence[str]) -> np.ndarray:
        """
        Embed a batch of snippets.

        The output has one row per input, in input order. A failure anywhere
        in the batch fails the whole batch.

        Raises:
            EmbedError: If the model fails or returns the wrong shape.
        """
        texts = list(texts)
        if not texts:
            return np.zeros((0, self.dimension), dtype=np.float32)

        try:
            vectors = self._encode(texts)
        except EmbedError:
            raise
        except Exception as e:
            raise EmbedError(f"{self.name} failed on a batch of {len(texts)}: {e}") from e

        vectors = np.asarray(vectors, dtype=np.float32)
        if vectors.ndim != 2 or vectors.shape[0] != len(texts):
            raise EmbedError(
                f"{self.name} returned shape {vectors.shape} for {len(texts)} snippets"
            )
        if vectors.shape[1] != self.dimension:
            raise EmbedError(
                f"{self.name} returned dimension {vectors.shape[1]}, expected {self.dimension}"
            )
        return vectors

    def embed_one(self, text: str) -> np.ndarray:
        """Embed a single snippet."""
        vectors = self.embed([text])
        if len(vectors) == 0:
            raise EmbedError("embedding produced no vector")
        return vectors[0]


class SentenceTransformerEmbedder(Embedder):
    """Embedder using the SentenceTransformers library."""

    def __init__(self, model_name: str, cache_dir: Optional[Path] = None):
        self.name = model_name
        try:
            from sentence_transformers import SentenceTransformer
            self.model = SentenceTransformer(
                model_name,
                cache_folder=str(cache_dir) if cache_dir else None,
            )
        except Exception as e:
            raise EmbedError(f"failed to load embedding model {model_name}: {e}") from e

        dim = self.model.get_sentence_embedding_dimension()
        if not dim:
            raise EmbedError(f"embedding model {model_name} does not report a dimension")
        self._dimension = int(dim)
        logger.info(f"Loaded embedding model {model_name} (dim {self._dimension})")

    @property
    def dimension(self) -> int:
        return self._dimension

    def _encode(self, texts: List[str]) -> np.ndarray:
        return self.model.encode(
            texts,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )


class HashEmbedder(Embedder):
    """Hashed bag-of-words embedder; deterministic and model free."""

    def __init__(self, dimension: int = 384):
        if dimension < 1:
            raise ConfigError(f"hash embedder dimension must be >= 1, got {dimension}")
        self.name = f"hash-bow-{dimension}"
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def _encode(self, texts: List[str]) -> np.ndarray:
        return np.stack([self._hash_bow(text) for text in texts])

    def _hash_bow(self, text: str) -> np.ndarray:
        words = re.findall(r'\b\w+\b', text.lower())
        vec = np.zeros(self._dimension, dtype=np.float32)
        for word in words:
            hash_val = int(hashlib.md5(word.encode()).hexdigest()[:8], 16)
            vec[hash_val % self._dimension] += 1.0
        # L2 normalize
        norm = np.linalg.norm(vec)
        return vec / norm if norm > 0 else vec


def make_embedder(config: Config, cache_dir: Optional[Path] = None) -> Embedder:
    """
    Create the embedder selected by config.

    Args:
        config: Application configuration.
        cache_dir: Where model weights are downloaded.

    Raises:
        ConfigError: If the backend name is unknown.
        EmbedError: If the model cannot be loaded.
    """
    backend = config.embeddings_backend.strip().lower()
    if backend == "sentence_transformers":
        return SentenceTransformerEmbedder(config.embeddings_model, cache_dir)
    if backend == "hash":
        return HashEmbedder(config.embeddings_dimension)
    raise ConfigError(f"unknown embeddings backend: {config.embeddings_backend!r}")
