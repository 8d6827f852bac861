"""Utility functions."""

from pathlib import Path
from typing import Iterable, Iterator, List, TypeVar

T = TypeVar("T")


def batched(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """
    Yield consecutive lists of at most `size` items, preserving order.

    Args:
        items: Items to group.
        size: Maximum batch length, at least 1.
    """
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")

    batch: List[T] = []
    for item in items:
        batch.append(item)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch


def display_path(path: Path, root: Path) -> str:
    """Path relative to root when it lives under it, else unchanged."""
    try:
        return str(Path(path).relative_to(root))
    except ValueError:
        return str(path)
