"""
Segment-weighted choice of the next slideshow item.

The ordered collection (index 0 = newest) is split by position into three
contiguous segments. Segment A holds the newest ``n // 6 + 1`` items, segment
B the next ``n // 3`` and segment C the rest. Each segment receives one third
of the probability mass regardless of its size, so recently synced photos show
up far more often than uniform sampling would give them while the older bulk
still appears a third of the time.
"""

from __future__ import annotations

from typing import Tuple

_THIRD = 1.0 / 3.0


def segment_sizes(collection_size: int) -> Tuple[int, int, int]:
    """Return the lengths of segments A, B and C for ``collection_size`` items."""
    if collection_size < 1:
        raise ValueError("collection_size must be positive")
    newest = collection_size // 6 + 1
    recent = collection_size // 3
    return newest, recent, collection_size - newest - recent


def select_index(collection_size: int, random_uniform: float) -> int:
    """Map a uniform draw in [0, 1) to an index of the collection.

    The draw picks the segment and, rescaled within its third, the position
    inside that segment.
    """
    if not 0.0 <= random_uniform < 1.0:
        raise ValueError("random_uniform must be in [0, 1)")
    newest, recent, older = segment_sizes(collection_size)

    if random_uniform < _THIRD:
        start, length, offset = 0, newest, random_uniform
    elif random_uniform < 2 * _THIRD:
        start, length, offset = newest, recent, random_uniform - _THIRD
    else:
        start, length, offset = newest + recent, older, random_uniform - 2 * _THIRD

    index = start + int(offset / _THIRD * length)
    # Empty segments and float rounding at the boundaries land outside the range.
    return min(max(index, 0), collection_size - 1)


__all__ = ["segment_sizes", "select_index"]
