from __future__ import annotations

import random
from collections import Counter

import pytest

from slideshow.services.selection import segment_sizes, select_index


@pytest.mark.parametrize(
    ("size", "expected"),
    [
        (1, (1, 0, 0)),
        (2, (1, 0, 1)),
        (6, (2, 2, 2)),
        (12, (3, 4, 5)),
        (100, (17, 33, 50)),
    ],
)
def test_segment_sizes(size: int, expected: tuple[int, int, int]) -> None:
    assert segment_sizes(size) == expected
    assert sum(expected) == size


@pytest.mark.parametrize(
    ("draw", "index"),
    [
        (0.0, 0),
        (0.32, 2),
        (0.34, 3),
        (0.66, 6),
        (0.67, 7),
        (0.999, 11),
    ],
)
def test_select_index_maps_draw_into_segment(draw: float, index: int) -> None:
    assert select_index(12, draw) == index


def test_single_item_collection_always_selects_it() -> None:
    assert {select_index(1, draw) for draw in (0.0, 0.4, 0.8, 0.999)} == {0}


def test_each_segment_receives_a_third_of_draws() -> None:
    rng = random.Random(1234)
    draws = 30_000
    counts = Counter(select_index(12, rng.random()) for _ in range(draws))

    assert set(counts) <= set(range(12))
    newest = sum(counts[i] for i in range(0, 3)) / draws
    recent = sum(counts[i] for i in range(3, 7)) / draws
    older = sum(counts[i] for i in range(7, 12)) / draws
    for share in (newest, recent, older):
        assert share == pytest.approx(1 / 3, abs=0.02)
    # Each newest item is shown more often than any older one.
    assert min(counts[i] for i in range(0, 3)) > max(counts[i] for i in range(7, 12))


@pytest.mark.parametrize("size", [1, 2, 3, 5, 7, 50, 1001])
def test_select_index_stays_in_range(size: int) -> None:
    rng = random.Random(size)
    for _ in range(500):
        assert 0 <= select_index(size, rng.random()) < size
    assert 0 <= select_index(size, 1.0 - 1e-12) < size


@pytest.mark.parametrize(("size", "draw"), [(0, 0.5), (5, 1.0), (5, -0.1)])
def test_select_index_rejects_invalid_input(size: int, draw: float) -> None:
    with pytest.raises(ValueError):
        select_index(size, draw)
