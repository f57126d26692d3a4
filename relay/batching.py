"""
Paging helpers for Airtable's ten-records-per-request limit.
"""

from __future__ import annotations

from typing import Callable, Iterator, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

PAGE_SIZE = 10


def chunked(items: Sequence[T], size: int = PAGE_SIZE) -> Iterator[list[T]]:
    if size < 1:
        raise ValueError("size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def apply_in_pages(
    items: Sequence[T],
    operation: Callable[[list[T]], list[R]],
    size: int = PAGE_SIZE,
) -> list[R]:
    """
    Run ``operation`` over consecutive pages of ``items`` and concatenate results.

    Pages run one after another. An exception from any page propagates as-is;
    pages already sent are not undone.
    """
    results: list[R] = []
    for page in chunked(items, size):
        results.extend(operation(page))
    return results
