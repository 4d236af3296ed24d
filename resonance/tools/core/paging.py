from __future__ import annotations

from collections.abc import Sequence


def page_slice[T](items: Sequence[T], page_number: int, page_size: int) -> tuple[list[T], bool]:
    """Return the 1-based page of ``items`` and whether another page follows."""
    start = (page_number - 1) * page_size
    end = start + page_size
    return list(items[start:end]), len(items) > end
