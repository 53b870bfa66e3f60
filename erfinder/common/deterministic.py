"""Helpers for deterministic ordering."""

from __future__ import annotations

from typing import Callable, Iterable, TypeVar

T = TypeVar("T")


def stable_sorted(items: Iterable[T], key: Callable[[T], object], *, reverse: bool = False) -> list[T]:
    # sorted() keeps input order for equal keys, including with reverse=True.
    return sorted(items, key=key, reverse=reverse)
