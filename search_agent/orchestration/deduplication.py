"""Source deduplication across tool calls."""

from __future__ import annotations

from typing import Iterable

from ..web.models import Source


def deduplicate_sources(sources: Iterable[Source]) -> list[Source]:
    """
    Remove duplicate sources by URL.

    The first occurrence wins and kept entries stay in their original order.

    Args:
        sources: Sources in the order they were gathered

    Returns:
        Deduplicated list
    """
    seen: set[str] = set()
    unique = []

    for source in sources:
        if source.url in seen:
            continue
        seen.add(source.url)
        unique.append(source)

    return unique


def flatten_sources(groups: Iterable[Iterable[Source]]) -> list[Source]:
    """Flatten per-call source lists and deduplicate them."""
    return deduplicate_sources(source for group in groups for source in group)
