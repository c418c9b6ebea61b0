"""Merging of endpoint lists from several discovery sources."""

from typing import Iterable

from ..models import Endpoint


def merge_endpoints(*sources: Iterable[Endpoint]) -> list[Endpoint]:
    """Concatenate endpoint lists and drop duplicates.

    Duplicates are detected by the canonical ``address:port`` key; the first
    occurrence wins and keeps its position.
    """
    seen: set[str] = set()
    merged: list[Endpoint] = []
    for source in sources:
        for endpoint in source:
            if endpoint.key in seen:
                continue
            seen.add(endpoint.key)
            merged.append(endpoint)
    return merged
