"""
Firestore query helpers.

NOTE: firebase_admin still accepts positional where() arguments; the
keyword filter API only silences a deprecation warning, so we keep the
positional form in one place.
"""

from typing import Iterator, List, Sequence, TypeVar

T = TypeVar("T")


def where_filter(query, field_path: str, op_string: str, value):
    """
    Usage:
        query = where_filter(collection, "type", "==", "police")
        query = where_filter(query, "reporter", "in", reporter_ids)
    """
    return query.where(field_path, op_string, value)


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Split ``items`` into lists of at most ``size`` (Firestore in-filter and batch caps)."""
    items = list(items)
    for start in range(0, len(items), size):
        yield items[start:start + size]
