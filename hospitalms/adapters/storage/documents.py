"""Helpers shared by the document store adapters."""

import re
from collections import Counter
from typing import Any, Iterable, Optional

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_identifier(name: str) -> str:
    """Reject collection or field names that are not plain identifiers.

    Raises:
        ValueError: If name contains anything but letters, digits and underscores
    """
    if not name or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid identifier: {name!r}")
    return name


def duplicate_keys(keys: Iterable[str]) -> list[str]:
    """Keys that occur more than once, in first-seen order."""
    counts = Counter(keys)
    return [key for key, count in counts.items() if count > 1]


def matches(document: dict, field: str, value: Any) -> bool:
    return document.get(field) == value


def sort_documents(documents: list[dict], sort_by: Optional[str], descending: bool) -> list[dict]:
    """Stable sort on a top-level field; documents missing it sort last."""
    if not sort_by:
        return documents
    present = [doc for doc in documents if doc.get(sort_by) is not None]
    missing = [doc for doc in documents if doc.get(sort_by) is None]
    present.sort(key=lambda doc: doc[sort_by], reverse=descending)
    return present + missing
