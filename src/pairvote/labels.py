"""Category label and document id ordering rules."""

from __future__ import annotations

from enum import Enum


class ResultFormatError(ValueError):
    """Raised when a category label or result line cannot be parsed."""


class TieBreak(str, Enum):
    """Which label wins when two categories received the same vote count."""

    SMALLEST = "smallest"
    LARGEST = "largest"


def normalize_label(label: str) -> int:
    """Convert a category label into its integer code.

    ``"true"``/``"false"`` (any case) map to 1/0, anything else must parse as
    an integer.
    """

    text = str(label).strip()
    lowered = text.lower()
    if lowered == "true":
        return 1
    if lowered == "false":
        return 0
    try:
        return int(text)
    except ValueError as exc:
        raise ResultFormatError(
            f"Category label is neither boolean nor integer: {label!r}"
        ) from exc


def label_sort_key(label: str) -> tuple[int, int, str]:
    """Total order on labels: integer-like labels numerically, then the rest by text."""

    try:
        return (0, normalize_label(label), label)
    except ResultFormatError:
        return (1, 0, label)


def document_sort_key(document_id: str) -> tuple[int, int, str]:
    """Total order on document ids: integer ids numerically, others lexicographically."""

    try:
        return (0, int(document_id), document_id)
    except ValueError:
        return (1, 0, document_id)


__all__ = [
    "ResultFormatError",
    "TieBreak",
    "document_sort_key",
    "label_sort_key",
    "normalize_label",
]
