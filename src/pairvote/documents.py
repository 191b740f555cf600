"""Loader for pre-tokenised documents (JSON lines of word counts)."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

from .types import Document

LOGGER = logging.getLogger(__name__)


class DocumentError(ValueError):
    """Raised when an input record is malformed."""


def load_documents(path: Path) -> list[Document]:
    """Read ``{"id": ..., "counts": {word: count}}`` records, one per line.

    Ids are kept as strings, must be unique and contain no whitespace since
    they become the first field of the on-disk result lines.
    """

    source = Path(path).expanduser()
    if not source.is_file():
        raise DocumentError(f"Input file not found: {source}")
    documents: list[Document] = []
    seen: set[str] = set()
    for document in _iter_records(source):
        if document.document_id in seen:
            raise DocumentError(f"Duplicate document id {document.document_id!r} in {source}")
        seen.add(document.document_id)
        documents.append(document)
    LOGGER.info("Loaded %s document(s) from %s", len(documents), source)
    return documents


def _iter_records(source: Path) -> Iterator[Document]:
    with source.open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                raw = json.loads(line)
            except json.JSONDecodeError as exc:
                raise DocumentError(f"{source}:{line_number}: invalid JSON ({exc.msg})") from exc
            yield parse_record(raw, where=f"{source}:{line_number}")


def parse_record(raw: Any, *, where: str = "<record>") -> Document:
    if not isinstance(raw, Mapping):
        raise DocumentError(f"{where}: record must be an object")
    document_id = _parse_id(raw.get("id"), where)
    counts = raw.get("counts")
    if not isinstance(counts, Mapping):
        raise DocumentError(f"{where}: 'counts' must be an object of word -> count")
    parsed: dict[str, int] = {}
    for word, count in counts.items():
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise DocumentError(f"{where}: count for {word!r} must be a positive integer")
        parsed[str(word)] = count
    return Document(document_id=document_id, counts=parsed)


def _parse_id(value: Any, where: str) -> str:
    if value is None or isinstance(value, bool):
        raise DocumentError(f"{where}: missing 'id'")
    text = str(value).strip()
    if not text or any(char.isspace() for char in text):
        raise DocumentError(f"{where}: id {value!r} must be non-empty without whitespace")
    return text


__all__ = ["DocumentError", "load_documents", "parse_record"]
