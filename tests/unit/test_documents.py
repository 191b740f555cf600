from __future__ import annotations

import json
from pathlib import Path

import pytest

from pairvote.documents import DocumentError, load_documents, parse_record


def _write_records(path: Path, records: list) -> Path:
    lines = [record if isinstance(record, str) else json.dumps(record) for record in records]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_load_documents_keeps_order_and_string_ids(tmp_path: Path) -> None:
    path = _write_records(
        tmp_path / "bills.jsonl",
        [
            {"id": 17, "counts": {"tax": 2, "budget": 1}},
            "",
            {"id": "HR-9", "counts": {}},
        ],
    )

    documents = load_documents(path)

    assert [document.document_id for document in documents] == ["17", "HR-9"]
    assert documents[0].counts == {"tax": 2, "budget": 1}
    assert documents[1].counts == {}


def test_missing_input_file(tmp_path: Path) -> None:
    with pytest.raises(DocumentError, match="Input file not found"):
        load_documents(tmp_path / "absent.jsonl")


def test_duplicate_ids_are_rejected(tmp_path: Path) -> None:
    path = _write_records(
        tmp_path / "bills.jsonl",
        [{"id": 1, "counts": {}}, {"id": "1", "counts": {"tax": 1}}],
    )

    with pytest.raises(DocumentError, match="Duplicate document id '1'"):
        load_documents(path)


def test_invalid_json_reports_line(tmp_path: Path) -> None:
    path = _write_records(tmp_path / "bills.jsonl", [{"id": 1, "counts": {}}, "{oops"])

    with pytest.raises(DocumentError, match="bills.jsonl:2"):
        load_documents(path)


@pytest.mark.parametrize(
    "raw, message",
    [
        (["not", "an", "object"], "must be an object"),
        ({"counts": {}}, "missing 'id'"),
        ({"id": True, "counts": {}}, "missing 'id'"),
        ({"id": "two words", "counts": {}}, "without whitespace"),
        ({"id": "", "counts": {}}, "without whitespace"),
        ({"id": 1, "counts": ["tax"]}, "'counts' must be an object"),
        ({"id": 1, "counts": {"tax": 0}}, "positive integer"),
        ({"id": 1, "counts": {"tax": 1.5}}, "positive integer"),
        ({"id": 1, "counts": {"tax": True}}, "positive integer"),
    ],
)
def test_parse_record_rejects_malformed_records(raw: object, message: str) -> None:
    with pytest.raises(DocumentError, match=message):
        parse_record(raw)
