"""Result sinks: where consolidated rankings end up.

Sinks are written in two steps. ``stage`` prepares the output without
touching its destination, ``commit`` publishes it. ``write_sinks`` stages
every sink before committing any, so a sink that fails to stage leaves all
destinations untouched.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Protocol

from .types import DocumentResult

LOGGER = logging.getLogger(__name__)


class SinkError(RuntimeError):
    """Raised when results cannot be handed to their destination."""


@dataclass
class StagedOutput:
    """Output prepared by a sink, not yet visible at its destination."""

    commit: Callable[[], None]
    discard: Callable[[], None] = lambda: None


class ResultSink(Protocol):
    def stage(self, results: Sequence[DocumentResult]) -> StagedOutput:
        """Prepare all results; called once per run, after consolidation."""


def write_sinks(sinks: Sequence[ResultSink], results: Sequence[DocumentResult]) -> None:
    """Stage every sink, then commit them together."""

    staged: list[StagedOutput] = []
    try:
        for sink in sinks:
            staged.append(sink.stage(results))
    except BaseException:
        for output in staged:
            output.discard()
        raise
    for output in staged:
        output.commit()


class _FileSink:
    """Renders into a hidden temp sibling that ``commit`` renames over ``path``."""

    noun = "record(s)"

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def write(self, results: Sequence[DocumentResult]) -> None:
        write_sinks([self], results)

    def stage(self, results: Sequence[DocumentResult]) -> StagedOutput:
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as handle:
                self._render(handle, results)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise SinkError(f"Failed to write results to {self.path}: {exc}") from exc
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

        def _commit() -> None:
            try:
                tmp_path.replace(self.path)
            except OSError as exc:
                tmp_path.unlink(missing_ok=True)
                raise SinkError(f"Failed to write results to {self.path}: {exc}") from exc
            LOGGER.info("Wrote %s %s to %s", len(results), self.noun, self.path)

        return StagedOutput(commit=_commit, discard=lambda: tmp_path.unlink(missing_ok=True))

    def _render(self, handle: IO[str], results: Sequence[DocumentResult]) -> None:
        raise NotImplementedError


class TextFileSink(_FileSink):
    """One line per document: ``documentId cat1 cat2 ...``, best category first."""

    noun = "ranking(s)"

    def _render(self, handle: IO[str], results: Sequence[DocumentResult]) -> None:
        for result in results:
            handle.write(" ".join((result.document_id, *result.ranking)) + "\n")


class JsonLinesSink(_FileSink):
    """``(documentId, code)`` records for loading into a database table."""

    def _render(self, handle: IO[str], results: Sequence[DocumentResult]) -> None:
        for result in results:
            payload = {
                "id": result.document_id,
                "code": result.code,
                "ranking": list(result.ranking),
                "votes": dict(result.votes),
            }
            handle.write(json.dumps(payload, separators=(",", ":")) + "\n")


class MemorySink:
    """Keeps results in memory, keyed by document id."""

    def __init__(self) -> None:
        self.codes: dict[str, int] = {}

    def write(self, results: Sequence[DocumentResult]) -> None:
        write_sinks([self], results)

    def stage(self, results: Sequence[DocumentResult]) -> StagedOutput:
        codes = {result.document_id: result.code for result in results}
        return StagedOutput(commit=lambda: self.codes.update(codes))


__all__ = [
    "JsonLinesSink",
    "MemorySink",
    "ResultSink",
    "SinkError",
    "StagedOutput",
    "TextFileSink",
    "write_sinks",
]
