"""Disk-based consolidation: concatenate, external sort, then group by document.

Used when the vote lines of a run do not fit comfortably in memory. Every
pairwise model has left a ``result.<pos>.<neg>`` file; the files are joined
into one unsorted intermediate, sorted by document id with a bounded-memory
k-way merge sort, and streamed once to produce ``final_result.txt``.
"""

from __future__ import annotations

import heapq
import logging
import tempfile
from collections import Counter
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

from .aggregator import FINAL_NAME, RESULT_PREFIX
from .consolidate import rank_tally
from .labels import ResultFormatError, TieBreak, document_sort_key, normalize_label
from .store import atomic_write
from .types import DocumentResult, VoteTally

LOGGER = logging.getLogger(__name__)

COMBINED_NAME = "combined.txt"
SORTED_NAME = "sorted.txt"
DEFAULT_MEMORY_LIMIT = 64 * 1024 * 1024
DEFAULT_MAX_FAN_IN = 64
# Rough per-line bookkeeping cost of a str inside a Python list.
LINE_OVERHEAD = 64


@dataclass(frozen=True)
class VoteLine:
    """One parsed ``documentId winningCategory score`` line."""

    document_id: str
    category: str
    score: float


def parse_vote_line(
    line: str,
    *,
    source: Path | str = "<input>",
    line_number: int = 0,
) -> VoteLine:
    fields = line.split()
    if len(fields) != 3:
        raise ResultFormatError(
            f"{source}:{line_number}: expected 'documentId category score', got {line.rstrip()!r}"
        )
    document_id, category, raw_score = fields
    try:
        score = float(raw_score)
    except ValueError as exc:
        raise ResultFormatError(
            f"{source}:{line_number}: score {raw_score!r} is not a number"
        ) from exc
    if score < 0:
        raise ResultFormatError(f"{source}:{line_number}: score {raw_score!r} is negative")
    return VoteLine(document_id=document_id, category=category, score=score)


def line_document_key(line: str) -> tuple[int, int, str]:
    """Sort key of a raw vote line: its leading document id."""

    document_id = line.split(None, 1)[0] if line.strip() else ""
    return document_sort_key(document_id)


def result_files(result_dir: Path) -> list[Path]:
    """Per-model result files in ``result_dir``, sorted by name."""

    return sorted(
        path
        for path in Path(result_dir).glob(f"{RESULT_PREFIX}*")
        if path.is_file() and not path.name.startswith(".")
    )


def concatenate_results(result_dir: Path, destination: Path) -> int:
    """Append every per-model file into one unsorted file; returns lines written."""

    sources = result_files(result_dir)
    if not sources:
        raise ResultFormatError(f"No '{RESULT_PREFIX}*' files found in {result_dir}")
    written = 0
    with destination.open("w", encoding="utf-8") as out:
        for source in sources:
            with source.open("r", encoding="utf-8") as handle:
                for line in handle:
                    if not line.strip():
                        continue
                    out.write(line if line.endswith("\n") else line + "\n")
                    written += 1
    LOGGER.info("Concatenated %s result file(s), %s vote line(s)", len(sources), written)
    return written


def external_sort(
    source: Path,
    destination: Path,
    *,
    memory_limit: int = DEFAULT_MEMORY_LIMIT,
    key: Callable[[str], Any] = line_document_key,
    max_fan_in: int = DEFAULT_MAX_FAN_IN,
    work_dir: Path | None = None,
) -> int:
    """Sort the lines of ``source`` into ``destination`` using bounded memory.

    Lines are read into runs whose estimated size stays under
    ``memory_limit`` bytes; each run is sorted and spilled to a temp file.
    Runs are then merged ``max_fan_in`` at a time until one remains.
    ``heapq.merge`` and ``list.sort`` are both stable, so lines with equal
    keys keep their input order. Returns the number of runs produced.
    """

    if memory_limit <= 0:
        raise ValueError("memory_limit must be positive")
    if max_fan_in < 2:
        raise ValueError("max_fan_in must be at least 2")

    with tempfile.TemporaryDirectory(prefix="pairvote-sort-", dir=work_dir) as tmp:
        tmp_dir = Path(tmp)
        runs = _spill_runs(source, tmp_dir, memory_limit, key)
        LOGGER.debug("External sort of %s produced %s run(s)", source, len(runs))
        run_count = len(runs)
        generation = 0
        while len(runs) > max_fan_in:
            generation += 1
            merged: list[Path] = []
            for start in range(0, len(runs), max_fan_in):
                batch = runs[start:start + max_fan_in]
                target = tmp_dir / f"merge-{generation}-{start // max_fan_in}.txt"
                _merge_runs(batch, target, key)
                for run in batch:
                    run.unlink()
                merged.append(target)
            runs = merged
        _merge_runs(runs, destination, key)
    return run_count


def _spill_runs(
    source: Path,
    tmp_dir: Path,
    memory_limit: int,
    key: Callable[[str], Any],
) -> list[Path]:
    runs: list[Path] = []
    buffer: list[str] = []
    used = 0

    def _flush() -> None:
        nonlocal buffer, used
        if not buffer:
            return
        buffer.sort(key=key)
        run_path = tmp_dir / f"run-{len(runs)}.txt"
        with run_path.open("w", encoding="utf-8") as handle:
            handle.writelines(buffer)
        runs.append(run_path)
        buffer = []
        used = 0

    with source.open("r", encoding="utf-8") as handle:
        for line in handle:
            if not line.endswith("\n"):
                line += "\n"
            cost = len(line) + LINE_OVERHEAD
            if buffer and used + cost > memory_limit:
                _flush()
            buffer.append(line)
            used += cost
    _flush()
    return runs


def _merge_runs(runs: list[Path], destination: Path, key: Callable[[str], Any]) -> None:
    handles: list[IO[str]] = []
    try:
        for run in runs:
            handles.append(run.open("r", encoding="utf-8"))
        with destination.open("w", encoding="utf-8") as out:
            out.writelines(heapq.merge(*handles, key=key))
    finally:
        for handle in handles:
            handle.close()


def iter_vote_lines(path: Path) -> Iterator[VoteLine]:
    with path.open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            yield parse_vote_line(line, source=path, line_number=line_number)


def group_votes(lines: Iterable[VoteLine]) -> Iterator[tuple[str, VoteTally]]:
    """Group consecutive lines sharing a document id into category counts.

    Requires input sorted by document id; an id that sorts before the group
    just closed is reported as a format error.
    """

    current_id: str | None = None
    counts: VoteTally = Counter()
    for vote in lines:
        if vote.document_id != current_id:
            if current_id is not None:
                if document_sort_key(vote.document_id) < document_sort_key(current_id):
                    raise ResultFormatError(
                        f"Document {vote.document_id} follows {current_id}; "
                        "input is not sorted by document id"
                    )
                yield current_id, counts
            current_id = vote.document_id
            counts = Counter()
        counts[vote.category] += 1
    if current_id is not None:
        yield current_id, counts


def summarize_sorted(
    sorted_path: Path,
    final_path: Path,
    tie_break: TieBreak = TieBreak.LARGEST,
) -> list[DocumentResult]:
    """Write ``documentId cat1 cat2 ...`` per document, categories ranked by votes."""

    results: list[DocumentResult] = []

    def _write(tmp_path: Path) -> None:
        with tmp_path.open("w", encoding="utf-8") as out:
            for document_id, counts in group_votes(iter_vote_lines(sorted_path)):
                ranking = rank_tally(counts, tie_break)
                normalize_label(ranking[0])
                out.write(" ".join((document_id, *ranking)) + "\n")
                results.append(
                    DocumentResult(document_id=document_id, ranking=ranking, votes=dict(counts))
                )

    atomic_write(final_path, _write)
    LOGGER.info("Wrote %s consolidated result(s) to %s", len(results), final_path)
    return results


def consolidate_on_disk(
    result_dir: Path,
    *,
    memory_limit: int = DEFAULT_MEMORY_LIMIT,
    max_fan_in: int = DEFAULT_MAX_FAN_IN,
    tie_break: TieBreak = TieBreak.LARGEST,
    keep_intermediate: bool = False,
) -> list[DocumentResult]:
    """Run concatenate, sort, and summarise over a result directory."""

    root = Path(result_dir).expanduser()
    combined = root / COMBINED_NAME
    sorted_path = root / SORTED_NAME
    try:
        concatenate_results(root, combined)
        external_sort(
            combined,
            sorted_path,
            memory_limit=memory_limit,
            max_fan_in=max_fan_in,
            work_dir=root,
        )
        return summarize_sorted(sorted_path, root / FINAL_NAME, tie_break)
    finally:
        if not keep_intermediate:
            combined.unlink(missing_ok=True)
            sorted_path.unlink(missing_ok=True)


def tally_unsorted(path: Path) -> dict[str, VoteTally]:
    """Tally an unsorted vote file fully in memory."""

    tallies: dict[str, VoteTally] = {}
    for vote in iter_vote_lines(path):
        tallies.setdefault(vote.document_id, Counter())[vote.category] += 1
    return tallies


def read_final_results(path: Path) -> dict[str, tuple[str, ...]]:
    """Parse a ``final_result.txt`` back into ``documentId -> ranking``."""

    rankings: dict[str, tuple[str, ...]] = {}
    with Path(path).open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            fields = line.split()
            if not fields:
                continue
            if len(fields) < 2:
                raise ResultFormatError(f"{path}:{line_number}: document has no categories")
            rankings[fields[0]] = tuple(fields[1:])
    return rankings


__all__ = [
    "COMBINED_NAME",
    "FINAL_NAME",
    "SORTED_NAME",
    "VoteLine",
    "concatenate_results",
    "consolidate_on_disk",
    "external_sort",
    "group_votes",
    "iter_vote_lines",
    "parse_vote_line",
    "read_final_results",
    "result_files",
    "summarize_sorted",
    "tally_unsorted",
]
