"""In-memory consolidation of vote tallies into ranked categories."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from .labels import ResultFormatError, TieBreak, label_sort_key, normalize_label
from .types import DocumentResult, VoteTally


class ConsolidationError(RuntimeError):
    """Raised when a document has no votes to consolidate."""


def rank_tally(
    tally: Mapping[str, int],
    tie_break: TieBreak = TieBreak.SMALLEST,
) -> tuple[str, ...]:
    """Order categories by descending vote count.

    Equal counts are ordered by ``label_sort_key``: ascending for
    ``TieBreak.SMALLEST``, descending for ``TieBreak.LARGEST``.
    """

    if not tally:
        raise ConsolidationError("Cannot rank an empty vote tally.")
    ordered = sorted(tally, key=label_sort_key, reverse=tie_break is TieBreak.LARGEST)
    ordered.sort(key=tally.__getitem__, reverse=True)
    return tuple(ordered)


def winning_category(tally: Mapping[str, int], tie_break: TieBreak = TieBreak.SMALLEST) -> str:
    return rank_tally(tally, tie_break)[0]


def consolidate(
    tallies: Mapping[int, VoteTally] | Sequence[VoteTally],
    tie_break: TieBreak = TieBreak.SMALLEST,
) -> dict[int, int]:
    """Map each document index to the integer code of its winning category."""

    items = tallies.items() if isinstance(tallies, Mapping) else enumerate(tallies)
    result: dict[int, int] = {}
    for index, tally in items:
        try:
            winner = winning_category(tally, tie_break)
        except ConsolidationError as exc:
            raise ConsolidationError(f"Document #{index} received no votes.") from exc
        result[index] = normalize_label(winner)
    return result


def rank_documents(
    tallies: Sequence[VoteTally],
    document_ids: Sequence[str],
    tie_break: TieBreak = TieBreak.SMALLEST,
) -> list[DocumentResult]:
    """Build ranked results in document order; every winner must normalise."""

    if len(tallies) != len(document_ids):
        raise ConsolidationError(
            f"{len(tallies)} tallies for {len(document_ids)} document id(s)"
        )
    results: list[DocumentResult] = []
    for document_id, tally in zip(document_ids, tallies):
        try:
            ranking = rank_tally(tally, tie_break)
        except ConsolidationError as exc:
            raise ConsolidationError(f"Document {document_id} received no votes.") from exc
        normalize_label(ranking[0])
        results.append(
            DocumentResult(document_id=document_id, ranking=ranking, votes=dict(tally))
        )
    return results


__all__ = [
    "ConsolidationError",
    "ResultFormatError",
    "consolidate",
    "rank_documents",
    "rank_tally",
    "winning_category",
]
