"""Core immutable data structures used throughout Pairvote."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .labels import normalize_label

VoteTally = Counter
"""Per-document ``category -> vote count`` map, only ever incremented."""


@dataclass(frozen=True)
class FeatureVector:
    """Sparse document representation, strictly ascending by feature index."""

    entries: tuple[tuple[int, float], ...] = ()

    def __post_init__(self) -> None:
        previous = -1
        for index, _weight in self.entries:
            if index <= previous:
                raise ValueError(
                    f"Feature indices must be strictly ascending, got {index} after {previous}"
                )
            previous = index

    def __iter__(self) -> Iterator[tuple[int, float]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def indices(self) -> tuple[int, ...]:
        return tuple(index for index, _ in self.entries)

    @property
    def weights(self) -> tuple[float, ...]:
        return tuple(weight for _, weight in self.entries)


@dataclass(frozen=True)
class ModelDescriptor:
    """One pairwise model artifact and the two categories it separates."""

    positive: str
    negative: str
    path: Path

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class Document:
    """A pre-processed input record: its id and word counts."""

    document_id: str
    counts: Mapping[str, int]


@dataclass(frozen=True)
class DocumentResult:
    """Consolidated outcome for one document."""

    document_id: str
    ranking: tuple[str, ...]
    votes: Mapping[str, int] = field(default_factory=dict)

    @property
    def winner(self) -> str:
        return self.ranking[0]

    @property
    def code(self) -> int:
        return normalize_label(self.winner)


__all__ = [
    "Document",
    "DocumentResult",
    "FeatureVector",
    "ModelDescriptor",
    "VoteTally",
]
