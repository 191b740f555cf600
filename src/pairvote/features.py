"""Conversion of word counts into sparse feature vectors."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

import numpy as np
from scipy import sparse

from .types import Document, FeatureVector
from .vocabulary import Vocabulary


def resolve_gamma(setting: str | float, vocabulary: Vocabulary) -> float:
    """Turn the configured gamma into the scalar used for this run.

    ``"none"`` disables scaling, ``"inverse"`` uses ``1 / feature_count``.
    """

    if isinstance(setting, str):
        if setting == "none":
            return 0.0
        if setting == "inverse":
            if vocabulary.feature_count == 0:
                return 0.0
            return 1.0 / vocabulary.feature_count
        raise ValueError(f"Unknown gamma setting: {setting!r}")
    return _check_gamma(float(setting))


def extract(
    counts: Mapping[str, int],
    vocabulary: Vocabulary,
    gamma: float = 0.0,
) -> FeatureVector:
    """Build the ascending-index feature vector for one document.

    Counts must be positive; words missing from the vocabulary are dropped.
    Each weight is ``count * (1 - gamma)``, so ``gamma = 0`` keeps raw counts.
    """

    scale = 1.0 - _check_gamma(gamma)
    entries: list[tuple[int, float]] = []
    for word, count in counts.items():
        index = vocabulary.index(word)
        if index is None:
            continue
        entries.append((index, count * scale))
    entries.sort()
    return FeatureVector(tuple(entries))


def extract_all(
    documents: Iterable[Document],
    vocabulary: Vocabulary,
    gamma: float = 0.0,
) -> list[FeatureVector]:
    return [extract(document.counts, vocabulary, gamma) for document in documents]


def to_matrix(vectors: Sequence[FeatureVector], n_features: int) -> sparse.csr_matrix:
    """Stack feature vectors into a ``(len(vectors), n_features)`` CSR matrix."""

    indptr = np.zeros(len(vectors) + 1, dtype=np.int64)
    indices: list[int] = []
    data: list[float] = []
    for row, vector in enumerate(vectors):
        for index, weight in vector:
            if index >= n_features:
                raise ValueError(
                    f"Feature index {index} out of range for {n_features} feature(s)"
                )
            indices.append(index)
            data.append(weight)
        indptr[row + 1] = len(indices)
    return sparse.csr_matrix(
        (
            np.asarray(data, dtype=np.float64),
            np.asarray(indices, dtype=np.int64),
            indptr,
        ),
        shape=(len(vectors), n_features),
    )


def _check_gamma(gamma: float) -> float:
    if not 0.0 <= gamma < 1.0:
        raise ValueError(f"gamma must be in [0, 1), got {gamma}")
    return gamma


__all__ = ["extract", "extract_all", "resolve_gamma", "to_matrix"]
