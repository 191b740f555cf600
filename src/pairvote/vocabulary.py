"""Frozen word to feature-index table."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType


class VocabularyError(ValueError):
    """Raised when a vocabulary artifact violates the index invariants."""


class Vocabulary(Mapping[str, int]):
    """Immutable mapping from word to a contiguous zero-based feature index.

    ``feature_count`` equals the number of distinct indices, so every index is
    in ``range(feature_count)`` and vectors built from the same instance are
    comparable across documents.
    """

    __slots__ = ("_index",)

    def __init__(self, word_index: Mapping[str, int]) -> None:
        index = {str(word): _coerce_index(word, value) for word, value in word_index.items()}
        _check_contiguous(index)
        self._index = MappingProxyType(index)

    @property
    def feature_count(self) -> int:
        return len(self._index)

    def index(self, word: str) -> int | None:
        return self._index.get(word)

    def __getitem__(self, word: str) -> int:
        return self._index[word]

    def __iter__(self) -> Iterator[str]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __repr__(self) -> str:
        return f"Vocabulary(feature_count={self.feature_count})"

    def __reduce__(self):
        return (Vocabulary, (dict(self._index),))


def _coerce_index(word: object, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise VocabularyError(f"Index for word {word!r} must be an integer, got {value!r}")
    return value


def _check_contiguous(index: Mapping[str, int]) -> None:
    seen = set(index.values())
    if len(seen) != len(index):
        raise VocabularyError("Vocabulary maps several words to the same feature index.")
    if seen and (min(seen) != 0 or max(seen) != len(seen) - 1):
        raise VocabularyError(
            f"Vocabulary indices must be contiguous from 0 to {len(seen) - 1}, "
            f"got range {min(seen)}..{max(seen)}."
        )


__all__ = ["Vocabulary", "VocabularyError"]
