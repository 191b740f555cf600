"""Classifier gateway protocol definitions."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from ..types import FeatureVector, ModelDescriptor


class ClassifierError(RuntimeError):
    """Raised when a pairwise model cannot be evaluated; aborts the whole run."""


@runtime_checkable
class ClassifierGateway(Protocol):
    """Opaque binary-classifier capability shared by all backends."""

    name: str

    def classify(
        self,
        model: ModelDescriptor,
        vectors: Sequence[FeatureVector],
        n_features: int,
    ) -> list[float]:
        """Return one signed margin per vector, in input order.

        A positive margin is a vote for ``model.positive``; zero or negative
        is a vote for ``model.negative``.
        """


def check_margins(model: ModelDescriptor, margins: Sequence[float], expected: int) -> list[float]:
    """Validate a backend's output length and coerce the values to floats."""

    values = [float(value) for value in margins]
    if len(values) != expected:
        raise ClassifierError(
            f"Model '{model.name}' returned {len(values)} margin(s) for {expected} document(s)"
        )
    return values


__all__ = ["ClassifierError", "ClassifierGateway", "check_margins"]
