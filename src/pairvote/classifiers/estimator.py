"""In-process backend evaluating pickled scikit-learn estimators."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import numpy as np

from ..features import to_matrix
from ..labels import ResultFormatError, normalize_label
from ..store import ModelStore
from ..types import FeatureVector, ModelDescriptor
from .base import ClassifierError, check_margins

LOGGER = logging.getLogger(__name__)
BINARY_TARGETS = ([0, 1], [-1, 1])


class SklearnGateway:
    """Calls ``decision_function`` of a binary linear estimator (e.g. ``LinearSVC``).

    Orientation contract, read from the estimator's ``classes_``:

    * integer targets ``{0, 1}`` or ``{-1, 1}``: ``1`` marks the artifact's
      positive category, as with svm_light models;
    * any other classes are category labels and must name both categories of
      the artifact (compared through ``normalize_label`` where both sides are
      numeric or boolean). The margin is flipped when the positive category
      is ``classes_[0]``;
    * no ``classes_``: a positive decision is a vote for the positive category.

    Classes that fit none of these raise ``ClassifierError``.
    """

    name = "sklearn"

    def __init__(self, store: ModelStore) -> None:
        self._store = store

    def classify(
        self,
        model: ModelDescriptor,
        vectors: Sequence[FeatureVector],
        n_features: int,
    ) -> list[float]:
        estimator = self._store.load_model(model)
        decision = getattr(estimator, "decision_function", None)
        if not callable(decision):
            raise ClassifierError(
                f"Model '{model.name}' ({type(estimator).__name__}) has no decision_function"
            )
        expected = getattr(estimator, "n_features_in_", n_features)
        if expected != n_features:
            raise ClassifierError(
                f"Model '{model.name}' expects {expected} feature(s), "
                f"vocabulary has {n_features}"
            )
        orientation = _orientation(estimator, model)
        if not vectors:
            return []

        matrix = to_matrix(vectors, n_features)
        try:
            raw = np.asarray(decision(matrix), dtype=np.float64)
        except Exception as exc:
            raise ClassifierError(f"Model '{model.name}' failed to classify: {exc}") from exc
        if raw.ndim != 1:
            raise ClassifierError(
                f"Model '{model.name}' is not binary (decision shape {raw.shape})"
            )
        margins = raw * orientation
        LOGGER.debug("Evaluated %s on %s document(s)", model.name, len(vectors))
        return check_margins(model, margins.tolist(), len(vectors))


def _orientation(estimator: Any, model: ModelDescriptor) -> float:
    classes = getattr(estimator, "classes_", None)
    if classes is None:
        return 1.0
    values = list(classes)
    if len(values) != 2:
        raise ClassifierError(
            f"Model '{model.name}' has {len(values)} classes, expected a binary estimator"
        )
    if all(_is_integer(value) for value in values) and sorted(map(int, values)) in BINARY_TARGETS:
        return 1.0
    negative_class, positive_class = values
    if _same_label(positive_class, model.positive) and _same_label(negative_class, model.negative):
        return 1.0
    if _same_label(positive_class, model.negative) and _same_label(negative_class, model.positive):
        return -1.0
    raise ClassifierError(
        f"Model '{model.name}' classes {values!r} match neither 0/1 targets nor "
        f"categories {model.positive!r} and {model.negative!r}"
    )


def _is_integer(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_))


def _same_label(value: Any, label: str) -> bool:
    text = str(value)
    try:
        return normalize_label(text) == normalize_label(label)
    except ResultFormatError:
        return text == label


__all__ = ["SklearnGateway"]
