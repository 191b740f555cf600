"""Subprocess backend invoking svm_light's ``svm_classify``."""

from __future__ import annotations

import logging
import subprocess
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path

import numpy as np
from sklearn.datasets import dump_svmlight_file

from ..features import to_matrix
from ..types import FeatureVector, ModelDescriptor
from .base import ClassifierError, check_margins

LOGGER = logging.getLogger(__name__)
EXAMPLES_NAME = "examples.dat"
PREDICTIONS_NAME = "predictions.dat"

Runner = Callable[..., subprocess.CompletedProcess]


class SvmLightGateway:
    """Writes documents in svm_light format and runs ``svm_classify`` per model.

    Every call gets its own temp directory and process, so concurrent calls
    never share files or handles.
    """

    name = "svm_light"

    def __init__(
        self,
        classify_binary: str = "svm_classify",
        *,
        timeout: float | None = None,
        runner: Runner = subprocess.run,
    ) -> None:
        self._binary = classify_binary
        self._timeout = timeout
        self._runner = runner

    def classify(
        self,
        model: ModelDescriptor,
        vectors: Sequence[FeatureVector],
        n_features: int,
    ) -> list[float]:
        if not model.path.is_file():
            raise ClassifierError(f"Model artifact missing: {model.path}")
        if not vectors:
            return []

        with tempfile.TemporaryDirectory(prefix="pairvote-svm-") as tmp:
            examples = Path(tmp) / EXAMPLES_NAME
            predictions = Path(tmp) / PREDICTIONS_NAME
            write_examples(examples, vectors, n_features)
            command = [self._binary, str(examples), str(model.path), str(predictions)]
            self._run(model, command)
            margins = read_predictions(predictions)
        LOGGER.debug("svm_classify evaluated %s on %s document(s)", model.name, len(vectors))
        return check_margins(model, margins, len(vectors))

    def _run(self, model: ModelDescriptor, command: list[str]) -> None:
        try:
            completed = self._runner(
                command,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ClassifierError(f"svm_classify binary not found: {self._binary}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ClassifierError(
                f"svm_classify timed out after {self._timeout}s on model '{model.name}'"
            ) from exc
        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()
            raise ClassifierError(
                f"svm_classify exited with {completed.returncode} on model '{model.name}': {stderr}"
            )


def write_examples(path: Path, vectors: Sequence[FeatureVector], n_features: int) -> None:
    """Dump vectors with one-based feature indices; targets are written as 0."""

    matrix = to_matrix(vectors, n_features)
    targets = np.zeros(len(vectors), dtype=np.float64)
    dump_svmlight_file(matrix, targets, str(path), zero_based=False)


def read_predictions(path: Path) -> list[float]:
    if not path.exists():
        raise ClassifierError(f"svm_classify produced no predictions file: {path}")
    margins: list[float] = []
    with path.open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            stripped = line.strip()
            if not stripped:
                continue
            try:
                margins.append(float(stripped))
            except ValueError as exc:
                raise ClassifierError(
                    f"Unparseable prediction at {path}:{line_number}: {stripped!r}"
                ) from exc
    return margins


__all__ = ["SvmLightGateway", "read_predictions", "write_examples"]
