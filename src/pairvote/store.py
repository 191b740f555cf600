"""On-disk layout of a model directory: the vocabulary and pairwise model artifacts."""

from __future__ import annotations

import logging
import pickle
import uuid
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from .types import ModelDescriptor
from .vocabulary import Vocabulary, VocabularyError

LOGGER = logging.getLogger(__name__)
VOCABULARY_FILENAME = "vocab.pkl"
MODEL_PREFIX = "svm"


class StoreError(RuntimeError):
    """Raised when the model directory or one of its artifacts cannot be used."""


class ModelStore:
    """Read access to a model directory, plus atomic writers for tooling and tests."""

    def __init__(self, model_dir: Path) -> None:
        self.model_dir = Path(model_dir).expanduser()

    @property
    def vocabulary_path(self) -> Path:
        return self.model_dir / VOCABULARY_FILENAME

    def ensure_exists(self) -> None:
        if not self.model_dir.is_dir():
            raise StoreError(f"Model directory not found: {self.model_dir}")

    def vocabulary(self) -> Vocabulary:
        """Load the frozen vocabulary artifact.

        Accepts a pickled ``Vocabulary`` or a plain ``word -> index`` mapping.
        A missing or unreadable artifact is fatal.
        """

        self.ensure_exists()
        payload = self._load(self.vocabulary_path, what="vocabulary")
        if isinstance(payload, Vocabulary):
            vocabulary = payload
        elif isinstance(payload, Mapping):
            try:
                vocabulary = Vocabulary(payload)
            except VocabularyError as exc:
                raise StoreError(f"Invalid vocabulary in {self.vocabulary_path}: {exc}") from exc
        else:
            raise StoreError(
                f"Vocabulary artifact {self.vocabulary_path} holds "
                f"{type(payload).__name__}, expected a word index mapping."
            )
        LOGGER.info("Loaded vocabulary with %s feature(s)", vocabulary.feature_count)
        return vocabulary

    def load_model(self, descriptor: ModelDescriptor) -> Any:
        """Unpickle a pairwise estimator; failures abort the run."""

        return self._load(descriptor.path, what=f"model '{descriptor.name}'")

    def save_vocabulary(self, vocabulary: Vocabulary | Mapping[str, int]) -> Path:
        if not isinstance(vocabulary, Vocabulary):
            vocabulary = Vocabulary(vocabulary)
        return self._write_pickle(self.vocabulary_path, vocabulary)

    def save_model(self, positive: str, negative: str, estimator: Any) -> Path:
        """Persist an estimator under the ``svm.<positive>.<negative>`` naming scheme."""

        target = self.model_dir / f"{MODEL_PREFIX}.{positive}.{negative}"
        return self._write_pickle(target, estimator)

    def _load(self, path: Path, *, what: str) -> Any:
        if not path.exists():
            raise StoreError(f"Missing {what} artifact: {path}")
        try:
            with path.open("rb") as handle:
                return pickle.load(handle)
        except Exception as exc:
            raise StoreError(f"Failed to load {what} from {path}: {exc}") from exc

    def _write_pickle(self, target: Path, value: Any) -> Path:
        def _write(tmp_path: Path) -> None:
            with tmp_path.open("wb") as handle:
                pickle.dump(value, handle)

        atomic_write(target, _write)
        return target


def atomic_write(target: Path, writer: Callable[[Path], None]) -> None:
    """Run ``writer`` against a hidden temp sibling, then rename it over ``target``."""

    target.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
    try:
        writer(tmp_path)
        tmp_path.replace(target)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


__all__ = ["ModelStore", "StoreError", "atomic_write", "VOCABULARY_FILENAME", "MODEL_PREFIX"]
