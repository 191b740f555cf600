"""Enumeration of pairwise model artifacts in a model directory."""

from __future__ import annotations

import logging
from pathlib import Path

from .store import MODEL_PREFIX, VOCABULARY_FILENAME
from .types import ModelDescriptor

LOGGER = logging.getLogger(__name__)
DEFAULT_CATEGORY_SUFFIX = "00"


class ModelDiscoveryError(RuntimeError):
    """Raised when model artifacts cannot be enumerated or interpreted."""


def discover_models(model_dir: Path) -> list[ModelDescriptor]:
    """Return descriptors for every ``svm<sep><pos><sep><neg>`` file, sorted by name."""

    root = Path(model_dir).expanduser()
    if not root.is_dir():
        raise ModelDiscoveryError(f"Model directory not found: {root}")

    descriptors: list[ModelDescriptor] = []
    pairs: dict[tuple[str, str], str] = {}
    for path in sorted(root.iterdir()):
        if not path.is_file() or _ignored(path.name):
            continue
        descriptor = parse_model_name(path)
        pair = (descriptor.positive, descriptor.negative)
        if pair in pairs:
            raise ModelDiscoveryError(
                f"Models '{pairs[pair]}' and '{path.name}' both separate "
                f"{descriptor.positive} from {descriptor.negative}"
            )
        pairs[pair] = path.name
        descriptors.append(descriptor)
    LOGGER.debug("Discovered %s pairwise model(s) in %s", len(descriptors), root)
    return descriptors


def parse_model_name(path: Path) -> ModelDescriptor:
    """Split ``svm.A.B`` into positive ``A`` and negative ``B``.

    The separator is whatever character follows the ``svm`` prefix. The
    positive category runs to the next separator; everything after it is the
    negative category.
    """

    name = path.name
    rest = name[len(MODEL_PREFIX):]
    if len(rest) < 2:
        raise ModelDiscoveryError(f"Model artifact name has no categories: {name}")
    separator, body = rest[0], rest[1:]
    positive, found, negative = body.partition(separator)
    if not found or not positive or not negative:
        raise ModelDiscoveryError(
            f"Model artifact '{name}' does not match svm{separator}<pos>{separator}<neg>"
        )
    return ModelDescriptor(positive=positive, negative=negative, path=path)


def default_category(model_dir: Path) -> str:
    """Category assigned to every document when no pairwise models exist.

    Derived from the directory name: ``SVM_CodeModel_9`` gives ``"900"``.
    """

    name = Path(model_dir).expanduser().resolve().name
    position = name.rfind("_")
    if position <= 0:
        raise ModelDiscoveryError(
            f"No pairwise models in {model_dir} and its name has no '_<code>' suffix "
            "to derive a default category from."
        )
    return name[position + 1:] + DEFAULT_CATEGORY_SUFFIX


def _ignored(name: str) -> bool:
    if name.startswith(".") or name.endswith(".tmp"):
        return True
    if name == VOCABULARY_FILENAME:
        return True
    return not name.startswith(MODEL_PREFIX)


__all__ = ["ModelDiscoveryError", "default_category", "discover_models", "parse_model_name"]
