from __future__ import annotations

import pickle
from pathlib import Path

import pytest

from pairvote.store import ModelStore, StoreError
from pairvote.types import ModelDescriptor
from pairvote.vocabulary import Vocabulary


def test_vocabulary_roundtrip(tmp_path: Path) -> None:
    store = ModelStore(tmp_path / "models")

    path = store.save_vocabulary(Vocabulary({"tax": 0, "budget": 1}))

    assert path == tmp_path / "models" / "vocab.pkl"
    assert dict(store.vocabulary()) == {"tax": 0, "budget": 1}
    assert not list(path.parent.glob(".*.tmp"))


def test_plain_mapping_vocabulary_is_accepted(tmp_path: Path) -> None:
    model_dir = tmp_path / "models"
    model_dir.mkdir()
    with (model_dir / "vocab.pkl").open("wb") as handle:
        pickle.dump({"tax": 0, "budget": 1}, handle)

    vocabulary = ModelStore(model_dir).vocabulary()

    assert isinstance(vocabulary, Vocabulary)
    assert vocabulary.feature_count == 2


def test_missing_model_directory_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(StoreError, match="Model directory not found"):
        ModelStore(tmp_path / "missing").vocabulary()


def test_missing_vocabulary_is_fatal(tmp_path: Path) -> None:
    (tmp_path / "models").mkdir()

    with pytest.raises(StoreError, match="Missing vocabulary"):
        ModelStore(tmp_path / "models").vocabulary()


def test_corrupt_vocabulary_is_fatal_and_left_in_place(tmp_path: Path) -> None:
    model_dir = tmp_path / "models"
    model_dir.mkdir()
    (model_dir / "vocab.pkl").write_text("not pickle", encoding="utf-8")

    with pytest.raises(StoreError, match="Failed to load vocabulary"):
        ModelStore(model_dir).vocabulary()
    assert (model_dir / "vocab.pkl").exists()


@pytest.mark.parametrize("payload", [{"a": 0, "b": 5}, ["tax", "budget"]])
def test_invalid_vocabulary_payload(tmp_path: Path, payload: object) -> None:
    model_dir = tmp_path / "models"
    model_dir.mkdir()
    with (model_dir / "vocab.pkl").open("wb") as handle:
        pickle.dump(payload, handle)

    with pytest.raises(StoreError):
        ModelStore(model_dir).vocabulary()


def test_save_model_uses_pairwise_naming(tmp_path: Path) -> None:
    store = ModelStore(tmp_path / "models")

    path = store.save_model("1", "2", {"weights": [0.5]})

    assert path.name == "svm.1.2"
    descriptor = ModelDescriptor(positive="1", negative="2", path=path)
    assert store.load_model(descriptor) == {"weights": [0.5]}


def test_load_missing_model_is_fatal(tmp_path: Path) -> None:
    store = ModelStore(tmp_path)
    descriptor = ModelDescriptor(positive="1", negative="2", path=tmp_path / "svm.1.2")

    with pytest.raises(StoreError, match="Missing model 'svm.1.2'"):
        store.load_model(descriptor)
