from __future__ import annotations

import pytest

from pairvote.features import extract, extract_all, resolve_gamma, to_matrix
from pairvote.types import Document, FeatureVector
from pairvote.vocabulary import Vocabulary

VOCAB = Vocabulary({"tax": 0, "budget": 1, "school": 2})


def test_out_of_vocabulary_words_produce_empty_vector() -> None:
    vector = extract({"weather": 3, "sports": 1}, VOCAB, 0.0)

    assert len(vector) == 0
    assert list(vector) == []


def test_known_word_keeps_raw_count_without_gamma() -> None:
    vector = extract({"tax": 2}, Vocabulary({"tax": 0, "budget": 1}), 0.0)

    assert list(vector) == [(0, 2.0)]


def test_entries_are_sorted_by_index() -> None:
    vector = extract({"school": 1, "tax": 4, "budget": 2, "unknown": 9}, VOCAB)

    assert vector.indices == (0, 1, 2)
    assert vector.weights == (4.0, 2.0, 1.0)


def test_gamma_scales_every_weight() -> None:
    vector = extract({"tax": 4, "school": 2}, VOCAB, 0.25)

    assert list(vector) == [(0, 3.0), (2, 1.5)]


@pytest.mark.parametrize("gamma", [-0.1, 1.0, 2.0])
def test_gamma_out_of_range_is_rejected(gamma: float) -> None:
    with pytest.raises(ValueError):
        extract({"tax": 1}, VOCAB, gamma)


def test_resolve_gamma_settings() -> None:
    assert resolve_gamma("none", VOCAB) == 0.0
    assert resolve_gamma("inverse", VOCAB) == pytest.approx(1 / 3)
    assert resolve_gamma(0.5, VOCAB) == 0.5


def test_extract_all_preserves_document_order() -> None:
    documents = [
        Document(document_id="1", counts={"school": 1}),
        Document(document_id="2", counts={"tax": 2}),
    ]

    vectors = extract_all(documents, VOCAB)

    assert [list(vector) for vector in vectors] == [[(2, 1.0)], [(0, 2.0)]]


def test_to_matrix_builds_csr_rows() -> None:
    vectors = [
        FeatureVector(((0, 2.0), (2, 1.0))),
        FeatureVector(()),
        FeatureVector(((1, 5.0),)),
    ]

    matrix = to_matrix(vectors, VOCAB.feature_count)

    assert matrix.shape == (3, 3)
    assert matrix.toarray().tolist() == [[2.0, 0.0, 1.0], [0.0, 0.0, 0.0], [0.0, 5.0, 0.0]]


def test_to_matrix_rejects_index_beyond_feature_count() -> None:
    with pytest.raises(ValueError, match="out of range"):
        to_matrix([FeatureVector(((3, 1.0),))], 3)


def test_feature_vector_requires_ascending_indices() -> None:
    with pytest.raises(ValueError, match="strictly ascending"):
        FeatureVector(((2, 1.0), (1, 1.0)))
    with pytest.raises(ValueError, match="strictly ascending"):
        FeatureVector(((1, 1.0), (1, 2.0)))
