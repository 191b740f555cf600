"""One-vs-one vote aggregation across every pairwise model."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Protocol

from .classifiers.base import ClassifierGateway
from .discovery import default_category
from .store import atomic_write
from .types import FeatureVector, ModelDescriptor, VoteTally

LOGGER = logging.getLogger(__name__)
RESULT_PREFIX = "result."
DEFAULT_RESULT_NAME = "result.default"
FINAL_NAME = "final_result.txt"


class VoteRecorder(Protocol):
    """Receives the outcome of one model over all documents."""

    def record(
        self,
        model: ModelDescriptor | None,
        winners: Sequence[str],
        scores: Sequence[float],
    ) -> None:
        """``model`` is None for the default-category fallback."""


class MemoryVotes:
    """One tally per document, addressed by document index."""

    def __init__(self, document_count: int) -> None:
        self.tallies: list[VoteTally] = [Counter() for _ in range(document_count)]
        self.models_recorded = 0

    def record(
        self,
        model: ModelDescriptor | None,
        winners: Sequence[str],
        scores: Sequence[float],
    ) -> None:
        for tally, category in zip(self.tallies, winners, strict=True):
            tally[category] += 1
        self.models_recorded += 1


class DiskVotes:
    """Writes one ``result.<pos>.<neg>`` file per model into the result directory.

    Each line is ``documentId winningCategory score`` with ``score = |margin|``.
    Stale result files and the summary of an earlier run are removed up front.
    """

    def __init__(self, result_dir: Path, document_ids: Sequence[str]) -> None:
        self.result_dir = Path(result_dir).expanduser()
        self._document_ids = list(document_ids)
        self.paths: list[Path] = []
        self.result_dir.mkdir(parents=True, exist_ok=True)
        for stale in self.result_dir.glob(f"{RESULT_PREFIX}*"):
            LOGGER.debug("Removing stale result file %s", stale)
            stale.unlink()
        (self.result_dir / FINAL_NAME).unlink(missing_ok=True)

    def record(
        self,
        model: ModelDescriptor | None,
        winners: Sequence[str],
        scores: Sequence[float],
    ) -> None:
        if model is None:
            target = self.result_dir / DEFAULT_RESULT_NAME
        else:
            target = self.result_dir / f"{RESULT_PREFIX}{model.positive}.{model.negative}"
        lines = [
            f"{document_id} {category} {score!r}\n"
            for document_id, category, score in zip(
                self._document_ids, winners, scores, strict=True
            )
        ]

        def _write(tmp_path: Path) -> None:
            with tmp_path.open("w", encoding="utf-8") as handle:
                handle.writelines(lines)

        atomic_write(target, _write)
        self.paths.append(target)


def pairwise_votes(
    model: ModelDescriptor,
    margins: Sequence[float],
) -> tuple[list[str], list[float]]:
    """Resolve margins into winners; zero counts as a vote for the negative category."""

    winners = [model.positive if margin > 0 else model.negative for margin in margins]
    scores = [abs(float(margin)) for margin in margins]
    return winners, scores


class PairwiseAggregator:
    """Runs every document through every pairwise model and records the winners."""

    def __init__(self, gateway: ClassifierGateway, *, workers: int = 1) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self._gateway = gateway
        self._workers = workers

    def aggregate(
        self,
        models: Sequence[ModelDescriptor],
        vectors: Sequence[FeatureVector],
        n_features: int,
        recorder: VoteRecorder,
        *,
        model_dir: Path,
    ) -> int:
        """Feed all votes into ``recorder``; returns the votes each document received.

        With no pairwise models every document gets a single vote for the
        category derived from ``model_dir``.
        """

        if not models:
            category = default_category(model_dir)
            LOGGER.info("No pairwise models found; assigning default category %s", category)
            recorder.record(None, [category] * len(vectors), [1.0] * len(vectors))
            return 1

        lock = threading.Lock()

        def _evaluate(model: ModelDescriptor) -> None:
            margins = self._gateway.classify(model, vectors, n_features)
            winners, scores = pairwise_votes(model, margins)
            with lock:
                recorder.record(model, winners, scores)

        LOGGER.info(
            "Classifying %s document(s) against %s pairwise model(s) with %s worker(s)",
            len(vectors),
            len(models),
            self._workers,
        )
        if self._workers == 1:
            for model in models:
                _evaluate(model)
        else:
            self._run_concurrently(_evaluate, models)
        return len(models)

    def tally(
        self,
        models: Sequence[ModelDescriptor],
        vectors: Sequence[FeatureVector],
        n_features: int,
        *,
        model_dir: Path,
    ) -> list[VoteTally]:
        """In-memory convenience: one ``Counter`` per document index."""

        votes = MemoryVotes(len(vectors))
        self.aggregate(models, vectors, n_features, votes, model_dir=model_dir)
        return votes.tallies

    def _run_concurrently(self, evaluate, models: Sequence[ModelDescriptor]) -> None:
        executor = ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="pairvote")
        try:
            futures = {executor.submit(evaluate, model): model for model in models}
            for future in as_completed(futures):
                future.result()
                LOGGER.debug("Finished model %s", futures[future].name)
        except BaseException:
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)


__all__ = [
    "DiskVotes",
    "FINAL_NAME",
    "MemoryVotes",
    "PairwiseAggregator",
    "VoteRecorder",
    "pairwise_votes",
]
