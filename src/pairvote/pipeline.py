"""Classification pipeline tying together features, pairwise models and consolidation."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from .aggregator import DiskVotes, MemoryVotes, PairwiseAggregator
from .classifiers.base import ClassifierGateway
from .classifiers.registry import build_gateway
from .config import Config
from .consolidate import ConsolidationError, rank_documents
from .discovery import discover_models
from .external import consolidate_on_disk
from .features import extract_all, resolve_gamma
from .logging import log_duration
from .store import ModelStore
from .types import Document, DocumentResult

LOGGER = logging.getLogger(__name__)
MEMORY_PATH = "memory"
DISK_PATH = "disk"


@dataclass
class RunSummary:
    """Outcome of one classification run."""

    documents: int = 0
    models: int = 0
    feature_count: int = 0
    gamma: float = 0.0
    consolidation: str = MEMORY_PATH
    elapsed: float = 0.0
    results: list[DocumentResult] = field(default_factory=list)


class ClassificationPipeline:
    """Runs one batch of documents through every pairwise model.

    Nothing is handed to a sink here: callers receive the full result list
    only once every document has been consolidated.
    """

    def __init__(
        self,
        config: Config,
        *,
        store: ModelStore | None = None,
        gateway: ClassifierGateway | None = None,
    ) -> None:
        self._config = config
        self._store = store or ModelStore(config.model_dir)
        self._gateway = gateway or build_gateway(config, self._store)

    def choose_consolidation(self, document_count: int, model_count: int) -> str:
        mode = self._config.consolidation.mode
        if mode != "auto":
            return mode
        votes = document_count * max(model_count, 1)
        if votes > self._config.consolidation.disk_vote_threshold:
            return DISK_PATH
        return MEMORY_PATH

    def run(self, documents: Sequence[Document]) -> RunSummary:
        start = time.perf_counter()
        config = self._config
        vocabulary = self._store.vocabulary()
        gamma = resolve_gamma(config.gamma, vocabulary)
        vectors = extract_all(documents, vocabulary, gamma)
        models = discover_models(self._store.model_dir)
        path = self.choose_consolidation(len(documents), len(models))
        document_ids = [document.document_id for document in documents]
        aggregator = PairwiseAggregator(self._gateway, workers=config.workers)
        LOGGER.info(
            "Using %s consolidation for %s document(s), gamma=%g",
            path,
            len(documents),
            gamma,
        )

        if path == MEMORY_PATH:
            votes = MemoryVotes(len(vectors))
            with log_duration(LOGGER, "Pairwise classification"):
                aggregator.aggregate(
                    models,
                    vectors,
                    vocabulary.feature_count,
                    votes,
                    model_dir=self._store.model_dir,
                )
            LOGGER.info("Consolidating results")
            results = rank_documents(
                votes.tallies, document_ids, config.consolidation.memory_tie_break
            )
        else:
            recorder = DiskVotes(config.result_dir, document_ids)
            with log_duration(LOGGER, "Pairwise classification"):
                aggregator.aggregate(
                    models,
                    vectors,
                    vocabulary.feature_count,
                    recorder,
                    model_dir=self._store.model_dir,
                )
            LOGGER.info("Consolidating results in %s", config.result_dir)
            with log_duration(LOGGER, "Disk consolidation"):
                consolidated = consolidate_on_disk(
                    config.result_dir,
                    memory_limit=config.consolidation.sort_memory,
                    max_fan_in=config.consolidation.max_fan_in,
                    tie_break=config.consolidation.disk_tie_break,
                )
            results = _in_input_order(consolidated, document_ids)

        elapsed = time.perf_counter() - start
        LOGGER.info("Classified %s document(s) in %.3f sec.", len(results), elapsed)
        return RunSummary(
            documents=len(documents),
            models=len(models),
            feature_count=vocabulary.feature_count,
            gamma=gamma,
            consolidation=path,
            elapsed=elapsed,
            results=results,
        )


def _in_input_order(
    results: Sequence[DocumentResult],
    document_ids: Sequence[str],
) -> list[DocumentResult]:
    by_id = {result.document_id: result for result in results}
    missing = [document_id for document_id in document_ids if document_id not in by_id]
    if missing or len(by_id) != len(document_ids):
        raise ConsolidationError(
            f"Disk consolidation returned {len(by_id)} result(s) for "
            f"{len(document_ids)} document(s); missing: {', '.join(missing[:5]) or 'none'}"
        )
    return [by_id[document_id] for document_id in document_ids]


__all__ = ["ClassificationPipeline", "RunSummary", "DISK_PATH", "MEMORY_PATH"]
