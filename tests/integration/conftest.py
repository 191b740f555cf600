from __future__ import annotations

import json
import logging
from itertools import combinations
from pathlib import Path
from typing import Any

import numpy as np
import pytest
from sklearn.svm import LinearSVC

from pairvote.store import ModelStore

VOCABULARY = {"tax": 0, "budget": 1, "health": 2, "school": 3}

# Training rows per category code, columns follow VOCABULARY.
CATEGORY_ROWS = {
    "1": [[3, 1, 0, 0], [1, 3, 0, 0], [2, 2, 0, 0], [4, 0, 0, 0]],
    "2": [[0, 0, 3, 0], [0, 0, 2, 0], [0, 0, 4, 0], [0, 0, 1, 0]],
    "3": [[0, 0, 0, 3], [0, 0, 0, 2], [0, 0, 0, 4], [0, 0, 0, 1]],
}

DOCUMENTS = [
    {"id": 101, "counts": {"tax": 3, "budget": 2}},
    {"id": 102, "counts": {"health": 4}},
    {"id": 103, "counts": {"school": 3, "recess": 2}},
    {"id": 104, "counts": {"budget": 4, "tax": 1}},
    {"id": 7, "counts": {"health": 2, "hospital": 1}},
]

EXPECTED_CODES = {"101": 1, "102": 2, "103": 3, "104": 1, "7": 2}


def train_pairwise_models(model_dir: Path) -> ModelStore:
    """Write a vocabulary and one LinearSVC per category pair."""

    store = ModelStore(model_dir)
    store.save_vocabulary(VOCABULARY)
    for positive, negative in combinations(sorted(CATEGORY_ROWS), 2):
        rows = CATEGORY_ROWS[positive] + CATEGORY_ROWS[negative]
        targets = [1] * len(CATEGORY_ROWS[positive]) + [0] * len(CATEGORY_ROWS[negative])
        estimator = LinearSVC(random_state=0).fit(np.asarray(rows, dtype=float), targets)
        store.save_model(positive, negative, estimator)
    return store


def write_documents(path: Path, documents: list[dict[str, Any]] = DOCUMENTS) -> Path:
    path.write_text("".join(json.dumps(doc) + "\n" for doc in documents), encoding="utf-8")
    return path


def write_config(
    tmp_path: Path,
    model_dir: Path,
    *,
    mode: str = "memory",
    tie_break: str = "smallest",
    workers: int = 1,
) -> Path:
    tmp_path.mkdir(parents=True, exist_ok=True)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "\n".join(
            [
                f"root_dir: {tmp_path / 'state'}",
                f"model_dir: {model_dir}",
                f"result_dir: {tmp_path / 'results'}",
                "gateway: sklearn",
                "aggregation:",
                f"  workers: {workers}",
                "consolidation:",
                f"  mode: {mode}",
                "  sort_memory: 1KB",
                "  max_fan_in: 2",
                f"  memory_tie_break: {tie_break}",
                f"  disk_tie_break: {tie_break}",
                "logging:",
                "  level: debug",
                "",
            ]
        ),
        encoding="utf-8",
    )
    return config_path


@pytest.fixture(name="write_config")
def write_config_fixture():
    return write_config


@pytest.fixture
def vocabulary() -> dict[str, int]:
    return dict(VOCABULARY)


@pytest.fixture
def expected_codes() -> dict[str, int]:
    return dict(EXPECTED_CODES)


@pytest.fixture
def model_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "SVM_CodeModel_4"
    train_pairwise_models(directory)
    return directory


@pytest.fixture
def documents_path(tmp_path: Path) -> Path:
    return write_documents(tmp_path / "bills.jsonl")


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PAIRVOTE_CONFIG", str(tmp_path / "missing.yaml"))


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Automatically mark tests in this package as integration."""

    package_root = Path(__file__).resolve().parent
    integration_mark = pytest.mark.integration
    for item in items:
        try:
            path = Path(item.fspath).resolve()
        except OSError:
            continue
        if package_root in path.parents:
            item.add_marker(integration_mark)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
