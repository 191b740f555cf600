"""Pairvote command-line interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from . import __version__
from .classifiers.base import ClassifierError
from .config import Config, ConfigError, load_config, resolve_config_path
from .consolidate import ConsolidationError
from .discovery import ModelDiscoveryError, default_category, discover_models
from .documents import DocumentError, load_documents
from .external import FINAL_NAME, consolidate_on_disk
from .labels import ResultFormatError
from .logging import configure_logging
from .pipeline import ClassificationPipeline
from .sinks import JsonLinesSink, ResultSink, SinkError, TextFileSink, write_sinks
from .store import ModelStore, StoreError
from .vocabulary import VocabularyError

app = typer.Typer(help="Pairwise SVM vote classification utilities.")
LOGGER = logging.getLogger(__name__)

RUN_ERRORS = (
    StoreError,
    VocabularyError,
    ModelDiscoveryError,
    DocumentError,
    ResultFormatError,
    ConsolidationError,
    ClassifierError,
    SinkError,
    OSError,
)


@dataclass
class CLIState:
    """Stores shared CLI options."""

    config_path: Path | None


@app.callback()
def _pairvote(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option(
            "-c",
            "--config",
            help="Path to config (env PAIRVOTE_CONFIG or ~/.config/pairvote/config.yaml).",
        ),
    ] = None,
) -> None:
    """Capture global CLI options."""

    resolved = config.expanduser() if config else None
    ctx.obj = CLIState(config_path=resolved)


@app.command()
def classify(
    ctx: typer.Context,
    input_path: Annotated[
        Path,
        typer.Argument(..., metavar="INPUT", help="JSON-lines file of {id, counts} records."),
    ],
    output: Annotated[
        Path | None,
        typer.Option("-o", "--output", help="Write 'id cat1 cat2 ...' rankings here."),
    ] = None,
    json_output: Annotated[
        Path | None,
        typer.Option("--json", help="Write {id, code, ranking, votes} records here."),
    ] = None,
    model: Annotated[
        Path | None,
        typer.Option("-m", "--model", help="Directory holding vocab.pkl and svm.* models."),
    ] = None,
    result_dir: Annotated[
        Path | None,
        typer.Option("--result-dir", help="Directory for intermediate result files."),
    ] = None,
    mode: Annotated[
        str | None,
        typer.Option("--mode", help="Consolidation path: memory, disk or auto."),
    ] = None,
    workers: Annotated[
        int | None,
        typer.Option("-w", "--workers", help="Models evaluated concurrently."),
    ] = None,
) -> None:
    """Classify every document against all pairwise models."""

    state = _state(ctx)
    config = _load_environment(
        state,
        model_dir=model,
        result_dir=result_dir,
        mode=mode,
        workers=workers,
    )
    sinks: list[ResultSink] = []
    if output is not None:
        sinks.append(TextFileSink(output))
    if json_output is not None:
        sinks.append(JsonLinesSink(json_output))

    try:
        documents = load_documents(input_path)
        pipeline = ClassificationPipeline(config)
        summary = pipeline.run(documents)
        write_sinks(sinks, summary.results)
    except ConfigError as exc:
        _config_failure(exc)
    except RUN_ERRORS as exc:
        _run_failure(exc)

    typer.echo(
        f"Classified {summary.documents} document(s) with {summary.models} pairwise model(s) "
        f"({summary.consolidation} consolidation) in {summary.elapsed:.2f}s."
    )
    if not sinks:
        for result in summary.results:
            typer.echo(f"{result.document_id}\t{result.code}")


@app.command()
def models(
    ctx: typer.Context,
    model: Annotated[
        Path | None,
        typer.Option("-m", "--model", help="Directory holding vocab.pkl and svm.* models."),
    ] = None,
) -> None:
    """List the pairwise models and vocabulary of a model directory."""

    state = _state(ctx)
    config = _load_environment(state, model_dir=model)
    store = ModelStore(config.model_dir)
    try:
        vocabulary = store.vocabulary()
        descriptors = discover_models(store.model_dir)
        fallback = None if descriptors else default_category(store.model_dir)
    except RUN_ERRORS as exc:
        _run_failure(exc)

    typer.echo(f"Model dir: {store.model_dir}")
    typer.echo(f"Vocabulary: {vocabulary.feature_count} feature(s)")
    if fallback is not None:
        typer.echo(f"No pairwise models; default category: {fallback}")
        return
    typer.echo(f"Pairwise models: {len(descriptors)}")
    for descriptor in descriptors:
        typer.echo(f"  - {descriptor.name}: {descriptor.positive} vs {descriptor.negative}")


@app.command()
def consolidate(
    ctx: typer.Context,
    result_dir: Annotated[
        Path,
        typer.Argument(..., help="Directory with result.<pos>.<neg> files."),
    ],
    output: Annotated[
        Path | None,
        typer.Option("-o", "--output", help="Also write rankings here."),
    ] = None,
) -> None:
    """Re-run disk consolidation over existing per-model result files."""

    state = _state(ctx)
    config = _load_environment(state)
    settings = config.consolidation
    try:
        results = consolidate_on_disk(
            result_dir.expanduser(),
            memory_limit=settings.sort_memory,
            max_fan_in=settings.max_fan_in,
            tie_break=settings.disk_tie_break,
        )
        if output is not None:
            TextFileSink(output).write(results)
    except RUN_ERRORS as exc:
        _run_failure(exc)
    typer.echo(f"Consolidated {len(results)} document(s) into {result_dir / FINAL_NAME}.")


@app.command()
def version() -> None:
    """Print the installed version."""

    typer.echo(__version__)


def _state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise RuntimeError("CLI state missing from context.")
    return state


def _load_environment(state: CLIState, **overrides) -> Config:
    try:
        config = load_config(state.config_path).with_overrides(**overrides)
        configure_logging(config.logging, config.root_dir)
    except ConfigError as exc:
        _config_failure(exc)
    LOGGER.debug("Loaded configuration from %s", resolve_config_path(state.config_path))
    return config


def _config_failure(exc: ConfigError) -> NoReturn:
    typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(2) from exc


def _run_failure(exc: Exception) -> NoReturn:
    LOGGER.debug("Run aborted", exc_info=exc)
    typer.secho(f"Run failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(1) from exc


def main() -> None:  # pragma: no cover - delegated to Typer
    app()


__all__ = ["app", "main"]
