from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from pairvote.cli import app
from pairvote.external import FINAL_NAME
from pairvote.store import ModelStore

runner = CliRunner()


def test_classify_prints_codes(
    tmp_path: Path, model_dir: Path, documents_path: Path, write_config, expected_codes
) -> None:
    config_path = write_config(tmp_path, model_dir)

    result = runner.invoke(app, ["-c", str(config_path), "classify", str(documents_path)])

    assert result.exit_code == 0, result.output
    assert "Classified 5 document(s) with 3 pairwise model(s) (memory consolidation)" in (
        result.stdout
    )
    for document_id, code in expected_codes.items():
        assert f"{document_id}\t{code}" in result.stdout
    assert (tmp_path / "state" / "logs" / "pairvote.log").exists()


def test_classify_writes_sinks_with_overrides(
    tmp_path: Path, model_dir: Path, documents_path: Path, write_config, expected_codes
) -> None:
    config_path = write_config(tmp_path, model_dir)
    text_out = tmp_path / "out" / "rankings.txt"
    json_out = tmp_path / "out" / "codes.jsonl"

    result = runner.invoke(
        app,
        [
            "-c",
            str(config_path),
            "classify",
            str(documents_path),
            "--mode",
            "disk",
            "--workers",
            "2",
            "-o",
            str(text_out),
            "--json",
            str(json_out),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "(disk consolidation)" in result.stdout
    first = text_out.read_text(encoding="utf-8").splitlines()[0]
    assert first.split()[:2] == ["101", "1"]
    records = [json.loads(line) for line in json_out.read_text(encoding="utf-8").splitlines()]
    assert {record["id"]: record["code"] for record in records} == expected_codes


def test_classify_corrupt_model_exits_without_output(
    tmp_path: Path, model_dir: Path, documents_path: Path, write_config
) -> None:
    (model_dir / "svm.2.3").write_text("garbage", encoding="utf-8")
    config_path = write_config(tmp_path, model_dir)
    output = tmp_path / "rankings.txt"

    result = runner.invoke(
        app, ["-c", str(config_path), "classify", str(documents_path), "-o", str(output)]
    )

    assert result.exit_code == 1
    assert "Run failed" in result.output
    assert not output.exists()


def test_invalid_mode_is_a_configuration_error(
    tmp_path: Path, model_dir: Path, documents_path: Path, write_config
) -> None:
    config_path = write_config(tmp_path, model_dir)

    result = runner.invoke(
        app, ["-c", str(config_path), "classify", str(documents_path), "--mode", "tape"]
    )

    assert result.exit_code == 2
    assert "Configuration error" in result.output


def test_missing_config_file_exits_with_config_error(tmp_path: Path) -> None:
    result = runner.invoke(app, ["-c", str(tmp_path / "nope.yaml"), "models"])

    assert result.exit_code == 2
    assert "Config file not found" in result.output


def test_models_lists_pairwise_models(
    tmp_path: Path, model_dir: Path, write_config, vocabulary
) -> None:
    config_path = write_config(tmp_path, model_dir)

    result = runner.invoke(app, ["-c", str(config_path), "models"])

    assert result.exit_code == 0, result.output
    assert f"Vocabulary: {len(vocabulary)} feature(s)" in result.stdout
    assert "Pairwise models: 3" in result.stdout
    assert "  - svm.1.3: 1 vs 3" in result.stdout


def test_models_reports_default_category(tmp_path: Path, write_config, vocabulary) -> None:
    model_dir = tmp_path / "SVM_CodeModel_12"
    ModelStore(model_dir).save_vocabulary(vocabulary)
    config_path = write_config(tmp_path, tmp_path / "elsewhere")

    result = runner.invoke(app, ["-c", str(config_path), "models", "-m", str(model_dir)])

    assert result.exit_code == 0, result.output
    assert "No pairwise models; default category: 1200" in result.stdout


def test_consolidate_rebuilds_final_result(
    tmp_path: Path, model_dir: Path, documents_path: Path, write_config
) -> None:
    config_path = write_config(tmp_path, model_dir, mode="disk")
    first = runner.invoke(app, ["-c", str(config_path), "classify", str(documents_path)])
    assert first.exit_code == 0, first.output
    result_dir = tmp_path / "results"
    (result_dir / FINAL_NAME).unlink()
    output = tmp_path / "rankings.txt"

    result = runner.invoke(
        app, ["-c", str(config_path), "consolidate", str(result_dir), "-o", str(output)]
    )

    assert result.exit_code == 0, result.output
    assert "Consolidated 5 document(s)" in result.stdout
    assert (result_dir / FINAL_NAME).exists()
    assert output.read_text(encoding="utf-8").splitlines()[0].startswith("7 2")


def test_consolidate_without_result_files_fails(
    tmp_path: Path, model_dir: Path, write_config
) -> None:
    config_path = write_config(tmp_path, model_dir)
    empty = tmp_path / "empty"
    empty.mkdir()

    result = runner.invoke(app, ["-c", str(config_path), "consolidate", str(empty)])

    assert result.exit_code == 1
    assert "No 'result." in result.output


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert result.stdout.strip()


def test_classify_failing_sink_commits_no_output(
    tmp_path: Path, model_dir: Path, documents_path: Path, write_config
) -> None:
    config_path = write_config(tmp_path, model_dir)
    text_out = tmp_path / "rankings.txt"
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")

    result = runner.invoke(
        app,
        [
            "-c",
            str(config_path),
            "classify",
            str(documents_path),
            "-o",
            str(text_out),
            "--json",
            str(blocker / "codes.jsonl"),
        ],
    )

    assert result.exit_code == 1
    assert "Run failed" in result.output
    assert not text_out.exists()
