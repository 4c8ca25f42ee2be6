from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from telemetry_bench import main
from telemetry_bench.data.generator import generate


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def test_preview_prints_seeded_records(runner: CliRunner) -> None:
    result = runner.invoke(main.app, ["preview", "--count", "3", "--seed", "cli"])

    assert result.exit_code == 0, result.output
    lines = [json.loads(line) for line in result.stdout.strip().splitlines()]
    expected = list(generate("cli", 3))
    assert [line["hex"] for line in lines] == [record.hex for record in expected]


def test_run_list_shows_configurations(runner: CliRunner) -> None:
    result = runner.invoke(main.app, ["run", "--config", "list"])

    assert result.exit_code == 0, result.output
    assert "postgresql-indexed" in result.stdout


def test_run_forwards_options_and_prints_json(runner: CliRunner, monkeypatch) -> None:
    captured = {}

    def fake_run_benchmark(config):
        captured["config"] = config
        return [{"configuration": "postgresql", "state": "done"}]

    monkeypatch.setattr(main, "run_benchmark", fake_run_benchmark)

    result = runner.invoke(
        main.app,
        [
            "run",
            "-c",
            "postgresql",
            "--rows",
            "100",
            "--iterations",
            "5",
            "--query-only",
            "--strict",
        ],
    )

    assert result.exit_code == 0, result.output
    config = captured["config"]
    assert list(config.configurations) == ["postgresql"]
    assert config.dataset_size == 100
    assert config.iterations == 5
    assert config.load_data is False
    assert config.failure_policy == "strict"
    assert config.checkpoint_path == main.get_settings().checkpoint_path
    assert json.loads(result.stdout)[0]["state"] == "done"


def test_run_without_checkpoint(runner: CliRunner, monkeypatch) -> None:
    captured = {}

    def fake_run_benchmark(config):
        captured["config"] = config
        return []

    monkeypatch.setattr(main, "run_benchmark", fake_run_benchmark)

    result = runner.invoke(main.app, ["run", "-c", "postgresql", "--no-checkpoint"])

    assert result.exit_code == 0, result.output
    assert captured["config"].checkpoint_path is None


def test_load_calls_single_configuration(runner: CliRunner, monkeypatch) -> None:
    calls = []

    def fake_load(name, config):
        calls.append((name, config.dataset_size, config.seed))
        return {"configuration": name, "records_processed": config.dataset_size}

    monkeypatch.setattr(main, "load_configuration", fake_load)

    result = runner.invoke(main.app, ["load", "-c", "clickhouse", "--rows", "50", "--seed", "s"])

    assert result.exit_code == 0, result.output
    assert calls == [("clickhouse", 50, "s")]
    assert json.loads(result.stdout)["records_processed"] == 50


def test_info_shows_configurations(runner: CliRunner) -> None:
    result = runner.invoke(main.app, ["info"])

    assert result.exit_code == 0, result.output
    assert "Configurations: clickhouse, postgresql, postgresql-indexed" in result.stdout
