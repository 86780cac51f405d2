"""Tests for the energygrid command."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from energygrid import cli
from energygrid.jobs.aggregate import RunResult
from energygrid.shutdown import ShutdownFlag

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_process(monkeypatch):
    """Leave signal handlers and global logging config untouched."""
    monkeypatch.setattr(ShutdownFlag, "install_signal_handlers", lambda self: None)
    monkeypatch.setattr(cli, "configure_logging", lambda level="info": None)


@pytest.fixture
def secret(monkeypatch):
    monkeypatch.setenv("SECRET_TOKEN", "interview_token_123")


def sample_result(**kwargs) -> RunResult:
    values = {
        "records": [{"sn": f"SN-{i:03d}"} for i in range(5)],
        "total_devices": 5,
        "total_batches": 1,
        "succeeded": 1,
        "duration_seconds": 0.5,
    }
    values.update(kwargs)
    return RunResult(**values)


@pytest.mark.parametrize("flag", ["--help", "-h"])
def test_help_exits_without_running(flag):
    with patch("energygrid.cli.run_aggregation") as mock_run:
        result = runner.invoke(cli.app, [flag])

    assert result.exit_code == 0
    assert "--save" in result.output
    mock_run.assert_not_called()


def test_missing_secret_exits_1():
    with patch("energygrid.cli.run_aggregation") as mock_run:
        result = runner.invoke(cli.app, [])

    assert result.exit_code == 1
    assert "Configuration error" in result.output
    mock_run.assert_not_called()


def test_run_prints_summary_and_sample(secret):
    with patch("energygrid.cli.run_aggregation", return_value=sample_result()) as mock_run:
        result = runner.invoke(cli.app, [])

    assert result.exit_code == 0
    assert mock_run.call_args.kwargs["persist"] is False
    assert "Aggregation Results" in result.output
    assert "SN-002" in result.output
    assert "SN-003" not in result.output


@pytest.mark.parametrize("flag", ["--save", "-s"])
def test_save_flag_persists(secret, tmp_path, flag):
    saved = sample_result(saved_path=tmp_path / "telemetry.json")
    with patch("energygrid.cli.run_aggregation", return_value=saved) as mock_run:
        result = runner.invoke(cli.app, [flag])

    assert result.exit_code == 0
    assert mock_run.call_args.kwargs["persist"] is True
    assert "Results saved" in result.output


def test_output_dir_override(secret, tmp_path):
    with patch("energygrid.cli.run_aggregation", return_value=sample_result()) as mock_run:
        runner.invoke(cli.app, ["--save", "--output-dir", str(tmp_path)])

    assert mock_run.call_args.kwargs["settings"].output_dir == str(tmp_path)


def test_partial_failure_still_exits_0(secret):
    partial = sample_result(total_batches=2, failed=1, failed_ranges=["SN-010 to SN-019"])
    with patch("energygrid.cli.run_aggregation", return_value=partial):
        result = runner.invoke(cli.app, ["--sample", "0"])

    assert result.exit_code == 0
    assert "SN-010 to SN-019" in result.output
    assert "Sample data" not in result.output


def test_unexpected_error_exits_1(secret):
    with patch("energygrid.cli.run_aggregation", side_effect=RuntimeError("boom")):
        result = runner.invoke(cli.app, [])

    assert result.exit_code == 1
    assert "boom" in result.output
