import json

from loguru import logger
from typer.testing import CliRunner

from agentbuddy import __version__
from agentbuddy.cli import _configure_logging, app

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"AGENT BUDDY v{__version__}" in result.stdout


def test_missing_api_key_exits(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    result = runner.invoke(app, [], input="exit\n")

    assert result.exit_code == 1
    assert "GEMINI_API_KEY" in result.stdout


def test_exit_at_first_prompt(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")

    result = runner.invoke(app, [], input="exit\n")

    assert result.exit_code == 0
    assert "Thanks for using Agent Buddy" in result.stdout


def test_trace_file_records_session_exit(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    trace = tmp_path / "run.jsonl"

    result = runner.invoke(app, ["--trace", str(trace)], input="exit\n")

    assert result.exit_code == 0
    events = [json.loads(line) for line in trace.read_text().splitlines()]
    assert [e["event_type"] for e in events] == ["session_exit"]
    assert events[0]["payload"] == {"source": "user"}


def test_log_level_follows_verbose_flag(capsys):
    _configure_logging(True)
    logger.debug("[TEST] debug line")
    assert "[TEST] debug line" in capsys.readouterr().out

    _configure_logging(False)
    logger.debug("[TEST] hidden line")
    logger.warning("[TEST] warning line")
    out = capsys.readouterr().out
    assert "hidden line" not in out
    assert "[TEST] warning line" in out
