"""Tests for the passkey-starter command line interface."""

import pytest
from click.testing import CliRunner

from passkey_starter import __version__
from passkey_starter.cli import main


@pytest.fixture
def runner(tmp_path, monkeypatch) -> CliRunner:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PASSKEY_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    return CliRunner()


def test_version(runner):
    result = runner.invoke(main, ["version"])

    assert result.exit_code == 0
    assert f"Passkey Starter v{__version__}" in result.output


def test_config(runner, monkeypatch):
    monkeypatch.setenv("PASSKEY_RP_ID", "example.com")
    monkeypatch.setenv("PASSKEY_RP_ORIGIN", "https://app.example.com")

    result = runner.invoke(main, ["config"])

    assert result.exit_code == 0
    assert "WebAuthn RP ID: example.com" in result.output
    assert "secure=True" in result.output


def test_invalid_config_exits(runner, monkeypatch):
    monkeypatch.setenv("PASSKEY_RP_ID", "example.com")
    monkeypatch.setenv("PASSKEY_RP_ORIGIN", "https://other.test")

    result = runner.invoke(main, ["config"])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_check_setup_before_and_after(runner, tmp_path):
    before = runner.invoke(main, ["check-setup"])

    assert before.exit_code == 1
    assert "○ Step 1: Create environment file" in before.output
    assert "passkey-starter db init" in before.output

    (tmp_path / ".env").write_text("PASSKEY_RP_ID=localhost\n")
    assert runner.invoke(main, ["db", "init"]).exit_code == 0

    after = runner.invoke(main, ["check-setup"])

    assert after.exit_code == 0
    assert "ready to go" in after.output


def test_cleanup_on_fresh_database(runner):
    assert runner.invoke(main, ["db", "init"]).exit_code == 0

    result = runner.invoke(main, ["cleanup"])

    assert result.exit_code == 0
    assert "challenge_cleanup: removed 0" in result.output
    assert "session_cleanup: removed 0" in result.output
