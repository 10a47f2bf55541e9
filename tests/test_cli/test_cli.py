"""Tests for the command line interface."""

from pathlib import Path

from typer.testing import CliRunner

from profile_engine.cli import app

runner = CliRunner()


def _invoke(*args: str):
    return runner.invoke(app, ["--log-level", "ERROR", *args])


def test_init_creates_database(tmp_path: Path) -> None:
    db = tmp_path / "nested" / "profiles.db"
    result = _invoke("init", "--db", str(db))
    assert result.exit_code == 0, result.output
    assert db.exists()


def test_register_provisions_profile(tmp_path: Path) -> None:
    db = tmp_path / "profiles.db"
    result = _invoke(
        "register",
        "--email",
        "alice@example.com",
        "--name",
        "Alice",
        "--role",
        "teacher",
        "--identity-id",
        "alice",
        "--db",
        str(db),
    )
    assert result.exit_code == 0, result.output
    assert "Identity alice registered" in result.output
    assert "Alice (teacher)" in result.output


def test_register_without_email_defers(tmp_path: Path) -> None:
    db = tmp_path / "profiles.db"
    result = _invoke("register", "--identity-id", "quiet", "--db", str(db))
    assert result.exit_code == 0, result.output
    assert "No profile yet" in result.output


def test_verify_backfill_cycle(tmp_path: Path) -> None:
    db = str(tmp_path / "profiles.db")
    assert _invoke("init", "--db", db).exit_code == 0
    for name in ("a", "b"):
        result = _invoke(
            "register", "--email", f"{name}@example.com", "--identity-id", name, "--no-hook",
            "--db", db,
        )
        assert result.exit_code == 0, result.output

    result = _invoke("verify", "--format", "json", "--db", db)
    assert result.exit_code == 1
    assert "2 identities without profile" in result.output

    result = _invoke("backfill", "--db", db)
    assert result.exit_code == 0, result.output
    assert "Profiles created: 2, Errors: 0" in result.output

    result = _invoke("backfill", "--db", db)
    assert "Profiles created: 0, Errors: 0" in result.output

    result = _invoke("verify", "--db", db)
    assert result.exit_code == 0, result.output


def test_verify_writes_report(tmp_path: Path) -> None:
    db = str(tmp_path / "profiles.db")
    output = tmp_path / "report.yaml"
    assert _invoke("init", "--db", db).exit_code == 0
    result = _invoke("verify", "--format", "yaml", "--output", str(output), "--db", db)
    assert result.exit_code == 0, result.output
    text = output.read_text()
    assert text.startswith("healthy: true")
    assert "check_name: Provisioning Hook" in text


def test_verify_writes_table_report(tmp_path: Path) -> None:
    db = str(tmp_path / "profiles.db")
    output = tmp_path / "report.txt"
    assert _invoke("init", "--db", db).exit_code == 0
    result = _invoke("verify", "--format", "table", "--output", str(output), "--db", db)
    assert result.exit_code == 0, result.output
    text = output.read_text()
    assert "Provisioning Hook" in text
    assert not text.lstrip().startswith("{")


def test_verify_rejects_unknown_format(tmp_path: Path) -> None:
    result = _invoke("verify", "--format", "xml", "--db", str(tmp_path / "profiles.db"))
    assert result.exit_code == 2


def test_verify_reports_uninstalled_hook(tmp_path: Path) -> None:
    db = str(tmp_path / "profiles.db")
    assert _invoke("init", "--no-hook", "--db", db).exit_code == 0

    result = _invoke("verify", "--format", "json", "--db", db)
    assert result.exit_code == 1
    assert "Hook on_identity_created is not installed" in result.output

    result = _invoke("hook", "--db", db)
    assert "not installed" in result.output


def test_hook_lifecycle_shows_in_verify(tmp_path: Path) -> None:
    db = str(tmp_path / "profiles.db")
    assert _invoke("hook", "install", "--db", db).exit_code == 0

    result = _invoke("hook", "disable", "--db", db)
    assert result.exit_code == 0, result.output
    assert "disabled" in result.output

    result = _invoke("verify", "--format", "json", "--db", db)
    assert result.exit_code == 1
    assert "Hook on_identity_created is disabled" in result.output

    assert _invoke("hook", "enable", "--db", db).exit_code == 0
    assert _invoke("verify", "--db", db).exit_code == 0

    assert _invoke("hook", "remove", "--db", db).exit_code == 0
    result = _invoke("hook", "disable", "--db", db)
    assert result.exit_code == 1
    assert "not installed" in result.output


def test_show_and_update_respect_ownership(tmp_path: Path) -> None:
    db = str(tmp_path / "profiles.db")
    for name in ("alice", "bob"):
        _invoke("register", "--email", f"{name}@example.com", "--identity-id", name, "--db", db)

    result = _invoke("show", "alice", "--as", "alice", "--db", db)
    assert result.exit_code == 0, result.output
    assert '"display_name": "alice"' in result.output

    result = _invoke("show", "alice", "--as", "bob", "--db", db)
    assert result.exit_code == 1
    assert "may not read" in result.output

    result = _invoke("update", "alice", "--as", "alice", "--name", "Alice R.", "--db", db)
    assert result.exit_code == 0, result.output
    assert '"display_name": "Alice R."' in result.output

    result = _invoke("update", "alice", "--as", "bob", "--name", "Mallory", "--db", db)
    assert result.exit_code == 1

    result = _invoke("update", "alice", "--as", "alice", "--name", "  ", "--db", db)
    assert result.exit_code == 1
    assert "Invalid update" in result.output
