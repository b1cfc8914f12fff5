"""Tests for the forum-admin maintenance command."""

import json
import logging

import pytest

from forum.cli import main
from forum.core.config import Environment, settings


@pytest.fixture(autouse=True)
def restore_logging():
    """main() reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture()
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


@pytest.fixture()
def seeded(db_url, capsys):
    assert main(["--database-url", db_url, "repair-seeds", "--admin", "root", "--user", "bob"]) == 0
    capsys.readouterr()
    return db_url


class TestCommands:

    def test_init_db(self, db_url, capsys):
        assert main(["--database-url", db_url, "init-db"]) == 0
        assert "Database tables are up to date" in capsys.readouterr().out

    def test_repair_seeds_reports_counts(self, db_url, capsys):
        assert main(["--database-url", db_url, "repair-seeds", "--admin", "root"]) == 0
        out = capsys.readouterr().out
        assert "roles:       4" in out
        assert "categories:  2" in out

        assert main(["--database-url", db_url, "repair-seeds", "--admin", "root"]) == 0
        assert "roles:       0" in capsys.readouterr().out

    def test_set_role(self, seeded, capsys):
        assert main(["--database-url", seeded, "set-role", "bob", "moderator"]) == 0
        assert "Assigned role 'Moderator' to user 'bob'" in capsys.readouterr().out

        assert main(["--database-url", seeded, "set-role", "bob", "Moderator"]) == 0
        assert "User 'bob' already has role 'Moderator'" in capsys.readouterr().out

    def test_set_unknown_role(self, seeded, capsys):
        assert main(["--database-url", seeded, "set-role", "bob", "wizard"]) == 1
        assert "Error: Role not found: wizard" in capsys.readouterr().err

    def test_rebuild_stats(self, seeded, capsys):
        assert main(["--database-url", seeded, "rebuild-stats"]) == 0
        assert "Rebuilt stats for 1 threads and 2 categories" in capsys.readouterr().out

    def test_failure_logged_with_run_context(self, seeded, capsys, monkeypatch):
        monkeypatch.setattr(settings, "log_format", "json")
        monkeypatch.setattr(settings, "log_level", "INFO")

        assert main(["--database-url", seeded, "set-role", "bob", "wizard"]) == 1
        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line.startswith("{")]
        failure = next(entry for entry in lines if entry["message"].startswith("set-role failed"))

        assert failure["level"] == "WARNING"
        assert failure["acting_user"] == "bob"
        assert failure["request_id"].startswith("cli-")

    def test_search(self, seeded, capsys):
        assert main(["--database-url", seeded, "search", "welcome -nonexistent", "--user", "bob"]) == 0
        out = capsys.readouterr().out
        assert "Threads (1 total):" in out
        assert "Welcome to the Forums" in out
        assert "Posts (0 total):" in out

    def test_search_threads_only(self, seeded, capsys):
        assert main(["--database-url", seeded, "search", "welcome", "--threads-only"]) == 0
        out = capsys.readouterr().out
        assert "Threads (1 total):" in out
        assert "Posts (" not in out

    def test_search_syntax_error(self, seeded, capsys):
        assert main(["--database-url", seeded, "search", "(welcome"]) == 1
        assert "Error: Unbalanced '('" in capsys.readouterr().err

    def test_missing_command(self):
        with pytest.raises(SystemExit):
            main([])

    def test_unsafe_production_config_blocks(self, db_url, capsys, monkeypatch):
        monkeypatch.setattr(settings, "environment", Environment.PRODUCTION)

        assert main(["--database-url", db_url, "init-db"]) == 1
        assert "Configuration error" in capsys.readouterr().err
