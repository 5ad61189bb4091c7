"""Tests for the command-line entry point."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from synaptic import __main__ as cli
from synaptic import config as config_module
from synaptic.git import GitError, RawCommit

TS = datetime(2025, 6, 1, tzinfo=timezone.utc)

HISTORY = [
    RawCommit(
        sha="a1b2c3d",
        message="learned(payments): retries need idempotency keys\n\nMemory: Always send Idempotency-Key\nTags: api",
        timestamp=TS,
    ),
    RawCommit(sha="e4f5a6b", message="decided(global): keep monorepo\n\nMemory: One repo for all services", timestamp=TS),
    RawCommit(sha="0000000", message="Merge pull request #3", timestamp=TS),
]


@pytest.fixture(autouse=True)
def isolated(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(config_module, "_GLOBAL_CONFIG", tmp_path / "none.toml")
    for key in [
        "SYNAPTIC_DEPTH",
        "SYNAPTIC_DOC_NAME",
        "SYNAPTIC_MODULE_ROOT",
        "SYNAPTIC_LOG_LEVEL",
        "SYNAPTIC_MAX_MEMORIES",
    ]:
        monkeypatch.delenv(key, raising=False)


class TestSync:
    def test_sync_writes_documents(self, tmp_path: Path, capsys):
        with patch("synaptic.__main__.read_commits", return_value=HISTORY):
            code = cli.main(["--root", str(tmp_path), "sync"])
        assert code == 0
        assert "Always send Idempotency-Key" in (
            tmp_path / "src" / "payments" / "CLAUDE.md"
        ).read_text(encoding="utf-8")
        assert "One repo for all services" in (tmp_path / "CLAUDE.md").read_text(encoding="utf-8")
        assert "Synced 2 new memories" in capsys.readouterr().out

    def test_dry_run(self, tmp_path: Path, capsys):
        with patch("synaptic.__main__.read_commits", return_value=HISTORY):
            code = cli.main(["--root", str(tmp_path), "sync", "--dry-run"])
        assert code == 0
        assert not (tmp_path / "CLAUDE.md").exists()
        out = capsys.readouterr().out
        assert "Would sync 2 new memories" in out
        assert "(preview)" in out

    def test_git_error_exit_code(self, tmp_path: Path):
        with patch("synaptic.__main__.read_commits", side_effect=GitError("boom")):
            assert cli.main(["--root", str(tmp_path), "sync"]) == 1

    def test_bad_config_exit_code(self, tmp_path: Path):
        bad = tmp_path / "bad.toml"
        bad.write_text("[sync\n", encoding="utf-8")
        with patch("synaptic.__main__.read_commits") as read:
            assert cli.main(["--root", str(tmp_path), "--config", str(bad), "sync"]) == 1
        read.assert_not_called()


class TestStats:
    def test_stats(self, tmp_path: Path, capsys):
        with patch("synaptic.__main__.read_commits", return_value=HISTORY):
            code = cli.main(["--root", str(tmp_path), "stats"])
        assert code == 0
        out = capsys.readouterr().out
        assert "SVCMS commits: 2" in out
        assert "Memories: 2" in out
        assert "decided: 1" in out


class TestTypes:
    def test_list_categories(self, tmp_path: Path, capsys):
        assert cli.main(["--root", str(tmp_path), "types"]) == 0
        assert "knowledge:" in capsys.readouterr().out

    def test_scope_types(self, tmp_path: Path, capsys):
        assert cli.main(["--root", str(tmp_path), "types", "payments"]) == 0
        assert "standard.feat" in capsys.readouterr().out.splitlines()

    def test_check_valid(self, tmp_path: Path):
        assert cli.main(["--root", str(tmp_path), "check", "knowledge.learned"]) == 0

    def test_check_invalid_suggests(self, tmp_path: Path, capsys):
        assert cli.main(["--root", str(tmp_path), "check", "standard.learned"]) == 1
        assert "not valid" in capsys.readouterr().out
