"""Tests for the command-line interface."""

import pytest
from typer.testing import CliRunner

from fileset.cli import app
from fileset.context import reset_default_context

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_context(tmp_path, monkeypatch):
    """Give the CLI's default context its own temp root."""
    monkeypatch.setenv("FILESET_TEMP_ROOT", str(tmp_path / "cli-tmp"))
    reset_default_context()
    yield
    reset_default_context()


class TestLs:
    """fileset ls"""

    def test_lists_files(self, assets):
        """All files are listed with a total."""
        result = runner.invoke(app, ["ls", str(assets)])

        assert result.exit_code == 0
        assert "file1.md" in result.stdout
        assert "file3.md" in result.stdout
        assert "3 files" in result.stdout
        assert "B total" in result.stdout

    def test_exclude(self, assets):
        """-x drops matching paths."""
        result = runner.invoke(app, ["ls", str(assets), "-x", "^dir1/"])

        assert result.exit_code == 0
        assert "file3.md" not in result.stdout
        assert "2 files" in result.stdout

    def test_missing_directory(self, tmp_path):
        """A missing directory exits with status 2."""
        result = runner.invoke(app, ["ls", str(tmp_path / "missing")])
        assert result.exit_code == 2


class TestDigest:
    """fileset digest"""

    def test_same_content_same_digest(self, assets, tmp_path, copy_tree):
        """Two directories with equal contents print the same digest."""
        copy = tmp_path / "copy"
        copy_tree(assets, copy)

        first = runner.invoke(app, ["digest", str(assets)])
        second = runner.invoke(app, ["digest", str(copy)])

        assert first.exit_code == 0
        assert first.stdout.strip() == second.stdout.strip()
        assert len(first.stdout.strip()) == 64


class TestDiff:
    """fileset diff"""

    def test_no_differences(self, assets):
        result = runner.invoke(app, ["diff", str(assets), str(assets), "--exit-code"])
        assert result.exit_code == 0
        assert "No differences" in result.stdout

    def test_reports_changes(self, assets, tmp_path, copy_tree):
        """Added, removed and changed counts are printed."""
        after = tmp_path / "after"
        copy_tree(assets, after)
        (after / "file1.md").write_text("changed")
        (after / "file2.md").unlink()
        (after / "new.md").write_text("new")

        result = runner.invoke(app, ["diff", str(assets), str(after)])

        assert result.exit_code == 0
        assert "1 added, 1 removed, 1 changed" in result.stdout

    def test_exit_code(self, assets, tmp_path, copy_tree):
        """--exit-code exits 1 when the directories differ."""
        after = tmp_path / "after"
        copy_tree(assets, after)
        (after / "extra.md").write_text("x")

        result = runner.invoke(app, ["diff", str(assets), str(after), "--exit-code"])
        assert result.exit_code == 1


class TestCommit:
    """fileset commit"""

    def test_mirrors_source(self, assets, tmp_path, files_under):
        """The destination ends up mirroring the source."""
        dest = tmp_path / "dest"
        dest.mkdir()
        (dest / "stale.txt").write_text("stale")

        result = runner.invoke(app, ["commit", str(assets), str(dest)])

        assert result.exit_code == 0
        assert "Committed 3 files" in result.stdout
        assert files_under(dest) == files_under(assets)

    def test_include(self, assets, tmp_path, files_under):
        """-i restricts what is committed."""
        dest = tmp_path / "dest"
        result = runner.invoke(app, ["commit", str(assets), str(dest), "-i", "^dir1/"])

        assert result.exit_code == 0
        assert list(files_under(dest)) == ["dir1/file3.md"]
