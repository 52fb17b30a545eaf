"""Tests for the command line interface."""
import logging

from click.testing import CliRunner
from sqlmodel import Session

from release_indexer.cli import cli
from release_indexer.storage import IndexedDocument, SQLiteSearchIndex
from release_indexer.utils import config, load_config_from_dict, set_level

from conftest import distribution_files


def updated_at(index_path, doc_id):
    index = SQLiteSearchIndex(index_path)
    with Session(index.engine) as session:
        return session.get(IndexedDocument, ("release", doc_id)).updated_at


def test_import_command_indexes_archive(make_archive, cpan_root, tmp_path):
    archive = make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"]))
    index_path = tmp_path / "cli-index.db"

    result = CliRunner().invoke(
        cli,
        ["import", str(archive), "--index", str(index_path), "--cpan-root", str(cpan_root)],
    )

    assert result.exit_code == 0, result.output
    index = SQLiteSearchIndex(index_path)
    assert index.get("release", "AUTHOR/Foo-1.0")["provides"] == ["Foo"]


def test_import_command_skip(make_archive, cpan_root, tmp_path):
    archive = make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"]))
    index_path = tmp_path / "skip.db"
    args = ["import", str(archive), "--index", str(index_path), "--cpan-root", str(cpan_root)]
    runner = CliRunner()

    assert runner.invoke(cli, args).exit_code == 0
    before = updated_at(index_path, "AUTHOR/Foo-1.0")
    result = runner.invoke(cli, args + ["--skip"])

    assert result.exit_code == 0, result.output
    assert updated_at(index_path, "AUTHOR/Foo-1.0") == before


def test_missing_backpan_listing_exits_with_error(make_archive, cpan_root, tmp_path):
    archive = make_archive("AUTHOR", "Foo-1.0", distribution_files("Foo", "1.0", ["Foo"]))

    result = CliRunner().invoke(
        cli,
        [
            "import", str(archive),
            "--detect-backpan",
            "--index", str(tmp_path / "backpan.db"),
            "--cpan-root", str(cpan_root),
        ],
    )

    assert result.exit_code == 1


def test_import_requires_sources():
    result = CliRunner().invoke(cli, ["import"])

    assert result.exit_code != 0
    assert "Missing argument" in result.output


def test_settings_log_level_applies_to_loggers(monkeypatch):
    monkeypatch.setattr(config, "_settings", load_config_from_dict({"log_level": "WARNING"}))
    try:
        result = CliRunner().invoke(cli, ["import", "--help"])

        assert result.exit_code == 0, result.output
        assert logging.getLogger("release_indexer.cli").level == logging.WARNING
        assert logging.getLogger("release_indexer.feeds.permissions").level == logging.WARNING
    finally:
        set_level("INFO")


def test_debug_setting_and_log_level_option(monkeypatch):
    monkeypatch.setattr(config, "_settings", load_config_from_dict({"debug": True}))
    try:
        CliRunner().invoke(cli, ["import", "--help"])
        assert logging.getLogger("release_indexer.cli").level == logging.DEBUG

        CliRunner().invoke(cli, ["--log-level", "error", "import", "--help"])
        assert logging.getLogger("release_indexer.cli").level == logging.ERROR
    finally:
        set_level("INFO")
