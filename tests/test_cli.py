"""Tests for the command-line interface."""

import json
import logging

import pytest
from click.testing import CliRunner
from fakes import FakeMutator, FakeProvider, SleepRecorder, make_entry

from anilist_mal_reconcile.cli import main
from anilist_mal_reconcile.constants import Platform
from anilist_mal_reconcile.errors import PlatformError
from anilist_mal_reconcile.sync_service import SyncSession

CONFIG = """
anilist:
  username: ani_user
  access_token: token
mal:
  username: mal_user
"""


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class SessionFactory:
    """Builds sessions over fake platforms and remembers the last one."""

    def __init__(self, mal_entries=(), anilist_entries=(), anilist_error=None, fail_titles=()):
        self.mal_entries = list(mal_entries)
        self.anilist_entries = list(anilist_entries)
        self.anilist_error = anilist_error
        self.mutator = FakeMutator(search={"Monster": 19, "Mushishi": 457}, fail_titles=fail_titles)
        self.session = None

    def __call__(self, settings):
        providers = {
            Platform.MAL: FakeProvider(self.mal_entries),
            Platform.ANILIST: FakeProvider(self.anilist_entries, error=self.anilist_error),
        }
        mutators = {Platform.ANILIST: self.mutator, Platform.MAL: FakeMutator()}
        self.session = SyncSession(settings, providers, mutators, sleep=SleepRecorder())
        return self.session


def _invoke(factory, config_path, *args):
    runner = CliRunner()
    return runner.invoke(
        main,
        ["--config", str(config_path), *args],
        obj={"session_factory": factory},
    )


def test_compare_reports_differences(config_file, tmp_path):
    factory = SessionFactory(
        mal_entries=[make_entry("Monster"), make_entry("Mushishi")],
        anilist_entries=[make_entry("Mushishi", Platform.ANILIST), make_entry("Berserk", Platform.ANILIST)],
    )
    output = tmp_path / "diff.json"

    result = _invoke(factory, config_file(CONFIG), "compare", "--output", str(output))

    assert result.exit_code == 0, result.output
    assert "DRY RUN" in result.output
    assert "Matched: 1" in result.output
    assert "Missing on target: 1" in result.output
    assert factory.mutator.upserts == []
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["stats"]["matches"] == 1
    assert [e["title"] for e in payload["source_only"]] == ["Monster"]
    assert [e["title"] for e in payload["target_only"]] == ["Berserk"]
    assert payload["matches"][0]["target"] == "Mushishi"


def test_compare_exits_nonzero_on_fetch_error(config_file):
    factory = SessionFactory(mal_entries=[make_entry("Monster")], anilist_error=PlatformError("down"))

    result = _invoke(factory, config_file(CONFIG), "compare")

    assert result.exit_code == 1
    assert "Fetch failed for anilist: down" in result.output
    assert "Missing on target: 1" in result.output


def test_sync_pushes_missing_entries(config_file):
    factory = SessionFactory(mal_entries=[make_entry("Monster"), make_entry("Mushishi")])

    result = _invoke(factory, config_file(CONFIG), "sync", "--source", "mal", "--target", "anilist")

    assert result.exit_code == 0, result.output
    assert "Entries synced: 2" in result.output
    assert factory.mutator.upserts == [(19, "Monster"), (457, "Mushishi")]


def test_sync_exits_nonzero_when_an_entry_fails(config_file):
    factory = SessionFactory(mal_entries=[make_entry("Monster"), make_entry("Mushishi")], fail_titles={"Monster"})

    result = _invoke(factory, config_file(CONFIG), "sync")

    assert result.exit_code == 1
    assert "Entries failed: 1" in result.output
    assert "Monster: upsert rejected" in result.output


def test_sync_dry_run(config_file):
    factory = SessionFactory(mal_entries=[make_entry("Monster")])

    result = _invoke(factory, config_file(CONFIG), "sync", "--dry-run")

    assert result.exit_code == 0
    assert factory.mutator.upserts == []


def test_sync_requires_target_token(config_file, monkeypatch):
    monkeypatch.delenv("MAL_ACCESS_TOKEN", raising=False)
    factory = SessionFactory()
    path = config_file("anilist:\n  username: ani_user\nmal:\n  username: mal_user\n")

    result = _invoke(factory, path, "sync", "--source", "anilist", "--target", "mal")

    assert result.exit_code == 1
    assert factory.session is None


def test_same_source_and_target_is_a_usage_error(config_file):
    result = _invoke(SessionFactory(), config_file(CONFIG), "compare", "--source", "mal", "--target", "mal")

    assert result.exit_code == 2


def test_json_import_errors_exit_nonzero(config_file, tmp_path):
    path = tmp_path / "import.json"
    path.write_text("[]", encoding="utf-8")
    factory = SessionFactory()

    result = _invoke(factory, config_file(CONFIG), "sync", "--source", "json", "--import-file", str(path))

    assert result.exit_code == 1
    assert "JSON import is empty" in result.output
