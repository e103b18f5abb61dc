from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from lib_layered_prompts.adapters.lockfile.toml import (
    LEGACY_LOCKFILE_NAME,
    LOCKFILE_NAME,
    TomlLockfileRepository,
    lockfile_from_document,
    lockfile_to_document,
    resolve_lockfile_path,
)
from lib_layered_prompts.domain.errors import InvalidFormat, LockfileVersionTooNew
from lib_layered_prompts.domain.lockfile import UNKNOWN, Lockfile, LockfileEntry, OutputKey

PATHS = st.text(alphabet="abc/._-~", min_size=1, max_size=12).filter(lambda text: not text.startswith("/"))
ENTRIES = st.builds(
    LockfileEntry,
    hash=st.text(alphabet="0123456789abcdef", min_size=1, max_size=8).map(lambda text: f"sha256:{text}"),
    source_layer=st.sampled_from(["user", "custom-0", "project"]),
    source_asset=st.text(alphabet="abcxyz-", min_size=1, max_size=6),
    overrides=st.one_of(st.none(), st.sampled_from(["user", "custom-0"])),
    is_binary=st.booleans(),
    is_skill_folder=st.booleans(),
)


def test_missing_lockfile_is_empty(tmp_path: Path) -> None:
    assert len(TomlLockfileRepository().load(tmp_path / LOCKFILE_NAME)) == 0


@settings(max_examples=40)
@given(st.dictionaries(PATHS, ENTRIES, max_size=5))
def test_document_round_trip_keeps_every_entry(entries) -> None:
    ledger = Lockfile()
    for path, entry in entries.items():
        ledger.set(OutputKey.for_path(path), entry)
    restored = lockfile_from_document(lockfile_to_document(ledger), Path("x.lock"))
    assert restored.entries == ledger.entries


def test_saved_file_loads_back(tmp_path: Path) -> None:
    ledger = Lockfile()
    ledger.set(OutputKey.for_path("~/.claude/rules/a.md"), LockfileEntry("sha256:1", source_layer="user"))
    ledger.set(OutputKey.for_path(".claude/skills/pdf"), LockfileEntry("sha256:2", is_skill_folder=True))
    path = tmp_path / "nested" / LOCKFILE_NAME
    repository = TomlLockfileRepository()
    repository.save(ledger, path)
    text = path.read_text(encoding="utf-8")
    assert "version = 2" in text
    assert '"home:~/.claude/rules/a.md"' in text
    assert repository.load(path).entries == ledger.entries


def test_version_one_entries_load_with_unknown_provenance(tmp_path: Path) -> None:
    path = tmp_path / LOCKFILE_NAME
    path.write_text('version = 1\n[files."project:a.md"]\nhash = "sha256:1"\n', encoding="utf-8")
    entry = TomlLockfileRepository().load(path).get(OutputKey.for_path("a.md"))
    assert entry == LockfileEntry("sha256:1")
    assert entry.source_layer == UNKNOWN


def test_newer_schema_is_refused(tmp_path: Path) -> None:
    path = tmp_path / LOCKFILE_NAME
    path.write_text("version = 3\n", encoding="utf-8")
    with pytest.raises(LockfileVersionTooNew):
        TomlLockfileRepository().load(path)


def test_unparseable_lockfile_is_invalid_format(tmp_path: Path) -> None:
    path = tmp_path / LOCKFILE_NAME
    path.write_text("version = \n", encoding="utf-8")
    with pytest.raises(InvalidFormat):
        TomlLockfileRepository().load(path)


def test_entries_without_hash_are_dropped_and_unknown_keys_ignored() -> None:
    document = {
        "version": 2,
        "future": True,
        "files": {
            "project:a.md": {"hash": "sha256:1", "colour": "blue"},
            "project:b.md": {"source_layer": "user"},
            "project:c.md": "garbage",
        },
    }
    ledger = lockfile_from_document(document, Path("x.lock"))
    assert [str(key) for key in ledger.keys()] == ["project:a.md"]


def test_legacy_lockfile_is_migrated_to_project_root(tmp_path: Path) -> None:
    layer = tmp_path / ".promptpack"
    layer.mkdir()
    legacy = layer / LEGACY_LOCKFILE_NAME
    legacy.write_text('version = 2\n[files."project:a.md"]\nhash = "sha256:1"\n', encoding="utf-8")
    repository = TomlLockfileRepository()

    path, notice = resolve_lockfile_path(tmp_path, layer, repository)
    assert path == tmp_path / LOCKFILE_NAME
    assert notice.startswith("Migrated lockfile")
    assert not legacy.exists()
    assert OutputKey.for_path("a.md") in repository.load(path)

    again, second_notice = resolve_lockfile_path(tmp_path, layer, repository)
    assert again == path
    assert second_notice is None


def test_legacy_lockfile_stays_put_when_migration_is_deferred(tmp_path: Path) -> None:
    layer = tmp_path / ".promptpack"
    layer.mkdir()
    legacy = layer / LEGACY_LOCKFILE_NAME
    legacy.write_text('version = 2\n[files."project:a.md"]\nhash = "sha256:1"\n', encoding="utf-8")
    repository = TomlLockfileRepository()

    path, notice = resolve_lockfile_path(tmp_path, layer, repository, migrate=False)
    assert path == legacy
    assert notice.startswith("Would migrate lockfile")
    assert legacy.exists()
    assert not (tmp_path / LOCKFILE_NAME).exists()
    assert OutputKey.for_path("a.md") in repository.load(path)
