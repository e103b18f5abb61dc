from __future__ import annotations

import fcntl
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from lib_layered_prompts.adapters.registry.toml import TomlRegistryRepository
from lib_layered_prompts.domain.errors import InvalidFormat, RegistryLockTimeout, RegistryVersionTooNew
from lib_layered_prompts.domain.registry import ProjectEntry

WHEN = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)


def _entry(path: str, count: int = 2) -> ProjectEntry:
    return ProjectEntry(project_path=path, lockfile_path=f"{path}/layered-prompts.lock", last_deployed=WHEN, asset_count=count)


def test_upsert_persists_and_replaces(tmp_path: Path) -> None:
    repository = TomlRegistryRepository(tmp_path / "registry.toml")
    repository.upsert(_entry("/a"))
    repository.upsert(_entry("/b"))
    repository.upsert(_entry("/a", count=9))
    projects = repository.load().projects
    assert [(entry.project_path, entry.asset_count) for entry in projects] == [("/a", 9), ("/b", 2)]
    assert projects[0].last_deployed == WHEN


def test_remove_deletes_one_project(tmp_path: Path) -> None:
    repository = TomlRegistryRepository(tmp_path / "registry.toml")
    repository.upsert(_entry("/a"))
    assert repository.remove("/a") is True
    assert repository.remove("/a") is False
    assert repository.load().projects == []


def test_lock_held_elsewhere_times_out(tmp_path: Path) -> None:
    repository = TomlRegistryRepository(tmp_path / "registry.toml", lock_timeout=0.2)
    repository.lock_path.parent.mkdir(parents=True, exist_ok=True)
    with open(repository.lock_path, "a+") as holder:
        fcntl.flock(holder.fileno(), fcntl.LOCK_EX)
        try:
            with pytest.raises(RegistryLockTimeout):
                repository.upsert(_entry("/a"))
        finally:
            fcntl.flock(holder.fileno(), fcntl.LOCK_UN)
    repository.upsert(_entry("/a"))
    assert len(repository.load().projects) == 1


def test_lock_file_sits_next_to_registry(tmp_path: Path) -> None:
    repository = TomlRegistryRepository(tmp_path / "registry.toml")
    assert repository.lock_path == tmp_path / "registry.toml.lock"


def test_corrupt_registry_is_invalid_format(tmp_path: Path) -> None:
    path = tmp_path / "registry.toml"
    path.write_text("projects = [\n", encoding="utf-8")
    with pytest.raises(InvalidFormat):
        TomlRegistryRepository(path).load()


def test_concurrent_upserts_keep_every_project(tmp_path: Path) -> None:
    path = tmp_path / "registry.toml"
    start = threading.Barrier(8)
    failures: list[Exception] = []

    def register(index: int) -> None:
        start.wait()
        try:
            TomlRegistryRepository(path, lock_timeout=30.0).upsert(_entry(f"/project-{index}", count=index))
        except Exception as exc:  # noqa: BLE001
            failures.append(exc)

    workers = [threading.Thread(target=register, args=(index,)) for index in range(8)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    assert failures == []
    projects = TomlRegistryRepository(path).load().projects
    assert sorted(entry.project_path for entry in projects) == sorted(f"/project-{index}" for index in range(8))
    assert {entry.asset_count for entry in projects} == set(range(8))


@pytest.mark.parametrize(
    "row",
    [
        'path = "/b"\nlockfile = "/b/layered-prompts.lock"\nasset_count = "many"\n',
        'lockfile = "/b/layered-prompts.lock"\nasset_count = 1\n',
        'path = "/b"\nlast_deployed = "yesterday"\n',
    ],
)
def test_malformed_row_is_rejected_and_file_is_left_alone(tmp_path: Path, row: str) -> None:
    path = tmp_path / "registry.toml"
    original = f'version = 1\n\n[[projects]]\npath = "/a"\nasset_count = 2\n\n[[projects]]\n{row}'
    path.write_text(original, encoding="utf-8")
    repository = TomlRegistryRepository(path)

    with pytest.raises(InvalidFormat, match="project #2"):
        repository.upsert(_entry("/c"))
    assert path.read_text(encoding="utf-8") == original


def test_newer_registry_version_is_refused(tmp_path: Path) -> None:
    path = tmp_path / "registry.toml"
    original = 'version = 2\n\n[[projects]]\npath = "/a"\nasset_count = 2\nteam = "core"\n'
    path.write_text(original, encoding="utf-8")
    repository = TomlRegistryRepository(path)

    with pytest.raises(RegistryVersionTooNew, match="schema version 2"):
        repository.load()
    with pytest.raises(RegistryVersionTooNew):
        repository.upsert(_entry("/c"))
    assert path.read_text(encoding="utf-8") == original
