"""TOML persistence for the cross-project registry, guarded by an advisory lock.

Purpose
-------
Serialise concurrent registry mutations from unrelated invocations. Every
mutation is one read-modify-write performed while holding an exclusive
``fcntl.flock`` on a sidecar ``<registry>.lock`` file. Acquisition polls with
``LOCK_NB`` and gives up after ``lock_timeout`` seconds.

File shape::

    version = 1

    [[projects]]
    path = "/work/repo"
    lockfile = "/work/repo/layered-prompts.lock"
    last_deployed = 2024-05-01T10:00:00Z
    asset_count = 12
"""

from __future__ import annotations

import fcntl
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Mapping

try:  # Python >= 3.11
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for <3.11
    import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

from ...domain.errors import InvalidFormat, RegistryLockTimeout, RegistryVersionTooNew
from ...domain.registry import REGISTRY_VERSION, ProjectEntry, Registry
from ...observability import log_debug, log_info
from ..fs.local import atomic_write_bytes

_POLL_INTERVAL = 0.05


class TomlRegistryRepository:
    """Implements :class:`~lib_layered_prompts.application.ports.RegistryRepository`."""

    def __init__(self, path: Path, *, lock_timeout: float = 5.0) -> None:
        self.path = path
        self.lock_timeout = lock_timeout

    @property
    def lock_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".lock")

    def load(self) -> Registry:
        if not self.path.is_file():
            return Registry()
        try:
            document = tomllib.loads(self.path.read_bytes().decode("utf-8"))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
            raise InvalidFormat(f"Invalid registry {self.path}: {exc}") from exc
        return _registry_from_document(document, self.path)

    def upsert(self, entry: ProjectEntry) -> None:
        with self._locked():
            registry = self.load()
            registry.upsert(entry)
            self._save(registry)
        log_info("registry_updated", layer="registry", path=str(self.path), project=entry.project_path)

    def remove(self, project_path: str) -> bool:
        with self._locked():
            registry = self.load()
            removed = registry.remove(project_path)
            if removed:
                self._save(registry)
        return removed

    def prune(self) -> list[str]:
        with self._locked():
            registry = self.load()
            removed = registry.prune(lambda lockfile: Path(lockfile).is_file())
            if removed:
                self._save(registry)
        log_info("registry_pruned", layer="registry", path=str(self.path), removed=removed)
        return removed

    def _save(self, registry: Registry) -> None:
        atomic_write_bytes(self.path, tomli_w.dumps(_registry_to_document(registry)).encode("utf-8"))

    @contextmanager
    def _locked(self) -> Iterator[None]:
        lock_path = self.lock_path
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + self.lock_timeout
        with open(lock_path, "a+") as handle:
            while True:
                try:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except OSError:
                    if time.monotonic() >= deadline:
                        raise RegistryLockTimeout(lock_path, self.lock_timeout) from None
                    time.sleep(_POLL_INTERVAL)
            log_debug("registry_locked", layer="registry", path=str(lock_path))
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def _registry_from_document(document: Mapping[str, Any], path: Path) -> Registry:
    """Build a :class:`Registry`, rejecting rows it could not write back intact.

    A registry is shared by every project on the machine, so a malformed row
    raises :class:`InvalidFormat` instead of being dropped on the next save.

    Examples
    --------
    >>> doc = {"version": 1, "projects": [{"path": "/a", "lockfile": "/a/x.lock", "asset_count": 3}]}
    >>> _registry_from_document(doc, Path("r.toml")).projects[0].asset_count
    3
    >>> _registry_from_document({"version": 9}, Path("r.toml"))
    Traceback (most recent call last):
    ...
    lib_layered_prompts.domain.errors.RegistryVersionTooNew: Registry r.toml has schema version 9; this release reads up to 1
    Hint: Upgrade lib_layered_prompts to update this registry.
    """

    version = document.get("version", REGISTRY_VERSION)
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise InvalidFormat(f"Registry {path} has an invalid version: {version!r}")
    if version > REGISTRY_VERSION:
        raise RegistryVersionTooNew(path, version, REGISTRY_VERSION)

    projects = document.get("projects", [])
    if not isinstance(projects, list):
        raise InvalidFormat(f"Registry {path} has a `projects` value that is not an array")
    registry = Registry(version=REGISTRY_VERSION)
    for index, raw in enumerate(projects):
        registry.upsert(_entry_from_table(raw, path, index))
    return registry


def _entry_from_table(raw: object, path: Path, index: int) -> ProjectEntry:
    where = f"Registry {path}, project #{index + 1}"
    if not isinstance(raw, Mapping):
        raise InvalidFormat(f"{where} is not a table")
    project_path = raw.get("path")
    if not isinstance(project_path, str) or not project_path:
        raise InvalidFormat(f"{where} has no `path` string")
    lockfile = raw.get("lockfile", "")
    if not isinstance(lockfile, str):
        raise InvalidFormat(f"{where} has a `lockfile` value that is not a string")
    count = raw.get("asset_count", 0)
    if not isinstance(count, int) or isinstance(count, bool) or count < 0:
        raise InvalidFormat(f"{where} has an invalid `asset_count`: {count!r}")
    return ProjectEntry(
        project_path=project_path,
        lockfile_path=lockfile,
        last_deployed=_timestamp(raw.get("last_deployed"), where),
        asset_count=count,
    )


def _registry_to_document(registry: Registry) -> dict[str, Any]:
    return {
        "version": REGISTRY_VERSION,
        "projects": [
            {
                "path": entry.project_path,
                "lockfile": entry.lockfile_path,
                "last_deployed": entry.last_deployed,
                "asset_count": entry.asset_count,
            }
            for entry in registry.projects
        ],
    }


def _timestamp(value: object, where: str) -> datetime:
    if value is None:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            raise InvalidFormat(f"{where} has an invalid `last_deployed`: {value!r}") from None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    raise InvalidFormat(f"{where} has an invalid `last_deployed`: {value!r}")
