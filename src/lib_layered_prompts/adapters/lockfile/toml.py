"""TOML persistence for the project lockfile.

Purpose
-------
Read and write :class:`~lib_layered_prompts.domain.lockfile.Lockfile`
documents and relocate legacy lockfiles. The on-disk shape is::

    version = 2

    [files."project:.claude/rules/style.md"]
    hash = "sha256:..."
    source_layer = "project"
    source_layer_path = "/repo/.promptpack"
    source_asset = "style"
    source_file = "/repo/.promptpack/policies/style.md"
    is_binary = false
    is_skill_folder = false

Compatibility
-------------
Readers ignore keys they do not know. Version 1 documents (``hash`` only) load
with ``"unknown"`` provenance. Versions above :data:`SCHEMA_VERSION` are
rejected so an older release never rewrites a newer ledger.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

try:  # Python >= 3.11
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for <3.11
    import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

from ...domain.errors import InvalidFormat, LockfileVersionTooNew
from ...domain.lockfile import SCHEMA_VERSION, UNKNOWN, Lockfile, LockfileEntry, OutputKey
from ...observability import log_debug, log_error, log_info, log_warning
from ..fs.local import atomic_write_bytes

LOCKFILE_NAME = "layered-prompts.lock"
LEGACY_LOCKFILE_NAME = ".layered-prompts.lock"

_PROVENANCE_FIELDS = ("source_layer", "source_layer_path", "source_asset", "source_file")


class TomlLockfileRepository:
    """Implements :class:`~lib_layered_prompts.application.ports.LockfileRepository`."""

    def load(self, path: Path) -> Lockfile:
        """Return the lockfile at *path*; a missing file yields an empty ledger."""

        if not path.is_file():
            log_debug("lockfile_missing", layer="lockfile", path=str(path))
            return Lockfile()
        try:
            document = tomllib.loads(path.read_bytes().decode("utf-8"))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
            log_error("lockfile_invalid", layer="lockfile", path=str(path), error=str(exc))
            raise InvalidFormat(
                f"Invalid lockfile {path}: {exc}",
                remedy="Fix or delete the lockfile; deleting it makes the next deploy treat existing files as untracked.",
            ) from exc
        lockfile = lockfile_from_document(document, path)
        log_debug("lockfile_loaded", layer="lockfile", path=str(path), entries=len(lockfile))
        return lockfile

    def save(self, lockfile: Lockfile, path: Path) -> None:
        atomic_write_bytes(path, tomli_w.dumps(lockfile_to_document(lockfile)).encode("utf-8"))
        log_info("lockfile_saved", layer="lockfile", path=str(path), entries=len(lockfile))


def lockfile_from_document(document: Mapping[str, Any], path: Path) -> Lockfile:
    """Build a :class:`Lockfile` from a parsed TOML document.

    Examples
    --------
    >>> legacy = {"version": 1, "files": {"project:a.md": {"hash": "sha256:1"}}}
    >>> entry = lockfile_from_document(legacy, Path("x.lock")).get(OutputKey.for_path("a.md"))
    >>> entry.hash, entry.source_layer
    ('sha256:1', 'unknown')
    """

    version = document.get("version", 1)
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise InvalidFormat(f"Lockfile {path} has an invalid version: {version!r}")
    if version > SCHEMA_VERSION:
        raise LockfileVersionTooNew(path, version, SCHEMA_VERSION)

    files = document.get("files", {})
    if not isinstance(files, Mapping):
        raise InvalidFormat(f"Lockfile {path} has a `files` value that is not a table")

    lockfile = Lockfile()
    for raw_key, raw_entry in files.items():
        entry = _entry_from_table(raw_entry)
        if entry is None:
            log_warning("lockfile_entry_dropped", layer="lockfile", path=str(path), key=raw_key)
            continue
        lockfile.set(OutputKey.parse(raw_key), entry)
    return lockfile


def lockfile_to_document(lockfile: Lockfile) -> dict[str, Any]:
    files: dict[str, dict[str, Any]] = {}
    for key, entry in lockfile.items():
        table: dict[str, Any] = {"hash": entry.hash}
        for name in _PROVENANCE_FIELDS:
            table[name] = getattr(entry, name)
        if entry.overrides is not None:
            table["overrides"] = entry.overrides
        table["is_binary"] = entry.is_binary
        table["is_skill_folder"] = entry.is_skill_folder
        files[str(key)] = table
    return {"version": SCHEMA_VERSION, "files": files}


def _entry_from_table(raw: object) -> LockfileEntry | None:
    if not isinstance(raw, Mapping):
        return None
    digest = raw.get("hash")
    if not isinstance(digest, str) or not digest:
        return None
    provenance = {name: _text(raw.get(name)) for name in _PROVENANCE_FIELDS}
    overrides = raw.get("overrides")
    return LockfileEntry(
        hash=digest,
        overrides=overrides if isinstance(overrides, str) else None,
        is_binary=raw.get("is_binary") is True,
        is_skill_folder=raw.get("is_skill_folder") is True,
        **provenance,
    )


def _text(value: object) -> str:
    return value if isinstance(value, str) and value else UNKNOWN


def resolve_lockfile_path(
    project_root: Path,
    project_layer: Path,
    repository: TomlLockfileRepository,
    *,
    migrate: bool = True,
) -> tuple[Path, str | None]:
    """Return the lockfile location for a project, migrating the legacy file.

    The legacy ``<project layer>/.layered-prompts.lock`` is copied to
    ``<project root>/layered-prompts.lock`` and deleted only after the new file
    is written. The second element is a warning describing the migration (or a
    failed one); it is ``None`` when nothing happened.

    With ``migrate=False`` nothing is written or deleted: the legacy path is
    returned so callers read from it, together with a "would migrate" notice.
    """

    new_path = project_root / LOCKFILE_NAME
    old_path = project_layer / LEGACY_LOCKFILE_NAME
    if new_path.exists() or not old_path.exists():
        return new_path, None
    if not migrate:
        log_debug("lockfile_migration_deferred", layer="lockfile", path=str(old_path))
        return old_path, f"Would migrate lockfile from {old_path} to {new_path}"
    return migrate_lockfile(old_path, new_path, repository)


def migrate_lockfile(old_path: Path, new_path: Path, repository: TomlLockfileRepository) -> tuple[Path, str]:
    try:
        repository.save(repository.load(old_path), new_path)
    except OSError as exc:
        message = f"Failed to migrate lockfile to {new_path}: {exc}"
        log_warning("lockfile_migration_failed", layer="lockfile", path=str(old_path), error=str(exc))
        return old_path, message
    try:
        old_path.unlink()
    except OSError as exc:
        message = f"Migrated lockfile to {new_path}, but failed to delete legacy lockfile: {exc}"
    else:
        message = f"Migrated lockfile from {old_path} to {new_path}"
    log_warning("lockfile_migrated", layer="lockfile", path=str(new_path), legacy=str(old_path))
    return new_path, message
