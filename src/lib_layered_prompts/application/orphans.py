"""Detect and safely remove outputs whose source asset disappeared.

Purpose
-------
An orphan is a key present in the previous lockfile but absent from the
current write set. Removal is destructive, so it happens only when the file (or
whole skill folder) is provably still ours: its on-disk hash equals the recorded
hash and the ownership marker is present. Everything else is kept and reported.

Contents
--------
* :func:`detect_orphans` – pure key-set difference.
* :class:`OrphanStatus` / :func:`inspect_orphan` – safety check for one entry.
* :func:`remove_tracked` – removal pass shared by deploy cleanup and ``clean``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from ..domain.hashing import has_ownership_marker
from ..domain.lockfile import Lockfile, LockfileEntry, OutputKey
from ..observability import log_info, log_warning
from .planner import SKILL_ENTRY, disk_hash
from .ports import FileSystem


def detect_orphans(previous: Lockfile, current_keys: Iterable[OutputKey]) -> list[OutputKey]:
    """Return keys tracked in *previous* but missing from *current_keys*, sorted.

    Examples
    --------
    >>> from lib_layered_prompts.domain.lockfile import LockfileEntry
    >>> ledger = Lockfile()
    >>> ledger.set(OutputKey.for_path("a.md"), LockfileEntry("sha256:1"))
    >>> ledger.set(OutputKey.for_path("b.md"), LockfileEntry("sha256:2"))
    >>> [str(key) for key in detect_orphans(ledger, [OutputKey.for_path("b.md")])]
    ['project:a.md']
    """

    return sorted(previous.keys() - set(current_keys))


class OrphanStatus(str, Enum):
    SAFE = "safe"
    MISSING = "missing"
    MODIFIED = "modified"
    UNOWNED = "unowned"


def inspect_orphan(key: OutputKey, entry: LockfileEntry, fs: FileSystem) -> OrphanStatus:
    """Return whether the tracked output may be removed without losing edits.

    Binary files cannot carry the marker, so for them the hash alone decides.
    Skill folders are checked as one unit: the combined hash of every file in
    the folder, and the marker in ``SKILL.md``.
    """

    current = disk_hash(fs, key.path, is_skill_folder=entry.is_skill_folder)
    if current is None:
        return OrphanStatus.MISSING
    if current != entry.hash:
        return OrphanStatus.MODIFIED
    if entry.is_binary:
        return OrphanStatus.SAFE
    marker_path = f"{key.path}/{SKILL_ENTRY}" if entry.is_skill_folder else key.path
    if not fs.exists(marker_path) or not has_ownership_marker(fs.read(marker_path)):
        return OrphanStatus.UNOWNED
    return OrphanStatus.SAFE


_SKIP_REASONS = {
    OrphanStatus.MODIFIED: "modified since last deploy",
    OrphanStatus.UNOWNED: "missing ownership marker",
}


@dataclass(slots=True)
class RemovalReport:
    removed: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def remove_tracked(
    keys: Iterable[OutputKey],
    lockfile: Lockfile,
    fs: FileSystem,
    *,
    force: bool = False,
    dry_run: bool = False,
) -> RemovalReport:
    """Remove the outputs behind *keys* and drop their lockfile entries.

    Entries are dropped only when the output was removed or was already gone.
    Skipped outputs keep their entry so a later run can retry. ``force`` removes
    modified and unowned outputs too. ``dry_run`` reports without touching disk
    or *lockfile*.
    """

    report = RemovalReport()
    for key in keys:
        entry = lockfile.get(key)
        if entry is None:
            continue
        status = inspect_orphan(key, entry, fs)
        if status is OrphanStatus.MISSING:
            report.missing.append(key.path)
            if not dry_run:
                lockfile.remove(key)
            continue
        if status is not OrphanStatus.SAFE and not force:
            reason = _SKIP_REASONS[status]
            report.skipped.append(key.path)
            report.warnings.append(f"Kept {key.path}: {reason} (use --force to remove)")
            log_warning("orphan_skipped", layer="orphans", path=key.path, reason=status.value)
            continue
        if not dry_run:
            if entry.is_skill_folder:
                fs.remove_tree(key.path)
            else:
                fs.remove(key.path)
            lockfile.remove(key)
        report.removed.append(key.path)
        log_info("orphan_removed", layer="orphans", path=key.path, forced=status is not OrphanStatus.SAFE, dry_run=dry_run)
    return report
