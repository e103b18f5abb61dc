"""Classify compiled outputs against disk and lockfile, then resolve conflicts.

Purpose
-------
Decide, for every output about to be written, whether it is new, unchanged,
safe to overwrite, or in conflict with an edit made outside this tool.

Contents
--------
* :class:`WriteUnit` – one tracked output: a single file or a whole skill folder.
* :func:`build_units` – groups adapter outputs into units.
* :class:`WriteAction` / :class:`PlannedWrite` / :func:`classify` – the
  ClassifyWrites stage.
* :func:`resolve_conflicts` – the ResolveConflicts stage (force, prompter, or
  skip).
* :func:`unified_diff` – text shown when the operator asks for a diff.

System Role
-----------
A conflict is never overwritten silently: without ``force`` or an explicit
operator answer it is skipped and reported.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from ..domain.errors import DeployCancelled
from ..domain.hashing import content_hash, folder_hash
from ..domain.lockfile import Lockfile, OutputKey
from ..domain.models import MergedAsset, OutputFile
from ..observability import log_debug, log_info
from .ports import CancelToken, Conflict, ConflictChoice, FileSystem, Prompter

SKILL_ENTRY = "SKILL.md"


@dataclass(frozen=True, slots=True)
class WriteUnit:
    """A single output file, or every file of one skill folder."""

    key: OutputKey
    files: tuple[OutputFile, ...]
    hash: str
    merged: MergedAsset
    is_skill_folder: bool = False

    @property
    def path(self) -> str:
        return self.key.path

    @property
    def is_binary(self) -> bool:
        return not self.is_skill_folder and self.files[0].is_binary

    def relative_files(self) -> dict[str, bytes]:
        """Return ``relative path -> content`` inside a skill folder."""

        prefix = f"{self.path}/"
        return {output.path[len(prefix) :]: output.content for output in self.files}

    def entry_content(self) -> bytes:
        if not self.is_skill_folder:
            return self.files[0].content
        return self.relative_files().get(SKILL_ENTRY, b"")


def build_units(compiled: Iterable[tuple[MergedAsset, list[OutputFile]]]) -> list[WriteUnit]:
    """Group adapter outputs into write units, keyed and ordered by output key.

    Later duplicates of the same key replace earlier ones, so two targets that
    happen to share a path produce one unit.
    """

    units: dict[OutputKey, WriteUnit] = {}
    for merged, outputs in compiled:
        folders: dict[str, list[OutputFile]] = {}
        for output in outputs:
            if output.skill_root is not None:
                folders.setdefault(output.skill_root, []).append(output)
                continue
            key = OutputKey.for_path(output.path)
            units[key] = WriteUnit(key, (output,), content_hash(output.content), merged)
        for root, files in folders.items():
            key = OutputKey.for_path(root)
            prefix = f"{root}/"
            digest = folder_hash({output.path[len(prefix) :]: output.content for output in files})
            units[key] = WriteUnit(key, tuple(files), digest, merged, is_skill_folder=True)
    return [units[key] for key in sorted(units)]


class WriteAction(str, Enum):
    NEW = "new"
    UNCHANGED = "unchanged"
    CLEAN_OVERWRITE = "clean-overwrite"
    CONFLICT = "conflict"


@dataclass(frozen=True, slots=True)
class PlannedWrite:
    unit: WriteUnit
    action: WriteAction
    disk_hash: str | None = None
    reason: str | None = None


def disk_hash(fs: FileSystem, path: str, *, is_skill_folder: bool) -> str | None:
    """Hash what is currently on disk at *path*; ``None`` when nothing is there."""

    if is_skill_folder:
        files = fs.list_files(path)
        if not files:
            return None
        return folder_hash({relative: fs.read(f"{path}/{relative}") for relative in files})
    if not fs.exists(path):
        return None
    return content_hash(fs.read(path))


def classify(units: Iterable[WriteUnit], lockfile: Lockfile, fs: FileSystem) -> list[PlannedWrite]:
    """Bucket each unit into New, Unchanged, CleanOverwrite or Conflict.

    * nothing on disk: New
    * disk already equals the new content: Unchanged (adopted into the lockfile)
    * disk equals the last recorded hash: CleanOverwrite
    * anything else: Conflict (``modified`` when tracked, ``untracked`` otherwise)
    """

    plan: list[PlannedWrite] = []
    for unit in units:
        current = disk_hash(fs, unit.path, is_skill_folder=unit.is_skill_folder)
        entry = lockfile.get(unit.key)
        if current is None:
            planned = PlannedWrite(unit, WriteAction.NEW)
        elif current == unit.hash:
            planned = PlannedWrite(unit, WriteAction.UNCHANGED, current)
        elif entry is not None and entry.hash == current:
            planned = PlannedWrite(unit, WriteAction.CLEAN_OVERWRITE, current)
        else:
            reason = "modified" if entry is not None else "untracked"
            planned = PlannedWrite(unit, WriteAction.CONFLICT, current, reason)
        log_debug("write_classified", layer="plan", path=unit.path, action=planned.action.value, reason=planned.reason)
        plan.append(planned)
    return plan


@dataclass(slots=True)
class Resolution:
    writes: list[PlannedWrite] = field(default_factory=list)
    unchanged: list[PlannedWrite] = field(default_factory=list)
    skipped: list[PlannedWrite] = field(default_factory=list)


def resolve_conflicts(
    plan: Iterable[PlannedWrite],
    fs: FileSystem,
    *,
    force: bool = False,
    auto_confirm: bool = False,
    prompter: Prompter | None = None,
    cancel: CancelToken | None = None,
) -> Resolution:
    """Split *plan* into writes, unchanged units, and skipped conflicts.

    ``force`` overwrites every conflict. Without a prompter, or with
    ``auto_confirm``, conflicts are skipped. An "all" answer applies to every
    remaining conflict of the run.
    """

    resolution = Resolution()
    remembered: ConflictChoice | None = None
    for planned in plan:
        if planned.action is WriteAction.UNCHANGED:
            resolution.unchanged.append(planned)
            continue
        if planned.action is not WriteAction.CONFLICT:
            resolution.writes.append(planned)
            continue

        if force:
            choice = ConflictChoice.OVERWRITE
        elif remembered is not None:
            choice = remembered
        elif prompter is None or auto_confirm:
            choice = ConflictChoice.KEEP
        else:
            if cancel is not None and cancel.cancelled:
                raise DeployCancelled()
            choice = _ask(prompter, _conflict(planned, fs))
            if choice is ConflictChoice.OVERWRITE_ALL:
                remembered = choice = ConflictChoice.OVERWRITE
            elif choice is ConflictChoice.KEEP_ALL:
                remembered = choice = ConflictChoice.KEEP

        if choice is ConflictChoice.OVERWRITE:
            resolution.writes.append(planned)
        else:
            resolution.skipped.append(planned)
        log_info("conflict_resolved", layer="plan", path=planned.unit.path, choice=choice.value)
    return resolution


def _ask(prompter: Prompter, conflict: Conflict) -> ConflictChoice:
    while True:
        choice = prompter.ask(conflict)
        if choice is not ConflictChoice.SHOW_DIFF:
            return choice
        prompter.show_diff(conflict, unified_diff(conflict))


def _conflict(planned: PlannedWrite, fs: FileSystem) -> Conflict:
    unit = planned.unit
    entry_path = f"{unit.path}/{SKILL_ENTRY}" if unit.is_skill_folder else unit.path
    existing = fs.read(entry_path) if fs.exists(entry_path) else b""
    return Conflict(unit.key, planned.reason or "modified", existing, unit.entry_content(), unit.is_binary)


def unified_diff(conflict: Conflict) -> str:
    """Return a unified diff from the on-disk content to the incoming content.

    Examples
    --------
    >>> from lib_layered_prompts.domain.lockfile import OutputKey
    >>> c = Conflict(OutputKey.for_path("a.md"), "modified", b"one\\n", b"two\\n")
    >>> print(unified_diff(c))
    --- a.md (on disk)
    +++ a.md (incoming)
    @@ -1 +1 @@
    -one
    +two
    """

    if conflict.is_binary:
        return f"Binary files differ: {conflict.key.path}"
    before = conflict.existing.decode("utf-8", errors="replace").splitlines()
    after = conflict.incoming.decode("utf-8", errors="replace").splitlines()
    lines = difflib.unified_diff(
        before,
        after,
        fromfile=f"{conflict.key.path} (on disk)",
        tofile=f"{conflict.key.path} (incoming)",
        lineterm="",
    )
    return "\n".join(lines)
