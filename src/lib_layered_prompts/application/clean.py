"""Remove every output tracked by a lockfile.

Applies the same safety policy as orphan cleanup: only outputs whose hash still
matches and that still carry the ownership marker are removed unless ``force``
is set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..domain.lockfile import KeyNamespace
from ..observability import log_info, new_trace_id
from .orphans import remove_tracked
from .ports import FileSystem, LockfileRepository


@dataclass(slots=True)
class CleanResult:
    lockfile_path: Path
    dry_run: bool = False
    removed: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lockfile": str(self.lockfile_path),
            "dry_run": self.dry_run,
            "removed": list(self.removed),
            "missing": list(self.missing),
            "skipped": list(self.skipped),
            "warnings": list(self.warnings),
        }


class CleanUseCase:
    def __init__(self, *, fs: FileSystem, lockfiles: LockfileRepository) -> None:
        self.fs = fs
        self.lockfiles = lockfiles

    def execute(
        self,
        lockfile_path: Path,
        *,
        namespace: KeyNamespace | None = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> CleanResult:
        """Remove tracked outputs, optionally limited to one key *namespace*."""

        new_trace_id()
        lockfile = self.lockfiles.load(lockfile_path)
        keys = [key for key, _ in lockfile.items() if namespace is None or key.namespace is namespace]
        report = remove_tracked(keys, lockfile, self.fs, force=force, dry_run=dry_run)
        if not dry_run and (report.removed or report.missing):
            self.lockfiles.save(lockfile, lockfile_path)
        log_info("clean_finished", layer="clean", path=str(lockfile_path), removed=len(report.removed), skipped=len(report.skipped))
        return CleanResult(
            lockfile_path=lockfile_path,
            dry_run=dry_run,
            removed=report.removed,
            missing=report.missing,
            skipped=report.skipped,
            warnings=report.warnings,
        )
