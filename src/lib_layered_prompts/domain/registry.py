"""Cross-project registry value objects.

The registry is an ordered list of deployed projects. Mutation helpers return
new information rather than touching disk; the TOML adapter wraps each
read-modify-write in an advisory lock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Final

REGISTRY_VERSION: Final[int] = 1


@dataclass(frozen=True, slots=True)
class ProjectEntry:
    project_path: str
    lockfile_path: str
    last_deployed: datetime
    asset_count: int


@dataclass(slots=True)
class Registry:
    """Ordered project list keyed by ``project_path``."""

    version: int = REGISTRY_VERSION
    projects: list[ProjectEntry] = field(default_factory=list)

    def upsert(self, entry: ProjectEntry) -> None:
        """Replace the entry for the same project in place, or append it.

        Examples
        --------
        >>> from datetime import datetime, timezone
        >>> when = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> registry = Registry()
        >>> registry.upsert(ProjectEntry("/p", "/p/l.lock", when, 1))
        >>> registry.upsert(ProjectEntry("/p", "/p/l.lock", when, 4))
        >>> [(p.project_path, p.asset_count) for p in registry.projects]
        [('/p', 4)]
        """

        for index, existing in enumerate(self.projects):
            if existing.project_path == entry.project_path:
                self.projects[index] = entry
                return
        self.projects.append(entry)

    def remove(self, project_path: str) -> bool:
        before = len(self.projects)
        self.projects = [entry for entry in self.projects if entry.project_path != project_path]
        return len(self.projects) != before

    def prune(self, lockfile_exists: Callable[[str], bool]) -> list[str]:
        """Drop entries whose lockfile is gone and return their project paths."""

        removed = [entry.project_path for entry in self.projects if not lockfile_exists(entry.lockfile_path)]
        if removed:
            self.projects = [entry for entry in self.projects if entry.project_path not in removed]
        return removed

    def find(self, project_path: str) -> ProjectEntry | None:
        return next((entry for entry in self.projects if entry.project_path == project_path), None)
