"""Registry use cases backing the ``projects`` commands."""

from __future__ import annotations

from typing import Any

from ..domain.registry import ProjectEntry
from .ports import RegistryRepository


def list_projects(registry: RegistryRepository) -> list[ProjectEntry]:
    """Return registered projects, most recently deployed first."""

    return sorted(registry.load().projects, key=lambda entry: entry.last_deployed, reverse=True)


def prune_projects(registry: RegistryRepository) -> list[str]:
    """Drop projects whose lockfile no longer exists and return their paths."""

    return registry.prune()


def project_to_dict(entry: ProjectEntry) -> dict[str, Any]:
    return {
        "path": entry.project_path,
        "lockfile": entry.lockfile_path,
        "last_deployed": entry.last_deployed.isoformat(),
        "asset_count": entry.asset_count,
    }
