"""Cursor adapter: project rules and commands.

Cursor has no agent or skill concept, so those kinds compile to nothing.
"""

from __future__ import annotations

from typing import Any, Mapping

from ...domain.models import Asset, AssetKind, Target
from .base import BaseTargetAdapter


class CursorAdapter(BaseTargetAdapter):
    target = Target.CURSOR

    def destination(self, asset: Asset) -> str | None:
        if asset.kind is AssetKind.POLICY:
            return f".cursor/rules/{asset.identifier}/RULE.md"
        if asset.kind is AssetKind.ACTION:
            return f".cursor/commands/{asset.identifier}.md"
        return None

    def frontmatter(self, asset: Asset) -> Mapping[str, Any] | None:
        if asset.kind is AssetKind.ACTION:
            return None
        data: dict[str, Any] = {"description": asset.description}
        if asset.apply:
            data["globs"] = asset.apply
        data["alwaysApply"] = asset.apply is None
        return data
