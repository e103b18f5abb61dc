"""Claude Code adapter: commands, rules, agents and skills under ``.claude/``."""

from __future__ import annotations

from typing import Any, Mapping

from ...domain.models import Asset, AssetKind, Target
from .base import BaseTargetAdapter


class ClaudeCodeAdapter(BaseTargetAdapter):
    target = Target.CLAUDE_CODE

    _DIRECTORIES = {
        AssetKind.ACTION: ".claude/commands",
        AssetKind.POLICY: ".claude/rules",
        AssetKind.AGENT: ".claude/agents",
    }

    def destination(self, asset: Asset) -> str | None:
        directory = self._DIRECTORIES.get(asset.kind)
        return None if directory is None else f"{directory}/{asset.identifier}.md"

    def skill_root(self, asset: Asset) -> str | None:
        return f".claude/skills/{asset.identifier}"

    def frontmatter(self, asset: Asset) -> Mapping[str, Any] | None:
        if asset.kind in (AssetKind.AGENT, AssetKind.SKILL):
            data: dict[str, Any] = {"name": asset.identifier, "description": asset.description}
            if asset.allowed_tools:
                data["allowed-tools"] = ", ".join(asset.allowed_tools)
            return data
        data = {"description": asset.description}
        if asset.kind is AssetKind.POLICY and asset.apply:
            data["paths"] = asset.apply
        return data
