"""Codex adapter: custom prompts and skills under ``.codex/``."""

from __future__ import annotations

from typing import Any, Mapping

from ...domain.models import Asset, AssetKind, Target
from .base import BaseTargetAdapter


class CodexAdapter(BaseTargetAdapter):
    target = Target.CODEX

    def destination(self, asset: Asset) -> str | None:
        return f".codex/prompts/{asset.identifier}.md" if asset.kind is AssetKind.ACTION else None

    def skill_root(self, asset: Asset) -> str | None:
        return f".codex/skills/{asset.identifier}"

    def frontmatter(self, asset: Asset) -> Mapping[str, Any] | None:
        if asset.kind is AssetKind.SKILL:
            return {"name": asset.identifier, "description": asset.description}
        return {"description": asset.description}
