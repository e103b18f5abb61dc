"""Shared rendering for the reference target adapters.

Purpose
-------
Concrete adapters only decide *where* each asset kind goes and which
frontmatter keys the platform reads. Rendering, the ownership footer, user
scope prefixes, and skill-folder expansion live here.

Contents
--------
* :class:`BaseTargetAdapter` – implements ``compile`` and ``validate`` on top of
  three hooks (:meth:`destination`, :meth:`frontmatter`, :meth:`skill_root`).
* :func:`render_markdown` – frontmatter + body + ownership footer.
"""

from __future__ import annotations

import re
from typing import Any, ClassVar, Mapping

import yaml

from ...domain.hashing import ownership_footer
from ...domain.models import Asset, AssetKind, Diagnostic, MergedAsset, OutputFile, Scope, Target

SKILL_ENTRY = "SKILL.md"
USER_PREFIX = "~/"
_SKILL_NAME = re.compile(r"^[a-z0-9][a-z0-9-]*$")


def render_markdown(frontmatter: Mapping[str, Any] | None, body: str, source_file: str) -> str:
    """Render a generated Markdown document.

    Examples
    --------
    >>> print(render_markdown({"description": "Style"}, "Use tabs.\\n", "policies/style.md"))
    ---
    description: Style
    ---
    Use tabs.
    <BLANKLINE>
    <!-- Generated by lib_layered_prompts. Source: policies/style.md. DO NOT EDIT. -->
    <BLANKLINE>
    """

    parts: list[str] = []
    if frontmatter:
        header = yaml.safe_dump(dict(frontmatter), sort_keys=False, allow_unicode=True, default_flow_style=False)
        parts.append(f"---\n{header}---\n")
    parts.append(f"{body.strip()}\n\n")
    parts.append(f"{ownership_footer(source_file)}\n")
    return "".join(parts)


class BaseTargetAdapter:
    """Template for platform adapters.

    Subclasses set :attr:`target` and override the hooks. A ``None`` destination
    or skill root means the platform has no place for that kind, and
    :meth:`compile` returns an empty list.
    """

    target: ClassVar[Target]

    def destination(self, asset: Asset) -> str | None:
        """Project-relative path of the single output file for a non-skill asset."""

        return None

    def skill_root(self, asset: Asset) -> str | None:
        """Project-relative folder receiving a skill, or ``None`` if unsupported."""

        return None

    def frontmatter(self, asset: Asset) -> Mapping[str, Any] | None:
        return {"description": asset.description}

    def compile(self, merged: MergedAsset) -> list[OutputFile]:
        asset = merged.asset
        prefix = USER_PREFIX if asset.scope is Scope.USER else ""
        if asset.kind is AssetKind.SKILL:
            root = self.skill_root(asset)
            return [] if root is None else self._compile_skill(asset, prefix + root)
        destination = self.destination(asset)
        if destination is None:
            return []
        text = render_markdown(self.frontmatter(asset), asset.body, asset.source_file)
        return [OutputFile.text(prefix + destination, text, self.target, asset.identifier)]

    def validate(self, asset: Asset) -> list[Diagnostic]:
        diagnostics: list[Diagnostic] = []
        if not asset.body.strip():
            diagnostics.append(Diagnostic("warning", f"Asset '{asset.identifier}' has an empty body"))
        if asset.kind is AssetKind.SKILL and not _SKILL_NAME.match(asset.identifier):
            diagnostics.append(
                Diagnostic(
                    "error",
                    f"Skill '{asset.identifier}' must use lowercase letters, digits and hyphens for {self.target.value}",
                )
            )
        return diagnostics

    def _compile_skill(self, asset: Asset, root: str) -> list[OutputFile]:
        entry = render_markdown(self.frontmatter(asset), asset.body, asset.source_file)
        outputs = [OutputFile.text(f"{root}/{SKILL_ENTRY}", entry, self.target, asset.identifier, skill_root=root)]
        for relative in sorted(asset.supplementals):
            content = asset.supplementals[relative]
            path = f"{root}/{relative}"
            if isinstance(content, bytes):
                outputs.append(OutputFile(path, content, self.target, asset.identifier, is_binary=True, skill_root=root))
            else:
                outputs.append(OutputFile.text(path, content, self.target, asset.identifier, skill_root=root))
        return outputs
