"""Domain value objects for layers, assets, and compiled outputs.

Purpose
-------
Anchor the immutable shapes that flow through the pipeline: a :class:`Layer`
owns :class:`Asset` instances, the merge step turns them into
:class:`MergedAsset` winners, and target adapters turn winners into
:class:`OutputFile` instances. No I/O happens here.

Contents
--------
* :class:`LayerKind`, :class:`AssetKind`, :class:`Scope`, :class:`Target` –
  closed vocabularies.
* :class:`LayerPath` / :class:`Layer` – a prioritised source directory.
* :class:`Asset` – one prompt asset; only skills carry supplemental files.
* :class:`MergedAsset` / :class:`OverrideInfo` – merge results.
* :class:`OutputFile` / :class:`Diagnostic` – adapter results.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal, Mapping

from .errors import ConfigurationError


class LayerKind(str, Enum):
    """Priority class of a layer, lowest first."""

    USER = "user"
    CUSTOM = "custom"
    PROJECT = "project"


class AssetKind(str, Enum):
    POLICY = "policy"
    ACTION = "action"
    AGENT = "agent"
    SKILL = "skill"


class Scope(str, Enum):
    """Where an output lands: the project tree or the user's home directory."""

    PROJECT = "project"
    USER = "user"


class Target(str, Enum):
    """Supported platform identifiers."""

    CLAUDE_CODE = "claude-code"
    CURSOR = "cursor"
    VSCODE = "vscode"
    ANTIGRAVITY = "antigravity"
    CODEX = "codex"
    OPENCODE = "opencode"

    @classmethod
    def parse(cls, value: str) -> Target:
        """Return the target for *value* (case-insensitive, ``_`` tolerated).

        Examples
        --------
        >>> Target.parse("Claude_Code")
        <Target.CLAUDE_CODE: 'claude-code'>
        """

        normalized = value.strip().lower().replace("_", "-")
        try:
            return cls(normalized)
        except ValueError as exc:
            choices = ", ".join(item.value for item in cls)
            raise ConfigurationError(f"Unknown target '{value}'", remedy=f"Use one of: {choices}") from exc


ALL_TARGETS: tuple[Target, ...] = tuple(Target)


@dataclass(frozen=True, slots=True)
class LayerPath:
    """Declared path plus its symlink-canonicalised form (kept for diagnostics)."""

    declared: Path
    resolved: Path


@dataclass(frozen=True, slots=True)
class Asset:
    """One logical prompt asset loaded from a layer.

    Attributes
    ----------
    identifier:
        Stable id (file stem, or folder name for skills).
    source_file:
        POSIX path of the defining file relative to the layer root.
    targets:
        Explicit target subset; empty means every target.
    supplementals:
        Relative path to text (``str``) or opaque binary (``bytes``) content.
        Non-empty only for skills.
    """

    identifier: str
    kind: AssetKind
    description: str
    body: str
    source_file: str
    scope: Scope = Scope.PROJECT
    targets: tuple[Target, ...] = ()
    apply: str | None = None
    supplementals: Mapping[str, str | bytes] = field(default_factory=dict)
    allowed_tools: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.supplementals and self.kind is not AssetKind.SKILL:
            raise ValueError(f"Only skills may carry supplemental files (asset '{self.identifier}')")

    def effective_targets(self) -> tuple[Target, ...]:
        return self.targets or ALL_TARGETS

    def with_scope(self, scope: Scope) -> Asset:
        return dataclasses.replace(self, scope=scope)


@dataclass(frozen=True, slots=True)
class Layer:
    """A prioritised source directory and the assets it contributes."""

    name: str
    path: LayerPath
    kind: LayerKind
    assets: tuple[Asset, ...] = ()

    def with_assets(self, assets: tuple[Asset, ...]) -> Layer:
        return dataclasses.replace(self, assets=tuple(assets))


@dataclass(frozen=True, slots=True)
class MergedAsset:
    """The winning contribution for one identifier across the layer stack."""

    asset: Asset
    layer_name: str
    layer_path: Path
    overrides: str | None = None

    @property
    def identifier(self) -> str:
        return self.asset.identifier

    @property
    def source_file(self) -> Path:
        return self.layer_path / self.asset.source_file


@dataclass(frozen=True, slots=True)
class OverrideInfo:
    """Record of a higher-priority layer replacing an earlier contribution."""

    identifier: str
    from_layer: str
    by_layer: str


@dataclass(frozen=True, slots=True)
class OutputFile:
    """One compiled file for one asset and one target.

    ``path`` is a POSIX path relative to the project root, or ``~/``-prefixed for
    user-scope outputs. ``skill_root`` is set on every file of a skill folder so
    the write step can treat the folder as one unit.
    """

    path: str
    content: bytes
    target: Target
    asset_id: str
    is_binary: bool = False
    skill_root: str | None = None

    @classmethod
    def text(
        cls,
        path: str,
        text: str,
        target: Target,
        asset_id: str,
        *,
        skill_root: str | None = None,
    ) -> OutputFile:
        return cls(path, text.encode("utf-8"), target, asset_id, skill_root=skill_root)


@dataclass(frozen=True, slots=True)
class Diagnostic:
    severity: Literal["warning", "error"]
    message: str
