"""Load the assets of one layer directory from the local file system.

Purpose
-------
Implement :class:`lib_layered_prompts.application.ports.LayerLoader` for
directories laid out as::

    .promptpack/
        config.toml              settings, not an asset
        policies/style.md        kind inferred from the directory
        actions/review.md
        agents/reviewer.md
        skills/<id>/SKILL.md     one skill per folder
        skills/<id>/...          supplemental files

System Role
-----------
Second pipeline stage. Identifier collisions, unreadable directories, and
malformed frontmatter abort the run before any write happens.
"""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath
from typing import Mapping

from ...domain.errors import ConfigurationError, DuplicateAssetId, InvalidFormat, LayerPermissionDenied
from ...domain.models import Asset, AssetKind, Layer, Scope, Target
from ...observability import log_debug, log_info, make_event
from ..file_loaders.frontmatter import split_frontmatter

SKILLS_DIR = "skills"
SKILL_ENTRY = "SKILL.md"
SETTINGS_FILE = "config.toml"

_KIND_BY_DIRECTORY: Mapping[str, AssetKind] = {
    "policies": AssetKind.POLICY,
    "actions": AssetKind.ACTION,
    "agents": AssetKind.AGENT,
}


class FileSystemLayerLoader:
    """Populate a resolved :class:`Layer` with the assets found on disk."""

    def load(self, layer: Layer) -> Layer:
        root = layer.path.resolved
        seen: dict[str, str] = {}
        assets: list[Asset] = []
        try:
            for relative in _walk(root):
                parts = PurePosixPath(relative).parts
                if parts[0] == SKILLS_DIR:
                    continue
                if relative == SETTINGS_FILE or not relative.endswith(".md"):
                    log_debug("layer_file_ignored", **make_event(layer.name, relative))
                    continue
                asset = _load_document(root, relative)
                _claim(seen, layer.name, asset)
                assets.append(asset)
            for skill in _load_skills(root):
                _claim(seen, layer.name, skill)
                assets.append(skill)
        except PermissionError as exc:
            raise LayerPermissionDenied(layer.path.declared) from exc

        log_info("layer_loaded", **make_event(layer.name, str(root), {"assets": len(assets)}))
        return layer.with_assets(tuple(assets))


def _claim(seen: dict[str, str], layer_name: str, asset: Asset) -> None:
    first = seen.get(asset.identifier)
    if first is not None:
        raise DuplicateAssetId(layer_name, asset.identifier, first, asset.source_file)
    seen[asset.identifier] = asset.source_file


def _walk(root: Path) -> list[str]:
    """Return non-hidden file paths below *root* as sorted POSIX strings."""

    found: list[str] = []

    def _raise(error: OSError) -> None:
        raise error

    for current, dirnames, filenames in os.walk(root, onerror=_raise, followlinks=True):
        dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
        base = Path(current).relative_to(root)
        for name in filenames:
            if name.startswith("."):
                continue
            found.append((base / name).as_posix())
    return sorted(found)


def _load_document(root: Path, relative: str) -> Asset:
    text = _read_text(root / relative, relative)
    meta, body = split_frontmatter(text, path=relative)
    path = PurePosixPath(relative)
    kind = _kind(meta, path, relative)
    return Asset(
        identifier=path.stem,
        kind=kind,
        description=_description(meta, relative),
        body=body,
        source_file=relative,
        scope=_scope(meta, relative),
        targets=_targets(meta, relative),
        apply=_optional_str(meta, "apply", relative),
    )


def _load_skills(root: Path) -> list[Asset]:
    skills_root = root / SKILLS_DIR
    if not skills_root.is_dir():
        return []
    skills: list[Asset] = []
    for folder in sorted(skills_root.iterdir()):
        if folder.name.startswith(".") or not folder.is_dir():
            continue
        entry = folder / SKILL_ENTRY
        relative_entry = f"{SKILLS_DIR}/{folder.name}/{SKILL_ENTRY}"
        if not entry.is_file():
            raise InvalidFormat(
                f"Skill folder {SKILLS_DIR}/{folder.name} has no {SKILL_ENTRY}",
                remedy=f"Add {SKILL_ENTRY} with a description or remove the folder.",
            )
        meta, body = split_frontmatter(_read_text(entry, relative_entry), path=relative_entry)
        supplementals: dict[str, str | bytes] = {}
        for relative in _walk(folder):
            if relative == SKILL_ENTRY:
                continue
            raw = (folder / relative).read_bytes()
            try:
                supplementals[relative] = raw.decode("utf-8")
            except UnicodeDecodeError:
                supplementals[relative] = raw
        skills.append(
            Asset(
                identifier=folder.name,
                kind=AssetKind.SKILL,
                description=_description(meta, relative_entry),
                body=body,
                source_file=relative_entry,
                scope=_scope(meta, relative_entry),
                targets=_targets(meta, relative_entry),
                supplementals=supplementals,
                allowed_tools=_allowed_tools(meta, relative_entry),
            )
        )
    return skills


def _read_text(path: Path, relative: str) -> str:
    try:
        return path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidFormat(f"Asset {relative} is not valid UTF-8") from exc


def _description(meta: Mapping[str, object], relative: str) -> str:
    value = meta.get("description")
    if not isinstance(value, str) or not value.strip():
        raise InvalidFormat(
            f"Asset {relative} has no description",
            remedy="Add a `description:` line to the frontmatter.",
        )
    return value.strip()


def _kind(meta: Mapping[str, object], path: PurePosixPath, relative: str) -> AssetKind:
    value = meta.get("kind")
    if value is None:
        return _KIND_BY_DIRECTORY.get(path.parts[0], AssetKind.POLICY) if len(path.parts) > 1 else AssetKind.POLICY
    try:
        kind = AssetKind(str(value).lower())
    except ValueError as exc:
        raise InvalidFormat(f"Asset {relative} has unknown kind '{value}'") from exc
    if kind is AssetKind.SKILL:
        raise InvalidFormat(
            f"Asset {relative} declares kind 'skill' outside the skills directory",
            remedy=f"Move it to {SKILLS_DIR}/<id>/{SKILL_ENTRY}.",
        )
    return kind


def _scope(meta: Mapping[str, object], relative: str) -> Scope:
    value = meta.get("scope", Scope.PROJECT.value)
    try:
        return Scope(str(value).lower())
    except ValueError as exc:
        raise InvalidFormat(f"Asset {relative} has unknown scope '{value}'") from exc


def _targets(meta: Mapping[str, object], relative: str) -> tuple[Target, ...]:
    value = meta.get("targets")
    if value is None or value == "all":
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise InvalidFormat(f"Asset {relative} has a `targets` value that is not a list")
    if "all" in value:
        return ()
    try:
        return tuple(dict.fromkeys(Target.parse(str(item)) for item in value))
    except ConfigurationError as exc:
        raise InvalidFormat(f"Asset {relative}: {exc.message}", remedy=exc.remedy) from exc


def _allowed_tools(meta: Mapping[str, object], relative: str) -> tuple[str, ...]:
    value = meta.get("allowed-tools", meta.get("allowed_tools"))
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(",") if item.strip())
    if not isinstance(value, list):
        raise InvalidFormat(f"Skill {relative} has an `allowed-tools` value that is not a list")
    return tuple(str(item) for item in value)


def _optional_str(meta: Mapping[str, object], key: str, relative: str) -> str | None:
    value = meta.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidFormat(f"Asset {relative} has a non-string `{key}` value")
    return value
