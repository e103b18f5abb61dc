from __future__ import annotations

import os
from pathlib import Path

import pytest

from lib_layered_prompts.adapters.layer_loader.filesystem import FileSystemLayerLoader
from lib_layered_prompts.application.resolver import resolve_layer_path
from lib_layered_prompts.domain.errors import DuplicateAssetId, InvalidFormat, LayerPermissionDenied
from lib_layered_prompts.domain.models import AssetKind, Layer, LayerKind, Scope, Target
from tests.support import asset_text


def _load(root: Path):
    layer = Layer("project", resolve_layer_path(root), LayerKind.PROJECT)
    return {asset.identifier: asset for asset in FileSystemLayerLoader().load(layer).assets}


def _write(root: Path, relative: str, content: str | bytes) -> None:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")


def test_kind_is_inferred_from_directory(tmp_path: Path) -> None:
    _write(tmp_path, "policies/style.md", asset_text("Style", "Tabs.\n"))
    _write(tmp_path, "actions/review.md", asset_text("Review", "Look.\n"))
    _write(tmp_path, "agents/helper.md", asset_text("Helper", "Help.\n"))
    _write(tmp_path, "loose.md", asset_text("Loose", "Root level.\n"))
    assets = _load(tmp_path)
    assert {name: asset.kind for name, asset in assets.items()} == {
        "style": AssetKind.POLICY,
        "review": AssetKind.ACTION,
        "helper": AssetKind.AGENT,
        "loose": AssetKind.POLICY,
    }
    assert assets["review"].source_file == "actions/review.md"
    assert assets["review"].body == "Look.\n"


def test_frontmatter_fields_are_read(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "notes/deploy.md",
        asset_text("Deploy", "Ship.\n", kind="action", scope="user", targets=["cursor", "Claude_Code"], apply="src/**"),
    )
    asset = _load(tmp_path)["deploy"]
    assert asset.kind is AssetKind.ACTION
    assert asset.scope is Scope.USER
    assert asset.targets == (Target.CURSOR, Target.CLAUDE_CODE)
    assert asset.apply == "src/**"


def test_targets_all_means_every_target(tmp_path: Path) -> None:
    _write(tmp_path, "style.md", asset_text("Style", "x", targets="all"))
    assert _load(tmp_path)["style"].targets == ()


def test_config_hidden_and_non_markdown_files_are_ignored(tmp_path: Path) -> None:
    _write(tmp_path, "config.toml", "[deploy]\n")
    _write(tmp_path, ".hidden.md", "not even frontmatter")
    _write(tmp_path, ".git/notes.md", "ignored")
    _write(tmp_path, "README.txt", "text")
    _write(tmp_path, "style.md", asset_text("Style", "x"))
    assert set(_load(tmp_path)) == {"style"}


def test_skill_folder_collects_supplementals(tmp_path: Path) -> None:
    _write(tmp_path, "skills/pdf/SKILL.md", asset_text("PDF", "Use scripts.\n", allowed_tools=["Read", "Bash"]))
    _write(tmp_path, "skills/pdf/scripts/fill.py", "print('x')\n")
    _write(tmp_path, "skills/pdf/logo.png", b"\x89PNG\xff")
    skill = _load(tmp_path)["pdf"]
    assert skill.kind is AssetKind.SKILL
    assert skill.source_file == "skills/pdf/SKILL.md"
    assert skill.allowed_tools == ("Read", "Bash")
    assert skill.supplementals == {"scripts/fill.py": "print('x')\n", "logo.png": b"\x89PNG\xff"}


def test_skill_folder_without_entry_is_invalid(tmp_path: Path) -> None:
    _write(tmp_path, "skills/pdf/notes.txt", "x")
    with pytest.raises(InvalidFormat, match="SKILL.md"):
        _load(tmp_path)


def test_skill_kind_outside_skills_directory_is_invalid(tmp_path: Path) -> None:
    _write(tmp_path, "policies/pdf.md", asset_text("PDF", "x", kind="skill"))
    with pytest.raises(InvalidFormat):
        _load(tmp_path)


def test_duplicate_identifier_in_one_layer_is_fatal(tmp_path: Path) -> None:
    _write(tmp_path, "policies/style.md", asset_text("Style", "a"))
    _write(tmp_path, "actions/style.md", asset_text("Style", "b"))
    with pytest.raises(DuplicateAssetId) as excinfo:
        _load(tmp_path)
    assert "actions/style.md" in str(excinfo.value)
    assert "policies/style.md" in str(excinfo.value)


@pytest.mark.parametrize(
    "content",
    [
        "no frontmatter",
        "---\nkind: policy\n---\nno description",
        "---\ndescription: x\ntargets: [emacs]\n---\n",
        "---\ndescription: x\nscope: galaxy\n---\n",
    ],
)
def test_malformed_assets_are_invalid_format(tmp_path: Path, content: str) -> None:
    _write(tmp_path, "policies/bad.md", content)
    with pytest.raises(InvalidFormat):
        _load(tmp_path)


@pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="permission bits are not enforced")
def test_unreadable_directory_is_permission_denied(tmp_path: Path) -> None:
    locked = tmp_path / "policies"
    _write(tmp_path, "policies/style.md", asset_text("Style", "x"))
    locked.chmod(0)
    try:
        with pytest.raises(LayerPermissionDenied):
            _load(tmp_path)
    finally:
        locked.chmod(0o755)
