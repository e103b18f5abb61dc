from __future__ import annotations

import os
from pathlib import Path

import pytest

from lib_layered_prompts.application.resolver import LayerResolver, expand_home, resolve_layer_path
from lib_layered_prompts.domain.errors import CircularSymlink, InvalidLayerPath, NoLayersFound
from lib_layered_prompts.domain.models import LayerKind


def _dirs(tmp_path: Path, *names: str) -> list[Path]:
    paths = [tmp_path / name for name in names]
    for path in paths:
        path.mkdir(parents=True)
    return paths


def test_layers_are_ordered_user_custom_project(tmp_path: Path) -> None:
    user, team, extra, project = _dirs(tmp_path, "user", "team", "extra", "project")
    resolution = LayerResolver(project_layer=project, user_layer=user, additional=[team, extra]).resolve()
    assert [layer.name for layer in resolution.layers] == ["user", "custom-0", "custom-1", "project"]
    assert [layer.kind for layer in resolution.layers] == [
        LayerKind.USER,
        LayerKind.CUSTOM,
        LayerKind.CUSTOM,
        LayerKind.PROJECT,
    ]
    assert resolution.warnings == []


def test_missing_user_layer_is_silent(tmp_path: Path) -> None:
    (project,) = _dirs(tmp_path, "project")
    resolution = LayerResolver(project_layer=project, user_layer=tmp_path / "nope").resolve()
    assert [layer.name for layer in resolution.layers] == ["project"]
    assert resolution.warnings == []


def test_missing_additional_layer_warns_and_continues(tmp_path: Path) -> None:
    (project,) = _dirs(tmp_path, "project")
    missing = tmp_path / "team"
    resolution = LayerResolver(project_layer=project, additional=[missing]).resolve()
    assert [layer.name for layer in resolution.layers] == ["project"]
    assert resolution.warnings == [f"Additional layer not found: {missing}"]


def test_missing_project_layer_warns_when_others_exist(tmp_path: Path) -> None:
    (user,) = _dirs(tmp_path, "user")
    resolution = LayerResolver(project_layer=tmp_path / "project", user_layer=user).resolve()
    assert [layer.name for layer in resolution.layers] == ["user"]
    assert resolution.warnings[0].startswith("Project layer not found")


def test_no_layers_at_all_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(NoLayersFound):
        LayerResolver(project_layer=tmp_path / "project", user_layer=tmp_path / "user").resolve()


def test_disabled_layers_are_not_consulted(tmp_path: Path) -> None:
    user, team, project = _dirs(tmp_path, "user", "team", "project")
    resolution = LayerResolver(
        project_layer=project,
        user_layer=user,
        additional=[team],
        use_user_layer=False,
        use_additional=False,
    ).resolve()
    assert [layer.name for layer in resolution.layers] == ["project"]


def test_remote_mode_uses_only_project_layer(tmp_path: Path) -> None:
    user, team, project = _dirs(tmp_path, "user", "team", "project")
    resolution = LayerResolver(project_layer=project, user_layer=user, additional=[team], remote_mode=True).resolve()
    assert [layer.name for layer in resolution.layers] == ["project"]


def test_file_instead_of_directory_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "layer"
    path.write_text("x", encoding="utf-8")
    with pytest.raises(InvalidLayerPath):
        resolve_layer_path(path)


def test_symlink_cycle_is_detected(tmp_path: Path) -> None:
    first = tmp_path / "a"
    second = tmp_path / "b"
    os.symlink(second, first)
    os.symlink(first, second)
    with pytest.raises(CircularSymlink):
        LayerResolver(project_layer=first).resolve()


def test_self_referencing_relative_symlink_is_detected(tmp_path: Path) -> None:
    loop = tmp_path / "loop"
    os.symlink("loop", loop)
    with pytest.raises(CircularSymlink):
        resolve_layer_path(loop)


def test_symlinked_layer_keeps_declared_path(tmp_path: Path) -> None:
    (real,) = _dirs(tmp_path, "real")
    link = tmp_path / "link"
    os.symlink(real, link)
    layer_path = resolve_layer_path(link)
    assert layer_path.declared == link
    assert layer_path.resolved == real.resolve()


def test_additional_layers_expand_home(tmp_path: Path) -> None:
    home = tmp_path / "home"
    _dirs(tmp_path, "home/team", "project")
    resolution = LayerResolver(
        project_layer=tmp_path / "project",
        additional=[Path("~/team")],
        home=home,
    ).resolve()
    assert resolution.layers[0].path.resolved == (home / "team").resolve()
    assert expand_home(Path("~"), home) == home
