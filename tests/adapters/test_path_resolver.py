"""Path resolver tests for the per-platform user config locations."""

from __future__ import annotations

from pathlib import Path

from lib_layered_prompts.adapters.path_resolvers.default import DefaultPathResolver


def test_linux_uses_xdg_config_home(tmp_path: Path) -> None:
    resolver = DefaultPathResolver(env={"XDG_CONFIG_HOME": str(tmp_path / "xdg"), "LIB_LAYERED_PROMPTS_CONFIG_DIR": ""}, platform="linux")
    assert resolver.user_config_dir() == tmp_path / "xdg" / "lib-layered-prompts"
    assert resolver.user_layer() == tmp_path / "xdg" / "lib-layered-prompts" / ".promptpack"
    assert resolver.user_settings().name == "config.toml"
    assert resolver.global_lockfile().name == "layered-prompts.lock"


def test_linux_falls_back_to_dot_config(tmp_path: Path) -> None:
    env = {"LIB_LAYERED_PROMPTS_HOME": str(tmp_path), "XDG_CONFIG_HOME": "", "LIB_LAYERED_PROMPTS_CONFIG_DIR": ""}
    resolver = DefaultPathResolver(env=env, platform="linux")
    assert resolver.home_dir() == tmp_path
    assert resolver.registry_file() == tmp_path / ".config" / "lib-layered-prompts" / "registry.toml"


def test_macos_uses_application_support(tmp_path: Path) -> None:
    env = {"LIB_LAYERED_PROMPTS_HOME": str(tmp_path), "LIB_LAYERED_PROMPTS_CONFIG_DIR": "", "LIB_LAYERED_PROMPTS_MAC_HOME_ROOT": ""}
    resolver = DefaultPathResolver(vendor="Acme", app="Prompts", env=env, platform="darwin")
    assert resolver.user_config_dir() == tmp_path / "Library" / "Application Support" / "Acme" / "Prompts"


def test_windows_uses_appdata_override(tmp_path: Path) -> None:
    env = {"LIB_LAYERED_PROMPTS_APPDATA": str(tmp_path / "roaming"), "LIB_LAYERED_PROMPTS_CONFIG_DIR": ""}
    resolver = DefaultPathResolver(vendor="Acme", app="Prompts", env=env, platform="win32")
    assert resolver.user_config_dir() == tmp_path / "roaming" / "Acme" / "Prompts"


def test_config_dir_override_wins_everywhere(tmp_path: Path) -> None:
    for platform in ("linux", "darwin", "win32"):
        resolver = DefaultPathResolver(env={"LIB_LAYERED_PROMPTS_CONFIG_DIR": str(tmp_path)}, platform=platform)
        assert resolver.user_config_dir() == tmp_path
