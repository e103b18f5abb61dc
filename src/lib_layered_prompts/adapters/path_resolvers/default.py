"""Filesystem path resolution for per-user state.

Purpose
-------
Encapsulate OS-specific rules for where the user layer, user settings, the
registry, and the home-scope lockfile live. This adapter is the only component
that understands platform directory conventions.

Contents
--------
* :class:`DefaultPathResolver` – resolves the user config directory and the
  files beneath it.

System Role
-----------
Feeds paths into :mod:`lib_layered_prompts.core`. Environment overrides keep
tests and portable installs deterministic:

* ``LIB_LAYERED_PROMPTS_HOME`` – replaces the home directory.
* ``LIB_LAYERED_PROMPTS_CONFIG_DIR`` – replaces the whole user config directory.
* ``LIB_LAYERED_PROMPTS_MAC_HOME_ROOT`` / ``LIB_LAYERED_PROMPTS_APPDATA`` –
  replace the platform roots on macOS and Windows.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Mapping

from ...observability import log_debug

SLUG = "lib-layered-prompts"
VENDOR = "bitranox"
APP = "LayeredPrompts"


class DefaultPathResolver:
    """Resolve user-scope locations for the current platform.

    Examples
    --------
    >>> resolver = DefaultPathResolver(env={"LIB_LAYERED_PROMPTS_HOME": "/h", "XDG_CONFIG_HOME": ""}, platform="linux")
    >>> resolver.user_config_dir().as_posix()
    '/h/.config/lib-layered-prompts'
    >>> resolver.registry_file().name
    'registry.toml'
    """

    def __init__(
        self,
        *,
        vendor: str = VENDOR,
        app: str = APP,
        slug: str = SLUG,
        env: Mapping[str, str] | None = None,
        platform: str | None = None,
    ) -> None:
        self.vendor = vendor
        self.application = app
        self.slug = slug
        self.env = {**os.environ, **(env or {})}
        self.platform = platform or sys.platform

    def home_dir(self) -> Path:
        override = self.env.get("LIB_LAYERED_PROMPTS_HOME")
        return Path(override) if override else Path.home()

    def user_config_dir(self) -> Path:
        override = self.env.get("LIB_LAYERED_PROMPTS_CONFIG_DIR")
        if override:
            base = Path(override)
        elif self.platform == "darwin":
            default_root = self.home_dir() / "Library" / "Application Support"
            base = Path(self.env.get("LIB_LAYERED_PROMPTS_MAC_HOME_ROOT") or default_root) / self.vendor / self.application
        elif self.platform.startswith("win"):
            default_root = self.env.get("APPDATA") or self.home_dir() / "AppData" / "Roaming"
            base = Path(self.env.get("LIB_LAYERED_PROMPTS_APPDATA") or default_root) / self.vendor / self.application
        else:
            xdg = self.env.get("XDG_CONFIG_HOME")
            base = (Path(xdg) if xdg else self.home_dir() / ".config") / self.slug
        log_debug("path_resolved", layer="user", path=str(base), platform=self.platform)
        return base

    def user_layer(self) -> Path:
        return self.user_config_dir() / ".promptpack"

    def user_settings(self) -> Path:
        return self.user_config_dir() / "config.toml"

    def registry_file(self) -> Path:
        return self.user_config_dir() / "registry.toml"

    def global_lockfile(self) -> Path:
        return self.user_config_dir() / "layered-prompts.lock"
