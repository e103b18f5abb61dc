"""Resolved settings consumed by the CLI and the composition root.

The deploy pipeline never reads files or environment variables itself; it
receives the plain values captured here. ``origins`` keeps the dotted-key
provenance produced by :func:`lib_layered_prompts.application.settings.merge_sources`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Mapping

from .models import Target

DEFAULT_PROJECT_LAYER: Final[str] = ".promptpack"
DEFAULT_TARGETS: Final[tuple[Target, ...]] = (Target.CLAUDE_CODE, Target.CURSOR, Target.CODEX)

DEFAULTS: Final[Mapping[str, Mapping[str, Any]]] = {
    "layers": {
        "user_layer": None,
        "additional": [],
        "use_user_layer": True,
        "use_additional": True,
        "use_project_layer": True,
        "project_layer": DEFAULT_PROJECT_LAYER,
    },
    "deploy": {
        "targets": [target.value for target in DEFAULT_TARGETS],
        "clean_orphans": False,
    },
    "registry": {"path": None, "lock_timeout": 5.0},
    "watch": {"debounce": 0.3, "poll_interval": 0.25},
}


@dataclass(frozen=True, slots=True)
class LayerSettings:
    """Which layer directories participate, before existence checks."""

    user_layer: Path | None = None
    additional: tuple[Path, ...] = ()
    use_user_layer: bool = True
    use_additional: bool = True
    use_project_layer: bool = True
    project_layer: str = DEFAULT_PROJECT_LAYER


@dataclass(frozen=True, slots=True)
class Settings:
    layers: LayerSettings = field(default_factory=LayerSettings)
    targets: tuple[Target, ...] = DEFAULT_TARGETS
    clean_orphans: bool = False
    registry_path: Path | None = None
    lock_timeout: float = 5.0
    debounce: float = 0.3
    poll_interval: float = 0.25
    origins: Mapping[str, Mapping[str, object]] = field(default_factory=dict)

    def origin(self, dotted_key: str) -> Mapping[str, object] | None:
        """Return ``{"layer", "path", "key"}`` for *dotted_key* when a source set it."""

        return self.origins.get(dotted_key)
