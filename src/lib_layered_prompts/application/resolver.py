"""Resolve the ordered layer stack from configured candidate directories.

Purpose
-------
Turn plain layer settings into an ordered list of :class:`Layer` objects
(lowest priority first) without loading any assets.

Contents
--------
* :class:`LayerResolution` – layers plus accumulated warnings.
* :class:`LayerResolver` – applies the user → additional → project order.
* :func:`resolve_layer_path` – symlink walk with an explicit visited set.
* :func:`expand_home` – ``~`` expansion against an injected home directory.

System Role
-----------
First stage of the deploy pipeline. A missing user layer is skipped silently,
a missing additional or project layer becomes a warning, and an empty stack is
fatal.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from ..domain.errors import CircularSymlink, InvalidLayerPath, LayerPermissionDenied, NoLayersFound
from ..domain.models import Layer, LayerKind, LayerPath
from ..observability import log_debug, log_warning, make_event


@dataclass(slots=True)
class LayerResolution:
    layers: list[Layer] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class _Missing(Exception):
    """Internal signal: the candidate path does not exist."""


@dataclass(slots=True)
class LayerResolver:
    """Collect existing layer directories in priority order.

    Parameters
    ----------
    project_layer:
        Directory of the project layer (usually ``<root>/.promptpack``).
    user_layer:
        Optional user-wide layer; its absence is expected.
    additional:
        Extra layers between user and project, in configured order.
    remote_mode:
        Only the project layer participates (remote deploys cannot see local
        user or team layers).
    """

    project_layer: Path
    user_layer: Path | None = None
    additional: Sequence[Path] = ()
    use_user_layer: bool = True
    use_additional: bool = True
    use_project_layer: bool = True
    remote_mode: bool = False
    home: Path | None = None

    def resolve(self) -> LayerResolution:
        """Return the ordered stack or raise :class:`NoLayersFound`.

        Examples
        --------
        >>> import tempfile
        >>> root = Path(tempfile.mkdtemp())
        >>> (root / ".promptpack").mkdir()
        >>> resolution = LayerResolver(project_layer=root / ".promptpack").resolve()
        >>> [layer.name for layer in resolution.layers]
        ['project']
        """

        resolution = LayerResolution()
        if self.remote_mode:
            self._add(resolution, "project", self.project_layer, LayerKind.PROJECT)
        else:
            if self.use_user_layer and self.user_layer is not None:
                self._add(resolution, "user", expand_home(self.user_layer, self.home), LayerKind.USER)
            if self.use_additional:
                for index, candidate in enumerate(self.additional):
                    self._add(resolution, f"custom-{index}", expand_home(candidate, self.home), LayerKind.CUSTOM)
            if self.use_project_layer:
                self._add(resolution, "project", self.project_layer, LayerKind.PROJECT)

        if not resolution.layers:
            raise NoLayersFound()
        return resolution

    def _add(self, resolution: LayerResolution, name: str, path: Path, kind: LayerKind) -> None:
        try:
            layer_path = resolve_layer_path(path)
        except _Missing:
            if kind is LayerKind.USER:
                log_debug("layer_skipped", **make_event(name, str(path), {"reason": "missing"}))
                return
            label = "Additional layer not found" if kind is LayerKind.CUSTOM else "Project layer not found"
            message = f"{label}: {path}"
            resolution.warnings.append(message)
            log_warning("layer_missing", **make_event(name, str(path)))
            return
        resolution.layers.append(Layer(name=name, path=layer_path, kind=kind))
        log_debug("layer_resolved", **make_event(name, str(layer_path.resolved), {"kind": kind.value}))


def resolve_layer_path(path: Path) -> LayerPath:
    """Follow symlinks from *path* one hop at a time and canonicalise the result.

    Raises :class:`CircularSymlink` on the first revisited link,
    :class:`InvalidLayerPath` when the target is not a directory, and
    :class:`LayerPermissionDenied` when it cannot be listed.
    """

    seen: set[Path] = set()
    current = Path(os.path.normpath(path))
    while True:
        try:
            is_link = current.is_symlink()
            if not is_link:
                os.lstat(current)
        except FileNotFoundError as exc:
            raise _Missing(str(current)) from exc
        except PermissionError as exc:
            raise LayerPermissionDenied(path) from exc
        if not is_link:
            break
        if current in seen:
            raise CircularSymlink(path)
        seen.add(current)
        target = Path(os.readlink(current))
        current = Path(os.path.normpath(target if target.is_absolute() else current.parent / target))

    resolved = current.resolve()
    if not resolved.is_dir():
        raise InvalidLayerPath(path)
    if not os.access(resolved, os.R_OK | os.X_OK):
        raise LayerPermissionDenied(path)
    return LayerPath(declared=path, resolved=resolved)


def expand_home(path: Path, home: Path | None = None) -> Path:
    """Expand a leading ``~`` using *home* (falls back to :meth:`Path.expanduser`).

    Examples
    --------
    >>> expand_home(Path("~/team"), Path("/h")).as_posix()
    '/h/team'
    >>> expand_home(Path("/abs"), Path("/h")).as_posix()
    '/abs'
    """

    text = path.as_posix()
    if home is None:
        return path.expanduser()
    if text == "~":
        return home
    if text.startswith("~/"):
        return home / text[2:]
    return path
