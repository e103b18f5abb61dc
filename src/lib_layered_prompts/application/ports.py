"""Application-layer ports describing adapter responsibilities.

Purpose
-------
Define the structural contracts that adapters must satisfy so the deploy
pipeline can orchestrate behaviour without depending on concrete
implementations.

Contents
--------
* :class:`TargetAdapter` – compiles merged assets into platform files.
* :class:`Prompter` – answers conflict questions.
* :class:`FileSystem` – local disk or remote transport.
* :class:`LayerLoader` – reads the assets of one layer directory.
* :class:`LockfileRepository` / :class:`RegistryRepository` – persistence.
* :class:`CancelToken` – cooperative cancellation checked before writes.

System Role
-----------
These protocols enforce Dependency Inversion (DIP). Each adapter implements one
protocol so the application layer can request behaviour via abstraction.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from ..domain.lockfile import Lockfile, OutputKey
from ..domain.models import Asset, Diagnostic, Layer, MergedAsset, OutputFile, Target
from ..domain.registry import ProjectEntry, Registry


class TargetAdapter(Protocol):
    """Compile merged assets for one platform.

    Why
    ----
    The orchestrator only knows this interface; adding a platform means adding an
    adapter, never touching the pipeline.

    Returning an empty list means "this platform has no place for this kind" and
    is not an error.

    ``compile`` also returns binary files: a skill's non-text supplementals come
    back as ``OutputFile(is_binary=True)`` entries in the same list, so there is
    no separate binary compile step.
    """

    target: Target

    def compile(self, merged: MergedAsset) -> list[OutputFile]:
        """Return the output files for *merged* (possibly none)."""

    def validate(self, asset: Asset) -> list[Diagnostic]:
        """Return diagnostics; ``error`` severity aborts the run."""


class ConflictChoice(str, Enum):
    OVERWRITE = "overwrite"
    KEEP = "keep"
    SHOW_DIFF = "diff"
    OVERWRITE_ALL = "overwrite-all"
    KEEP_ALL = "keep-all"


@dataclass(frozen=True, slots=True)
class Conflict:
    """Data shown to the operator for one conflicting write."""

    key: OutputKey
    reason: str
    existing: bytes
    incoming: bytes
    is_binary: bool = False


class Prompter(Protocol):
    def ask(self, conflict: Conflict) -> ConflictChoice:
        """Return the operator's choice for *conflict*."""

    def show_diff(self, conflict: Conflict, diff: str) -> None:
        """Present *diff* before the question is asked again."""


class FileSystem(Protocol):
    """File capability abstracting local disk versus remote transport.

    Paths are project-relative POSIX strings or ``~/``-prefixed home paths.
    Implementations raise :class:`OSError` for per-file failures and
    :class:`~lib_layered_prompts.domain.errors.TransportError` for failures of
    the transport itself.
    """

    def exists(self, path: str) -> bool: ...

    def read(self, path: str) -> bytes: ...

    def write(self, path: str, content: str) -> None: ...

    def write_binary(self, path: str, content: bytes) -> None: ...

    def remove(self, path: str) -> None: ...

    def remove_tree(self, path: str) -> None: ...

    def list_files(self, path: str) -> list[str]:
        """Return file paths below directory *path*, relative to it, sorted."""


class LayerLoader(Protocol):
    def load(self, layer: Layer) -> Layer:
        """Return *layer* with its assets populated."""


class LockfileRepository(Protocol):
    def load(self, path: Path) -> Lockfile: ...

    def save(self, lockfile: Lockfile, path: Path) -> None: ...


class RegistryRepository(Protocol):
    def load(self) -> Registry: ...

    def upsert(self, entry: ProjectEntry) -> None: ...

    def remove(self, project_path: str) -> bool: ...

    def prune(self) -> list[str]: ...


class CancelToken:
    """Thread-safe flag set when a newer change supersedes a run."""

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
