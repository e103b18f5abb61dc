"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by adapters, the deploy pipeline, and
the CLI. The hierarchy lives in the domain layer to respect the Clean
Architecture dependency rule (outer layers may depend on inner layers, not vice
versa).

Contents
--------
* :class:`LayeredPromptsError` – umbrella base class carrying an optional
  remedy so every fatal condition is human-actionable.
* Configuration, layer, format, compile, lockfile, registry, and transport
  families used by the pipeline stages.

System Role
-----------
Fatal conditions are raised as these exceptions and stop the pipeline before any
destructive action. Recoverable conditions (missing optional layers, skipped
conflicts) are never raised; they are collected as warnings on the run result.
Callers catch :class:`LayeredPromptsError` to handle all library failures
uniformly.
"""

from __future__ import annotations

from pathlib import Path


class LayeredPromptsError(Exception):
    """Base type for all exceptions emitted by ``lib_layered_prompts``.

    Why
    ----
    Provide a single catch-all type for consumers and attach a suggested remedy
    so the CLI can print something the operator can act on.
    """

    remedy: str | None = None

    def __init__(self, message: str, *, remedy: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if remedy is not None:
            self.remedy = remedy

    def __str__(self) -> str:
        if self.remedy:
            return f"{self.message}\nHint: {self.remedy}"
        return self.message


class ConfigurationError(LayeredPromptsError):
    """Settings or options are inconsistent (unknown target, wrong value type)."""


class NotFound(LayeredPromptsError):
    """Represents missing-but-optional resources (files, directories, etc.).

    The pipeline treats this as a non-fatal condition; it never escapes a
    deploy run.
    """


class InvalidFormat(LayeredPromptsError):
    """Raised when an input artifact cannot be parsed into structured data.

    Typical Sources
    ---------------
    Asset frontmatter (:mod:`yaml`), settings files, lockfile and registry
    documents (:mod:`tomllib`).
    """


class LayerError(LayeredPromptsError):
    """Base for failures while resolving or loading the layer stack."""


class NoLayersFound(LayerError):
    remedy = "Create a .promptpack directory in the project or configure a user/additional layer."

    def __init__(self) -> None:
        super().__init__("No layers found (no project layer and no other layers available)")


class CircularSymlink(LayerError):
    remedy = "Fix the symlink chain so it ends at a real directory."

    def __init__(self, path: Path) -> None:
        super().__init__(f"Circular symlink detected at {path}")
        self.path = path


class InvalidLayerPath(LayerError):
    remedy = "Point the layer setting at a directory, not a file."

    def __init__(self, path: Path) -> None:
        super().__init__(f"Layer path is not a directory: {path}")
        self.path = path


class LayerPermissionDenied(LayerError):
    remedy = "Check the directory permissions or disable the layer."

    def __init__(self, path: Path) -> None:
        super().__init__(f"Permission denied reading layer: {path}")
        self.path = path


class DuplicateAssetId(LayerError):
    remedy = "Rename one of the files; identifiers must be unique within a layer."

    def __init__(self, layer: str, identifier: str, first: str, second: str) -> None:
        super().__init__(f"Duplicate asset id '{identifier}' in layer '{layer}': {first} and {second}")
        self.layer = layer
        self.identifier = identifier


class CompileError(LayeredPromptsError):
    """Base for failures while compiling merged assets into outputs."""


class NoCompatibleTarget(CompileError):
    def __init__(self, identifier: str, kind: str, targets: list[str]) -> None:
        super().__init__(
            f"Asset '{identifier}' ({kind}) produced no output for any enabled target: {', '.join(targets)}",
            remedy="Enable a target that supports this asset kind or narrow the asset's `targets` list.",
        )
        self.identifier = identifier


class NoOutputsProduced(CompileError):
    remedy = "Add assets to a layer or enable targets that match the assets' `targets` lists."

    def __init__(self) -> None:
        super().__init__("The run produced no outputs to deploy")


class AssetValidationError(CompileError):
    """An adapter reported an error-severity diagnostic for an asset."""


class LockfileError(LayeredPromptsError):
    """Base for lockfile persistence failures."""


class LockfileVersionTooNew(LockfileError):
    remedy = "Upgrade lib_layered_prompts to read this lockfile."

    def __init__(self, path: Path, version: int, supported: int) -> None:
        super().__init__(f"Lockfile {path} has schema version {version}; this release reads up to {supported}")
        self.version = version


class RegistryError(LayeredPromptsError):
    """Base for registry persistence failures."""


class RegistryLockTimeout(RegistryError):
    remedy = "Another process holds the registry lock; retry in a moment."

    def __init__(self, path: Path, timeout: float) -> None:
        super().__init__(f"Could not acquire registry lock {path} within {timeout}s")


class RegistryVersionTooNew(RegistryError):
    remedy = "Upgrade lib_layered_prompts to update this registry."

    def __init__(self, path: Path, version: int, supported: int) -> None:
        super().__init__(f"Registry {path} has schema version {version}; this release reads up to {supported}")
        self.version = version


class TransportError(LayeredPromptsError):
    """A file-system capability failed in a way that aborts the current run."""


class DeployCancelled(LayeredPromptsError):
    """A newer change event superseded this run before it started writing."""

    def __init__(self) -> None:
        super().__init__("Deploy run superseded by a newer change")
