"""Public package surface for ``lib_layered_prompts``.

Re-exports the composition-root helpers, the option and result types, and the
error family so callers can write ``from lib_layered_prompts import deploy``
without reaching into the layered subpackages.
"""

from __future__ import annotations

from .application.deploy import DeployOptions, DeployResult, Stage
from .application.ports import CancelToken, TargetAdapter
from .core import (
    LayerStack,
    clean,
    default_adapters,
    deploy,
    load_layer_stack,
    load_settings,
    options_from_settings,
    provenance,
    watch,
)
from .domain.errors import (
    AssetValidationError,
    CircularSymlink,
    CompileError,
    ConfigurationError,
    DeployCancelled,
    DuplicateAssetId,
    InvalidFormat,
    InvalidLayerPath,
    LayeredPromptsError,
    LayerError,
    LayerPermissionDenied,
    LockfileError,
    LockfileVersionTooNew,
    NoCompatibleTarget,
    NoLayersFound,
    NoOutputsProduced,
    NotFound,
    RegistryError,
    RegistryLockTimeout,
    RegistryVersionTooNew,
    TransportError,
)
from .domain.models import Asset, AssetKind, OutputFile, Scope, Target
from .observability import bind_trace_id, get_logger

__all__ = [
    "Asset",
    "AssetKind",
    "AssetValidationError",
    "CancelToken",
    "CircularSymlink",
    "CompileError",
    "ConfigurationError",
    "DeployCancelled",
    "DeployOptions",
    "DeployResult",
    "DuplicateAssetId",
    "InvalidFormat",
    "InvalidLayerPath",
    "LayerError",
    "LayerPermissionDenied",
    "LayerStack",
    "LayeredPromptsError",
    "LockfileError",
    "LockfileVersionTooNew",
    "NoCompatibleTarget",
    "NoLayersFound",
    "NoOutputsProduced",
    "NotFound",
    "OutputFile",
    "RegistryError",
    "RegistryLockTimeout",
    "RegistryVersionTooNew",
    "Scope",
    "Stage",
    "Target",
    "TargetAdapter",
    "TransportError",
    "bind_trace_id",
    "clean",
    "default_adapters",
    "deploy",
    "get_logger",
    "load_layer_stack",
    "load_settings",
    "options_from_settings",
    "provenance",
    "watch",
]
