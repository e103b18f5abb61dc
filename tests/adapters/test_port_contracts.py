"""Adapter contract tests for the default port implementations.

Verify the shipped adapters still expose every operation the application-layer
ports in ``lib_layered_prompts.application.ports`` declare, so dependency
inversion stays enforceable.
"""

from __future__ import annotations

import inspect
from pathlib import Path

import pytest

from lib_layered_prompts import core
from lib_layered_prompts.adapters.fs.local import LocalFileSystem
from lib_layered_prompts.adapters.layer_loader.filesystem import FileSystemLayerLoader
from lib_layered_prompts.adapters.lockfile.toml import TomlLockfileRepository
from lib_layered_prompts.adapters.prompter.terminal import TerminalPrompter
from lib_layered_prompts.adapters.registry.toml import TomlRegistryRepository
from lib_layered_prompts.application import ports
from lib_layered_prompts.domain.models import Asset, AssetKind, MergedAsset, Target


def _operations(protocol: type) -> set[str]:
    return {name for name, _ in inspect.getmembers(protocol, inspect.isfunction) if not name.startswith("_")}


@pytest.mark.parametrize(
    ("protocol", "factory"),
    [
        (ports.FileSystem, lambda tmp: LocalFileSystem(tmp, tmp)),
        (ports.LayerLoader, lambda tmp: FileSystemLayerLoader()),
        (ports.LockfileRepository, lambda tmp: TomlLockfileRepository()),
        (ports.RegistryRepository, lambda tmp: TomlRegistryRepository(tmp / "registry.toml")),
        (ports.Prompter, lambda tmp: TerminalPrompter()),
    ],
)
def test_adapter_implements_port(protocol: type, factory, tmp_path: Path) -> None:
    adapter = factory(tmp_path)
    missing = [name for name in _operations(protocol) if not callable(getattr(adapter, name, None))]
    assert missing == []


def test_default_target_adapters_are_keyed_by_their_target() -> None:
    adapters = core.default_adapters()
    operations = _operations(ports.TargetAdapter)
    for target, adapter in adapters.items():
        assert adapter.target is target
        assert all(callable(getattr(adapter, name)) for name in operations)


def test_binary_skill_files_come_back_through_compile() -> None:
    asset = Asset("pdf", AssetKind.SKILL, "Fill PDFs", "Fill it.\n", "skills/pdf/SKILL.md", supplementals={"logo.png": b"\x89PNG"})
    merged = MergedAsset(asset, "project", Path("/p/.promptpack"))
    for target, adapter in core.default_adapters().items():
        binaries = [output for output in adapter.compile(merged) if output.is_binary]
        if target is Target.CURSOR:
            assert binaries == []
            continue
        assert [output.content for output in binaries] == [b"\x89PNG"]
        assert all(output.target is target for output in binaries)
