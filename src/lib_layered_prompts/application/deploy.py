"""Deploy orchestrator: the full layer → lockfile → registry pipeline.

Purpose
-------
Sequence every stage of one deploy run and collect a report that always carries
counts, warnings and per-file errors, even on partial success.

Stages
------
``RESOLVE_LAYERS → LOAD_ASSETS → MERGE → COMPILE → CLASSIFY_WRITES →
RESOLVE_CONFLICTS → WRITE → UPDATE_LOCKFILE → DETECT_ORPHANS →
UPDATE_REGISTRY → DONE``

Fatal conditions raise a :class:`~lib_layered_prompts.domain.errors.LayeredPromptsError`
before anything is written. A cancel token is honoured up to the moment the
write stage starts; after that the run always completes.

Contents
--------
* :class:`DeployOptions` – plain, fully-resolved inputs.
* :class:`DeployResult` – the run report.
* :class:`DeployUseCase` – the state machine.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

from ..domain.errors import (
    AssetValidationError,
    ConfigurationError,
    DeployCancelled,
    LayeredPromptsError,
    NoCompatibleTarget,
    NoOutputsProduced,
)
from ..domain.lockfile import Lockfile, LockfileEntry
from ..domain.models import MergedAsset, OutputFile, OverrideInfo, Scope, Target
from ..domain.registry import ProjectEntry
from ..domain.settings import DEFAULT_TARGETS, LayerSettings
from ..observability import log_debug, log_error, log_info, log_warning, new_trace_id
from .merge import MergeResult, merge_layers
from .orphans import detect_orphans, remove_tracked
from .planner import PlannedWrite, WriteUnit, build_units, classify, resolve_conflicts
from .ports import (
    CancelToken,
    FileSystem,
    LayerLoader,
    LockfileRepository,
    Prompter,
    RegistryRepository,
    TargetAdapter,
)
from .resolver import LayerResolver


class Stage(str, Enum):
    RESOLVE_LAYERS = "resolve-layers"
    LOAD_ASSETS = "load-assets"
    MERGE = "merge"
    COMPILE = "compile"
    CLASSIFY_WRITES = "classify-writes"
    RESOLVE_CONFLICTS = "resolve-conflicts"
    WRITE = "write"
    UPDATE_LOCKFILE = "update-lockfile"
    DETECT_ORPHANS = "detect-orphans"
    UPDATE_REGISTRY = "update-registry"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class DeployOptions:
    """Inputs of one run; everything is already resolved from settings and flags.

    ``home`` deploys every asset to user scope and tracks it in the user-level
    lockfile instead of the project lockfile.
    """

    project_root: Path
    layers: LayerSettings = field(default_factory=LayerSettings)
    targets: tuple[Target, ...] = DEFAULT_TARGETS
    home: bool = False
    force: bool = False
    auto_confirm: bool = False
    interactive: bool = False
    dry_run: bool = False
    clean_orphans: bool = False
    remote_mode: bool = False

    @property
    def project_layer(self) -> Path:
        return self.project_root / self.layers.project_layer


@dataclass(slots=True)
class DeployResult:
    """Report of one run. Lists hold output paths; counts derive from them."""

    lockfile_path: Path | None = None
    dry_run: bool = False
    layers: list[str] = field(default_factory=list)
    asset_count: int = 0
    output_count: int = 0
    written: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)
    orphans_removed: list[str] = field(default_factory=list)
    orphans_skipped: list[str] = field(default_factory=list)
    overrides: list[OverrideInfo] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    trace_id: str | None = None

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> dict[str, int]:
        return {
            "written": len(self.written),
            "unchanged": len(self.unchanged),
            "skipped": len(self.skipped),
            "orphans_removed": len(self.orphans_removed),
            "orphans_skipped": len(self.orphans_skipped),
            "warnings": len(self.warnings),
            "errors": len(self.errors),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "lockfile": str(self.lockfile_path) if self.lockfile_path else None,
            "dry_run": self.dry_run,
            "layers": list(self.layers),
            "assets": self.asset_count,
            "outputs": self.output_count,
            "summary": self.summary(),
            "written": list(self.written),
            "unchanged": list(self.unchanged),
            "skipped": list(self.skipped),
            "orphans": list(self.orphans),
            "orphans_removed": list(self.orphans_removed),
            "orphans_skipped": list(self.orphans_skipped),
            "overrides": [dataclasses.asdict(item) for item in self.overrides],
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "trace_id": self.trace_id,
        }


LockfileLocator = Callable[[DeployOptions], "tuple[Path, Optional[str]]"]


class DeployUseCase:
    """Run the deploy pipeline against injected ports.

    Parameters
    ----------
    loader:
        Reads the assets of each resolved layer.
    adapters:
        One adapter per supported target. Enabling a target that has none is a
        configuration error.
    fs:
        Where outputs are written.
    lockfiles / locate_lockfile:
        Lockfile persistence and the strategy choosing (and migrating) its path.
    registry:
        Optional cross-project registry updated after project deploys.
    prompter:
        Answers conflicts when ``interactive`` is set.
    home:
        Home directory used to expand ``~`` in layer paths.
    """

    def __init__(
        self,
        *,
        loader: LayerLoader,
        adapters: Mapping[Target, TargetAdapter],
        fs: FileSystem,
        lockfiles: LockfileRepository,
        locate_lockfile: LockfileLocator,
        registry: RegistryRepository | None = None,
        prompter: Prompter | None = None,
        home: Path | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.loader = loader
        self.adapters = dict(adapters)
        self.fs = fs
        self.lockfiles = lockfiles
        self.locate_lockfile = locate_lockfile
        self.registry = registry
        self.prompter = prompter
        self.home = home
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.stage = Stage.RESOLVE_LAYERS

    def execute(self, options: DeployOptions, *, cancel: CancelToken | None = None) -> DeployResult:
        result = DeployResult(dry_run=options.dry_run, trace_id=new_trace_id())
        try:
            self._run(options, result, cancel)
        except LayeredPromptsError as exc:
            log_error("deploy_failed", layer="deploy", path=str(options.project_root), stage=self.stage.value, error=exc.message)
            raise
        return result

    def _run(self, options: DeployOptions, result: DeployResult, cancel: CancelToken | None) -> None:
        adapters = self._enabled_adapters(options.targets)

        self._enter(Stage.RESOLVE_LAYERS, cancel)
        resolution = LayerResolver(
            project_layer=options.project_layer,
            user_layer=options.layers.user_layer,
            additional=options.layers.additional,
            use_user_layer=options.layers.use_user_layer,
            use_additional=options.layers.use_additional,
            use_project_layer=options.layers.use_project_layer,
            remote_mode=options.remote_mode,
            home=self.home,
        ).resolve()
        result.warnings.extend(resolution.warnings)
        result.layers = [layer.name for layer in resolution.layers]

        self._enter(Stage.LOAD_ASSETS, cancel)
        layers = [self.loader.load(layer) for layer in resolution.layers]

        self._enter(Stage.MERGE, cancel)
        merged = merge_layers(layers)
        result.overrides = list(merged.overrides)
        result.asset_count = len(merged.assets)

        self._enter(Stage.COMPILE, cancel)
        compiled = self._compile(merged, adapters, options, result)
        units = build_units(compiled)
        result.output_count = sum(len(unit.files) for unit in units)
        if not units:
            raise NoOutputsProduced()

        self._enter(Stage.CLASSIFY_WRITES, cancel)
        lockfile_path, notice = self.locate_lockfile(options)
        if notice:
            result.warnings.append(notice)
        result.lockfile_path = lockfile_path
        previous = self.lockfiles.load(lockfile_path)
        plan = classify(units, previous, self.fs)

        self._enter(Stage.RESOLVE_CONFLICTS, cancel)
        resolution_plan = resolve_conflicts(
            plan,
            self.fs,
            force=options.force,
            auto_confirm=options.auto_confirm,
            prompter=self.prompter if options.interactive else None,
            cancel=cancel,
        )
        for planned in resolution_plan.skipped:
            result.skipped.append(planned.unit.path)
            detail = "modified since last deploy" if planned.reason == "modified" else "existing file is not tracked"
            result.warnings.append(f"Skipped {planned.unit.path}: {detail} (use --force to overwrite)")
        result.orphans = [key.path for key in detect_orphans(previous, (unit.key for unit in units))]

        if options.dry_run:
            result.written = [planned.unit.path for planned in resolution_plan.writes]
            result.unchanged = [planned.unit.path for planned in resolution_plan.unchanged]
            if options.clean_orphans:
                report = remove_tracked(
                    detect_orphans(previous, (unit.key for unit in units)), previous, self.fs, force=options.force, dry_run=True
                )
                result.orphans_removed, result.orphans_skipped = report.removed, report.skipped
                result.warnings.extend(report.warnings)
            self._enter(Stage.DONE, None)
            return

        self._enter(Stage.WRITE, cancel)
        lockfile = previous.copy()
        for planned in resolution_plan.unchanged:
            lockfile.set(planned.unit.key, _entry_for(planned.unit))
            result.unchanged.append(planned.unit.path)
        for planned in resolution_plan.writes:
            self._write(planned, lockfile, result)

        self._enter(Stage.UPDATE_LOCKFILE, None)
        self._save(lockfile, previous, lockfile_path)

        self._enter(Stage.DETECT_ORPHANS, None)
        if options.clean_orphans and result.orphans:
            report = remove_tracked(
                detect_orphans(lockfile, (unit.key for unit in units)), lockfile, self.fs, force=options.force
            )
            result.orphans_removed, result.orphans_skipped = report.removed, report.skipped
            result.warnings.extend(report.warnings)
            self._save(lockfile, previous, lockfile_path)

        self._enter(Stage.UPDATE_REGISTRY, None)
        if not options.home and self.registry is not None:
            self._register(self.registry, options, lockfile_path, result)

        self._enter(Stage.DONE, None)
        log_info("deploy_finished", layer="deploy", path=str(options.project_root), **result.summary())

    def _enter(self, stage: Stage, cancel: CancelToken | None) -> None:
        if cancel is not None and cancel.cancelled:
            log_info("deploy_cancelled", layer="deploy", path=None, stage=stage.value)
            raise DeployCancelled()
        self.stage = stage
        log_debug("deploy_stage", layer="deploy", path=None, stage=stage.value)

    def _enabled_adapters(self, targets: Sequence[Target]) -> list[TargetAdapter]:
        missing = [target.value for target in targets if target not in self.adapters]
        if missing:
            available = ", ".join(target.value for target in self.adapters)
            raise ConfigurationError(
                f"No adapter registered for target(s): {', '.join(missing)}",
                remedy=f"Enable only targets with an adapter: {available}",
            )
        if not targets:
            raise ConfigurationError("No targets enabled", remedy="Enable at least one target under [deploy] targets.")
        return [self.adapters[target] for target in dict.fromkeys(targets)]

    def _compile(
        self,
        merged: MergeResult,
        adapters: Sequence[TargetAdapter],
        options: DeployOptions,
        result: DeployResult,
    ) -> list[tuple[MergedAsset, list[OutputFile]]]:
        compiled: list[tuple[MergedAsset, list[OutputFile]]] = []
        for winner in merged.assets:
            if options.home and winner.asset.scope is not Scope.USER:
                winner = dataclasses.replace(winner, asset=winner.asset.with_scope(Scope.USER))
            asset = winner.asset
            wanted = set(asset.effective_targets())
            selected = [adapter for adapter in adapters if adapter.target in wanted]
            if not selected:
                log_debug("asset_not_targeted", layer=winner.layer_name, path=asset.source_file, asset=asset.identifier)
                continue
            outputs: list[OutputFile] = []
            for adapter in selected:
                for diagnostic in adapter.validate(asset):
                    message = f"{adapter.target.value}: {diagnostic.message}"
                    if diagnostic.severity == "error":
                        raise AssetValidationError(message, remedy=f"Fix {winner.source_file}.")
                    result.warnings.append(message)
                outputs.extend(adapter.compile(winner))
            if not outputs:
                raise NoCompatibleTarget(asset.identifier, asset.kind.value, [adapter.target.value for adapter in selected])
            compiled.append((winner, outputs))
        return compiled

    def _write(self, planned: PlannedWrite, lockfile: Lockfile, result: DeployResult) -> None:
        unit = planned.unit
        try:
            for output in unit.files:
                if output.is_binary:
                    self.fs.write_binary(output.path, output.content)
                else:
                    self.fs.write(output.path, output.content.decode("utf-8"))
            if unit.is_skill_folder:
                expected = set(unit.relative_files())
                for stale in self.fs.list_files(unit.path):
                    if stale not in expected:
                        self.fs.remove(f"{unit.path}/{stale}")
        except OSError as exc:
            result.errors.append(f"Failed to write {unit.path}: {exc}")
            log_error("write_failed", layer="deploy", path=unit.path, error=str(exc))
            return
        lockfile.set(unit.key, _entry_for(unit))
        result.written.append(unit.path)
        log_info("output_written", layer=unit.merged.layer_name, path=unit.path, action=planned.action.value)

    def _save(self, lockfile: Lockfile, previous: Lockfile, path: Path) -> None:
        if lockfile.entries == previous.entries and path.exists():
            log_debug("lockfile_unchanged", layer="lockfile", path=str(path))
            return
        self.lockfiles.save(lockfile, path)

    def _register(
        self,
        registry: RegistryRepository,
        options: DeployOptions,
        lockfile_path: Path,
        result: DeployResult,
    ) -> None:
        entry = ProjectEntry(
            project_path=str(options.project_root.resolve()),
            lockfile_path=str(lockfile_path.resolve()),
            last_deployed=self.clock(),
            asset_count=result.asset_count,
        )
        try:
            registry.upsert(entry)
        except (LayeredPromptsError, OSError) as exc:
            result.warnings.append(f"Registry update failed: {exc}")
            log_warning("registry_update_failed", layer="registry", path=str(lockfile_path), error=str(exc))


def _entry_for(unit: WriteUnit) -> LockfileEntry:
    merged = unit.merged
    return LockfileEntry(
        hash=unit.hash,
        source_layer=merged.layer_name,
        source_layer_path=str(merged.layer_path),
        source_asset=merged.identifier,
        source_file=str(merged.source_file),
        overrides=merged.overrides,
        is_binary=unit.is_binary,
        is_skill_folder=unit.is_skill_folder,
    )
