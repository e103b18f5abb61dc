"""Composition root for ``lib_layered_prompts``.

Purpose
-------
Wire adapters (path resolver, settings loaders, layer loader, local file
system, TOML lockfile and registry, target adapters) into the application use
cases and expose a small, stable API for the CLI and for Python callers.

Contents
--------
* :func:`default_adapters` – reference target adapters keyed by target.
* :func:`load_settings` – defaults → user file → project file → environment.
* :func:`options_from_settings` – build :class:`DeployOptions` for a project.
* :func:`deploy` / :func:`watch` – run the pipeline once or continuously.
* :func:`load_layer_stack` – resolved and loaded layers plus the merge report.
* :func:`clean` / :func:`provenance` – lockfile-driven maintenance.
* :func:`registry_repository` / :func:`lockfile_path_for` – shared wiring.

System Role
-----------
This is the canonical place for adjusting precedence rules or registering new
adapters. Nothing below this module reads environment variables directly.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping

from .adapters.env.default import ENV_PREFIX, DefaultEnvLoader
from .adapters.file_loaders.structured import TOMLFileLoader
from .adapters.fs.local import LocalFileSystem, snapshot_directories
from .adapters.layer_loader.filesystem import FileSystemLayerLoader
from .adapters.lockfile.toml import TomlLockfileRepository, resolve_lockfile_path
from .adapters.path_resolvers.default import DefaultPathResolver
from .adapters.registry.toml import TomlRegistryRepository
from .adapters.targets.claude_code import ClaudeCodeAdapter
from .adapters.targets.codex import CodexAdapter
from .adapters.targets.cursor import CursorAdapter
from .application.clean import CleanResult, CleanUseCase
from .application.deploy import DeployOptions, DeployResult, DeployUseCase
from .application.merge import MergeResult, merge_layers
from .application.ports import CancelToken, Prompter, TargetAdapter
from .application.provenance import ProvenanceRow, provenance_report
from .application.resolver import LayerResolver
from .application.settings import build_settings, merge_sources
from .application.watch import WatchUseCase
from .domain.errors import LayeredPromptsError, NotFound
from .domain.lockfile import KeyNamespace
from .domain.models import Layer, Target
from .domain.settings import DEFAULTS, LayerSettings, Settings
from .observability import log_debug, make_event

SETTINGS_FILE = "config.toml"


def default_adapters() -> dict[Target, TargetAdapter]:
    """Return the reference adapters shipped with the package."""

    adapters: list[TargetAdapter] = [ClaudeCodeAdapter(), CursorAdapter(), CodexAdapter()]
    return {adapter.target: adapter for adapter in adapters}


def load_settings(
    project_root: Path,
    *,
    project_layer: str | None = None,
    resolver: DefaultPathResolver | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Resolve settings for *project_root*.

    Precedence, lowest first: built-in defaults, the user settings file, the
    project layer's ``config.toml``, then ``LIB_LAYERED_PROMPTS_*`` variables.
    The project layer directory itself may be chosen by the user file or the
    environment, so it is looked up before the project file is read.
    """

    resolver = resolver or DefaultPathResolver(env=dict(environ) if environ is not None else None)
    loader = TOMLFileLoader()
    user_file = resolver.user_settings()
    user = _optional_file(loader, user_file)
    env = DefaultEnvLoader(environ=environ).load(ENV_PREFIX)

    early, _ = merge_sources([("defaults", DEFAULTS, None), ("user", user, str(user_file)), ("env", env, None)])
    layer_name = project_layer or str(early.get("layers", {}).get("project_layer", ".promptpack"))  # type: ignore[union-attr]
    project_file = project_root / layer_name / SETTINGS_FILE
    project = _optional_file(loader, project_file)

    merged, origins = merge_sources(
        [
            ("defaults", DEFAULTS, None),
            ("user", user, str(user_file)),
            ("project", project, str(project_file)),
            ("env", env, None),
        ]
    )
    if project_layer:
        layers_table = merged.setdefault("layers", {})
        if isinstance(layers_table, dict):
            layers_table["project_layer"] = project_layer
    settings = build_settings(merged, {key: value for key, value in origins.items() if value["layer"] != "defaults"})
    log_debug("settings_loaded", **make_event("settings", str(project_root), {"targets": [t.value for t in settings.targets]}))
    return settings


def _optional_file(loader: TOMLFileLoader, path: Path) -> Mapping[str, object]:
    try:
        return loader.load(str(path))
    except NotFound:
        return {}


def options_from_settings(
    project_root: Path,
    settings: Settings,
    *,
    resolver: DefaultPathResolver | None = None,
    targets: tuple[Target, ...] | None = None,
    home: bool = False,
    force: bool = False,
    auto_confirm: bool = False,
    interactive: bool = False,
    dry_run: bool = False,
    clean_orphans: bool | None = None,
    remote_mode: bool = False,
) -> DeployOptions:
    """Build deploy options from *settings*, with flag values taking precedence."""

    resolver = resolver or DefaultPathResolver()
    layer_settings = settings.layers
    if layer_settings.user_layer is None:
        layer_settings = LayerSettings(
            user_layer=resolver.user_layer(),
            additional=layer_settings.additional,
            use_user_layer=layer_settings.use_user_layer,
            use_additional=layer_settings.use_additional,
            use_project_layer=layer_settings.use_project_layer,
            project_layer=layer_settings.project_layer,
        )
    return DeployOptions(
        project_root=project_root,
        layers=layer_settings,
        targets=targets or settings.targets,
        home=home,
        force=force,
        auto_confirm=auto_confirm,
        interactive=interactive,
        dry_run=dry_run,
        clean_orphans=settings.clean_orphans if clean_orphans is None else clean_orphans,
        remote_mode=remote_mode,
    )


def lockfile_path_for(
    options: DeployOptions,
    resolver: DefaultPathResolver,
    repository: TomlLockfileRepository | None = None,
    *,
    migrate: bool = True,
) -> tuple[Path, str | None]:
    """Return the lockfile for *options*, migrating a legacy project lockfile.

    Dry runs and read-only reports pass ``migrate=False`` and read the legacy
    file where it is.
    """

    if options.home:
        return resolver.global_lockfile(), None
    return resolve_lockfile_path(
        options.project_root,
        options.project_layer,
        repository or TomlLockfileRepository(),
        migrate=migrate,
    )


def registry_repository(settings: Settings, resolver: DefaultPathResolver) -> TomlRegistryRepository:
    path = settings.registry_path or resolver.registry_file()
    return TomlRegistryRepository(path.expanduser(), lock_timeout=settings.lock_timeout)


def build_deploy_use_case(
    options: DeployOptions,
    *,
    settings: Settings,
    resolver: DefaultPathResolver,
    prompter: Prompter | None = None,
    adapters: Mapping[Target, TargetAdapter] | None = None,
) -> DeployUseCase:
    repository = TomlLockfileRepository()
    return DeployUseCase(
        loader=FileSystemLayerLoader(),
        adapters=adapters or default_adapters(),
        fs=LocalFileSystem(options.project_root, resolver.home_dir()),
        lockfiles=repository,
        locate_lockfile=lambda opts: lockfile_path_for(opts, resolver, repository, migrate=not opts.dry_run),
        registry=registry_repository(settings, resolver),
        prompter=prompter,
        home=resolver.home_dir(),
    )


def deploy(
    options: DeployOptions,
    *,
    settings: Settings | None = None,
    resolver: DefaultPathResolver | None = None,
    prompter: Prompter | None = None,
    cancel: CancelToken | None = None,
) -> DeployResult:
    """Run the deploy pipeline once and return its report.

    Examples
    --------
    >>> import tempfile
    >>> root = Path(tempfile.mkdtemp())
    >>> layer = root / ".promptpack" / "actions"
    >>> layer.mkdir(parents=True)
    >>> _ = (layer / "review.md").write_text("---\\ndescription: Review\\n---\\nReview the diff.\\n", encoding="utf-8")
    >>> paths = DefaultPathResolver(env={"LIB_LAYERED_PROMPTS_CONFIG_DIR": str(root / "cfg"), "LIB_LAYERED_PROMPTS_HOME": str(root / "home")})
    >>> result = deploy(DeployOptions(project_root=root), resolver=paths)
    >>> sorted(result.written)
    ['.claude/commands/review.md', '.codex/prompts/review.md', '.cursor/commands/review.md']
    """

    resolver = resolver or DefaultPathResolver()
    settings = settings or Settings()
    use_case = build_deploy_use_case(options, settings=settings, resolver=resolver, prompter=prompter)
    return use_case.execute(options, cancel=cancel)


def watch(
    options: DeployOptions,
    *,
    settings: Settings,
    resolver: DefaultPathResolver | None = None,
    on_result: Callable[[DeployResult], None] | None = None,
    on_error: Callable[[LayeredPromptsError], None] | None = None,
    stop: threading.Event | None = None,
    max_runs: int | None = None,
) -> list[DeployResult]:
    """Deploy now and again after every debounced change to a layer directory."""

    resolver = resolver or DefaultPathResolver()
    watched = [options.project_layer, *options.layers.additional]
    if options.layers.user_layer is not None:
        watched.append(options.layers.user_layer)
    watched = [path.expanduser() for path in watched]

    use_case = WatchUseCase(
        deploy=lambda token: deploy(options, settings=settings, resolver=resolver, cancel=token),
        snapshot=lambda: snapshot_directories(watched),
        debounce=settings.debounce,
        poll_interval=settings.poll_interval,
        on_result=on_result,
        on_error=on_error,
    )
    return use_case.run(stop, max_runs=max_runs)


@dataclass(slots=True)
class LayerStack:
    """Loaded layers plus the merge outcome, for the ``layers`` report."""

    layers: list[Layer] = field(default_factory=list)
    merge: MergeResult = field(default_factory=MergeResult)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "layers": [
                {
                    "name": layer.name,
                    "kind": layer.kind.value,
                    "declared_path": str(layer.path.declared),
                    "resolved_path": str(layer.path.resolved),
                    "assets": [asset.identifier for asset in layer.assets],
                }
                for layer in self.layers
            ],
            "assets": [
                {
                    "id": merged.identifier,
                    "kind": merged.asset.kind.value,
                    "layer": merged.layer_name,
                    "overrides": merged.overrides,
                }
                for merged in self.merge.assets
            ],
            "overrides": [
                {"id": item.identifier, "from": item.from_layer, "by": item.by_layer} for item in self.merge.overrides
            ],
            "warnings": list(self.warnings),
        }


def load_layer_stack(options: DeployOptions, *, resolver: DefaultPathResolver | None = None) -> LayerStack:
    """Resolve and load the layer stack for *options* without compiling anything."""

    resolver = resolver or DefaultPathResolver()
    resolution = LayerResolver(
        project_layer=options.project_layer,
        user_layer=options.layers.user_layer,
        additional=options.layers.additional,
        use_user_layer=options.layers.use_user_layer,
        use_additional=options.layers.use_additional,
        use_project_layer=options.layers.use_project_layer,
        remote_mode=options.remote_mode,
        home=resolver.home_dir(),
    ).resolve()
    loader = FileSystemLayerLoader()
    layers = [loader.load(layer) for layer in resolution.layers]
    return LayerStack(layers=layers, merge=merge_layers(layers), warnings=list(resolution.warnings))


def clean(
    options: DeployOptions,
    *,
    resolver: DefaultPathResolver | None = None,
) -> CleanResult:
    """Remove every output tracked by the project (or home) lockfile."""

    resolver = resolver or DefaultPathResolver()
    repository = TomlLockfileRepository()
    path, _ = lockfile_path_for(options, resolver, repository, migrate=not options.dry_run)
    use_case = CleanUseCase(fs=LocalFileSystem(options.project_root, resolver.home_dir()), lockfiles=repository)
    namespace = KeyNamespace.HOME if options.home else None
    return use_case.execute(path, namespace=namespace, force=options.force, dry_run=options.dry_run)


def provenance(
    options: DeployOptions,
    *,
    resolver: DefaultPathResolver | None = None,
    filter_text: str | None = None,
) -> tuple[Path, list[ProvenanceRow]]:
    """Return the lockfile location and its provenance rows."""

    resolver = resolver or DefaultPathResolver()
    repository = TomlLockfileRepository()
    path, _ = lockfile_path_for(options, resolver, repository, migrate=False)
    return path, provenance_report(repository.load(path), filter_text=filter_text)
