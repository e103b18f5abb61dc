"""CLI adapter for ``lib_layered_prompts`` built on ``lib_cli_exit_tools``.

Purpose
-------
Expose the deploy pipeline and its maintenance operations as a command line
interface. Commands translate flags into :class:`DeployOptions` and call the
composition root; they never reach into adapters directly.

Contents
--------
* :data:`CLICK_CONTEXT_SETTINGS` – shared Click settings ensuring ``-h`` works.
* :func:`cli` – root command wiring traceback handling into ``lib_cli_exit_tools``.
* :func:`cli_info` – distribution metadata.
* :func:`cli_deploy` / :func:`cli_watch` – run the pipeline once or continuously.
* :func:`cli_layers` – resolved layer stack and override report.
* :func:`cli_provenance` – where each tracked output came from.
* :func:`cli_clean` – remove tracked outputs.
* :func:`cli_projects` – ``list`` and ``prune`` the cross-project registry.
* :func:`main` – entry point used by ``console_scripts`` registration.

System Role
-----------
The CLI lives in the outermost layer. ``lib_cli_exit_tools`` centralises the
exit code strategy so every command behaves consistently across shells and CI.
"""

from __future__ import annotations

import dataclasses
import json
import sys
from importlib import metadata
from pathlib import Path
from typing import Any, Callable, Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click

from . import core
from .adapters.path_resolvers.default import DefaultPathResolver
from .adapters.prompter.terminal import TerminalPrompter
from .adapters.registry.toml import TomlRegistryRepository
from .application.deploy import DeployOptions, DeployResult
from .application.registry import list_projects, project_to_dict, prune_projects
from .domain.errors import LayeredPromptsError
from .domain.models import Target
from .domain.settings import Settings

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000

TARGET_CHOICES: Final[tuple[str, ...]] = tuple(target.value for target in Target)


def _resolve_version() -> str:
    """Return the installed package version, or ``"0.0.0"`` for bare checkouts."""

    try:
        return metadata.version("lib_layered_prompts")
    except metadata.PackageNotFoundError:
        return "0.0.0"


@click.group(
    help="Compile layered prompt packs into platform-specific files",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name="lib_layered_prompts",
    message="lib_layered_prompts version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool) -> None:
    """Root command configuring traceback handling for all subcommands.

    Side Effects
        Mutates ``lib_cli_exit_tools.config.traceback`` and
        ``lib_cli_exit_tools.config.traceback_force_color``.
    """

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print basic distribution metadata so users can confirm installation."""

    try:
        meta = metadata.metadata("lib_layered_prompts")
    except metadata.PackageNotFoundError:
        click.echo("lib_layered_prompts (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', 'lib_layered_prompts')}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.10')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")


def _project_argument(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.argument(
        "project_root",
        required=False,
        default=".",
        type=click.Path(path_type=Path, file_okay=False, dir_okay=True, resolve_path=True),
    )(func)


def _layer_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the flags that select the layer stack."""

    decorators = [
        click.option("--source", "-s", "source", default=None, help="Project layer directory name (default: .promptpack)"),
        click.option(
            "--layer",
            "extra_layers",
            multiple=True,
            type=click.Path(path_type=Path),
            help="Additional layer directory, lowest priority first (repeatable)",
        ),
        click.option("--no-user-layer", is_flag=True, default=False, help="Ignore the user layer"),
        click.option("--no-additional-layers", is_flag=True, default=False, help="Ignore configured additional layers"),
        click.option("--no-project-layer", is_flag=True, default=False, help="Ignore the project layer"),
        click.option(
            "--only-project-layer",
            is_flag=True,
            default=False,
            help="Use nothing but the project layer (remote deploys)",
        ),
        click.option("--home", is_flag=True, default=False, help="Deploy to the home directory instead of the project"),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def _write_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the flags that control conflicts and targets."""

    decorators = [
        click.option(
            "--target",
            "-t",
            "targets",
            multiple=True,
            type=click.Choice(TARGET_CHOICES, case_sensitive=False),
            help="Target platform to compile for (repeatable; default from settings)",
        ),
        click.option("--force", "-f", is_flag=True, default=False, help="Overwrite conflicts and remove edited orphans"),
        click.option("--yes", "-y", "auto_confirm", is_flag=True, default=False, help="Never prompt; keep conflicting files"),
        click.option(
            "--interactive/--no-interactive",
            default=None,
            help="Ask about conflicts (default: when stdin is a terminal)",
        ),
        click.option("--cleanup/--no-cleanup", "cleanup", default=None, help="Remove orphaned outputs (default from settings)"),
        click.option("--json", "as_json", is_flag=True, default=False, help="Print the run report as JSON"),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def _build_options(
    project_root: Path,
    *,
    source: Optional[str],
    extra_layers: Sequence[Path],
    no_user_layer: bool,
    no_additional_layers: bool,
    no_project_layer: bool,
    only_project_layer: bool,
    home: bool,
    targets: Sequence[str] = (),
    force: bool = False,
    auto_confirm: bool = False,
    interactive: Optional[bool] = False,
    dry_run: bool = False,
    cleanup: Optional[bool] = None,
) -> tuple[DeployOptions, Settings, DefaultPathResolver]:
    """Merge settings with flag values into deploy options (flags win)."""

    resolver = DefaultPathResolver()
    settings = core.load_settings(project_root, project_layer=source, resolver=resolver)
    layers = settings.layers
    settings = dataclasses.replace(
        settings,
        layers=dataclasses.replace(
            layers,
            additional=(*layers.additional, *extra_layers),
            use_user_layer=layers.use_user_layer and not no_user_layer,
            use_additional=layers.use_additional and not no_additional_layers,
            use_project_layer=layers.use_project_layer and not no_project_layer,
        ),
    )
    if interactive is None:
        interactive = sys.stdin.isatty() and not auto_confirm
    options = core.options_from_settings(
        project_root,
        settings,
        resolver=resolver,
        targets=tuple(Target.parse(value) for value in targets) or None,
        home=home,
        force=force,
        auto_confirm=auto_confirm,
        interactive=interactive,
        dry_run=dry_run,
        clean_orphans=cleanup,
        remote_mode=only_project_layer,
    )
    return options, settings, resolver


@cli.command("deploy", context_settings=CLICK_CONTEXT_SETTINGS)
@_project_argument
@_layer_options
@_write_options
@click.option("--dry-run", is_flag=True, default=False, help="Show what would change without touching disk")
def cli_deploy(project_root: Path, as_json: bool, **flags: Any) -> None:
    """Compile the layer stack for PROJECT_ROOT and write the outputs.

    Exits with status 1 when any output failed to write.
    """

    options, settings, resolver = _build_options(project_root, **flags)
    prompter = TerminalPrompter() if options.interactive else None
    result = core.deploy(options, settings=settings, resolver=resolver, prompter=prompter)
    _echo_result(result, as_json)
    if not result.ok:
        raise SystemExit(1)


@cli.command("watch", context_settings=CLICK_CONTEXT_SETTINGS)
@_project_argument
@_layer_options
@_write_options
def cli_watch(project_root: Path, as_json: bool, **flags: Any) -> None:
    """Deploy now and again whenever a layer changes (Ctrl+C to stop)."""

    flags["interactive"] = False
    options, settings, resolver = _build_options(project_root, **flags)
    click.echo(f"Watching {options.project_layer} (debounce {settings.debounce}s)", err=True)

    def _report_error(exc: LayeredPromptsError) -> None:
        click.echo(f"Deploy failed: {exc}", err=True)

    try:
        core.watch(
            options,
            settings=settings,
            resolver=resolver,
            on_result=lambda result: _echo_result(result, as_json),
            on_error=_report_error,
        )
    except KeyboardInterrupt:
        click.echo("Stopped watching", err=True)


@cli.command("layers", context_settings=CLICK_CONTEXT_SETTINGS)
@_project_argument
@_layer_options
@click.option("--indent", type=int, default=2, show_default=True, help="JSON indent size")
def cli_layers(project_root: Path, indent: int, **flags: Any) -> None:
    """Print the resolved layer stack, the merged assets, and overrides as JSON."""

    options, _, resolver = _build_options(project_root, **flags)
    stack = core.load_layer_stack(options, resolver=resolver)
    click.echo(json.dumps(stack.to_dict(), indent=indent))


@cli.command("provenance", context_settings=CLICK_CONTEXT_SETTINGS)
@_project_argument
@click.option("--source", "-s", "source", default=None, help="Project layer directory name (default: .promptpack)")
@click.option("--home", is_flag=True, default=False, help="Read the home-scope lockfile")
@click.option("--filter", "filter_text", default=None, help="Only rows whose key or source file contains this text")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print rows as JSON")
def cli_provenance(project_root: Path, source: Optional[str], home: bool, filter_text: Optional[str], as_json: bool) -> None:
    """Show which layer and source file produced each tracked output."""

    options, _, resolver = _build_options(
        project_root,
        source=source,
        extra_layers=(),
        no_user_layer=False,
        no_additional_layers=False,
        no_project_layer=False,
        only_project_layer=False,
        home=home,
    )
    path, rows = core.provenance(options, resolver=resolver, filter_text=filter_text)
    if as_json:
        click.echo(json.dumps({"lockfile": str(path), "entries": [row.to_dict() for row in rows]}, indent=2))
        return
    if not rows:
        click.echo(f"No tracked outputs in {path}")
        return
    for row in rows:
        origin = f"{row.source_layer}:{row.source_file}"
        if row.overrides:
            origin += f" (overrides {row.overrides})"
        click.echo(f"{row.key}  <-  {origin}")


@cli.command("clean", context_settings=CLICK_CONTEXT_SETTINGS)
@_project_argument
@click.option("--source", "-s", "source", default=None, help="Project layer directory name (default: .promptpack)")
@click.option("--home", is_flag=True, default=False, help="Clean outputs tracked by the home-scope lockfile")
@click.option("--force", "-f", is_flag=True, default=False, help="Remove edited or unmarked outputs too")
@click.option("--dry-run", is_flag=True, default=False, help="List what would be removed")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the report as JSON")
def cli_clean(project_root: Path, source: Optional[str], home: bool, force: bool, dry_run: bool, as_json: bool) -> None:
    """Remove every output this tool wrote and still owns."""

    options, _, resolver = _build_options(
        project_root,
        source=source,
        extra_layers=(),
        no_user_layer=False,
        no_additional_layers=False,
        no_project_layer=False,
        only_project_layer=False,
        home=home,
        force=force,
        dry_run=dry_run,
    )
    result = core.clean(options, resolver=resolver)
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return
    verb = "Would remove" if dry_run else "Removed"
    for path in result.removed:
        click.echo(f"{verb} {path}")
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)
    click.echo(f"{verb} {len(result.removed)}, kept {len(result.skipped)}, already gone {len(result.missing)}")


@cli.group("projects", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_projects() -> None:
    """Inspect the registry of deployed projects."""


@cli_projects.command("list", context_settings=CLICK_CONTEXT_SETTINGS)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print entries as JSON")
def cli_projects_list(as_json: bool) -> None:
    """List projects that were deployed on this machine."""

    registry = _registry()
    entries = list_projects(registry)
    if as_json:
        click.echo(json.dumps([project_to_dict(entry) for entry in entries], indent=2))
        return
    if not entries:
        click.echo("No projects registered")
        return
    for entry in entries:
        click.echo(f"{entry.project_path}  ({entry.asset_count} assets, {entry.last_deployed.isoformat()})")


@cli_projects.command("prune", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_projects_prune() -> None:
    """Forget projects whose lockfile no longer exists."""

    removed = prune_projects(_registry())
    for path in removed:
        click.echo(f"Pruned {path}")
    click.echo(f"Pruned {len(removed)} project(s)")


def _registry() -> TomlRegistryRepository:
    resolver = DefaultPathResolver()
    settings = core.load_settings(Path.cwd(), resolver=resolver)
    return core.registry_repository(settings, resolver)


def _echo_result(result: DeployResult, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return
    prefix = "[dry run] " if result.dry_run else ""
    for item in result.overrides:
        click.echo(f"{prefix}override: {item.identifier} ({item.from_layer} -> {item.by_layer})")
    for path in result.written:
        click.echo(f"{prefix}write {path}")
    for path in result.orphans_removed:
        click.echo(f"{prefix}remove {path}")
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)
    for error in result.errors:
        click.echo(f"Error: {error}", err=True)
    counts = result.summary()
    click.echo(
        f"{prefix}{counts['written']} written, {counts['unchanged']} unchanged, {counts['skipped']} skipped, "
        f"{counts['orphans_removed']} orphans removed, {counts['warnings']} warnings"
    )


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name="lib_layered_prompts",
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


__all__ = ["cli", "main"]


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
