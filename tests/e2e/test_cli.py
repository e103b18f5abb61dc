"""End-to-end CLI coverage for the public commands exposed by lib_layered_prompts.

These tests drive ``deploy``, ``layers``, ``provenance``, ``clean`` and the
``projects`` group through Click's runner with the sandbox environment, so
every run resolves its user directory and registry under ``tmp_path``.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

import lib_cli_exit_tools

from lib_layered_prompts import cli
from lib_layered_prompts.adapters.lockfile.toml import LOCKFILE_NAME
from tests.support import PromptSandbox, create_prompt_sandbox

REVIEW_OUTPUTS = [".claude/commands/review.md", ".codex/prompts/review.md", ".cursor/commands/review.md"]


@pytest.fixture()
def sandbox(tmp_path: Path) -> PromptSandbox:
    box = create_prompt_sandbox(tmp_path)
    box.write_asset(box.project_layer, "actions/review.md", "Review", "Review the diff.\n")
    return box


def _invoke(sandbox: PromptSandbox, *args: str, input: str | None = None) -> Result:
    """Run the CLI with the sandbox environment and return Click's result."""

    return CliRunner().invoke(cli.cli, list(args), env=sandbox.env, input=input)


def _deploy(sandbox: PromptSandbox, *flags: str, input: str | None = None) -> Result:
    return _invoke(sandbox, "deploy", str(sandbox.project), *flags, input=input)


def test_cli_deploy_json_reports_written_outputs(sandbox: PromptSandbox) -> None:
    result = _deploy(sandbox, "--no-interactive", "--json")
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert sorted(payload["written"]) == REVIEW_OUTPUTS
    assert payload["layers"] == ["project"]
    assert payload["summary"]["written"] == 3
    assert (sandbox.project / LOCKFILE_NAME).is_file()


def test_cli_second_deploy_reports_everything_unchanged(sandbox: PromptSandbox) -> None:
    _deploy(sandbox, "--yes")
    result = _deploy(sandbox, "--yes")
    assert result.exit_code == 0, result.output
    assert "0 written, 3 unchanged, 0 skipped" in result.output
    assert "write " not in result.output


def test_cli_dry_run_touches_nothing(sandbox: PromptSandbox) -> None:
    result = _deploy(sandbox, "--dry-run", "--yes")
    assert result.exit_code == 0, result.output
    assert "[dry run] write .claude/commands/review.md" in result.output
    assert not (sandbox.project / ".claude").exists()
    assert not (sandbox.project / LOCKFILE_NAME).exists()


def test_cli_target_flag_limits_outputs(sandbox: PromptSandbox) -> None:
    result = _deploy(sandbox, "--yes", "-t", "cursor", "--json")
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["written"] == [".cursor/commands/review.md"]
    assert not (sandbox.project / ".claude").exists()


def test_cli_conflict_is_kept_without_force_and_overwritten_with_it(sandbox: PromptSandbox) -> None:
    _deploy(sandbox, "--yes")
    edited = sandbox.project / ".claude/commands/review.md"
    edited.write_text("hand edit", encoding="utf-8")

    kept = _deploy(sandbox, "--yes")
    assert kept.exit_code == 0, kept.output
    assert "Skipped .claude/commands/review.md" in kept.output
    assert edited.read_text(encoding="utf-8") == "hand edit"

    forced = _deploy(sandbox, "--force")
    assert forced.exit_code == 0, forced.output
    assert "write .claude/commands/review.md" in forced.output
    assert "Review the diff." in edited.read_text(encoding="utf-8")


def test_cli_interactive_overwrite_answer(sandbox: PromptSandbox) -> None:
    _deploy(sandbox, "--yes")
    edited = sandbox.project / ".cursor/commands/review.md"
    edited.write_text("hand edit", encoding="utf-8")

    result = _deploy(sandbox, "--interactive", input="o\n")
    assert result.exit_code == 0, result.output
    assert "was modified since the last deploy" in result.output
    assert "Review the diff." in edited.read_text(encoding="utf-8")


def test_cli_interactive_diff_then_keep(sandbox: PromptSandbox) -> None:
    _deploy(sandbox, "--yes")
    edited = sandbox.project / ".codex/prompts/review.md"
    edited.write_text("hand edit\n", encoding="utf-8")

    result = _deploy(sandbox, "--interactive", input="d\nk\n")
    assert result.exit_code == 0, result.output
    assert "-hand edit" in result.output
    assert "+++ .codex/prompts/review.md (incoming)" in result.output
    assert edited.read_text(encoding="utf-8") == "hand edit\n"


def test_cli_cleanup_removes_orphans(sandbox: PromptSandbox) -> None:
    sandbox.write_asset(sandbox.project_layer, "actions/ship.md", "Ship", "Ship it.\n")
    _deploy(sandbox, "--yes")
    (sandbox.project_layer / "actions" / "ship.md").unlink()

    result = _deploy(sandbox, "--yes", "--cleanup")
    assert result.exit_code == 0, result.output
    assert "remove .claude/commands/ship.md" in result.output
    assert not (sandbox.project / ".claude/commands/ship.md").exists()


def test_cli_layers_prints_stack_and_overrides(sandbox: PromptSandbox) -> None:
    sandbox.write_asset(sandbox.user_layer, "actions/review.md", "Review", "User review.\n")
    result = _invoke(sandbox, "layers", str(sandbox.project), "--indent", "0")
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert [layer["name"] for layer in payload["layers"]] == ["user", "project"]
    assert payload["overrides"] == [{"id": "review", "from": "user", "by": "project"}]


def test_cli_layers_honours_no_user_layer(sandbox: PromptSandbox) -> None:
    sandbox.write_asset(sandbox.user_layer, "actions/lint.md", "Lint", "Lint it.\n")
    result = _invoke(sandbox, "layers", str(sandbox.project), "--no-user-layer")
    payload = json.loads(result.output)
    assert [layer["name"] for layer in payload["layers"]] == ["project"]


def test_cli_extra_layer_flag_adds_a_custom_layer(sandbox: PromptSandbox) -> None:
    team = sandbox.layer("team")
    sandbox.write_asset(team, "actions/triage.md", "Triage", "Triage issues.\n")
    result = _invoke(sandbox, "layers", str(sandbox.project), "--layer", str(team))
    payload = json.loads(result.output)
    assert "triage" in [asset["id"] for asset in payload["assets"]]


def test_cli_provenance_text_and_json(sandbox: PromptSandbox) -> None:
    _deploy(sandbox, "--yes")

    text = _invoke(sandbox, "provenance", str(sandbox.project), "--filter", "cursor")
    assert text.exit_code == 0, text.output
    lines = text.output.strip().splitlines()
    assert len(lines) == 1
    assert lines[0].startswith("project:.cursor/commands/review.md  <-  project:")

    as_json = _invoke(sandbox, "provenance", str(sandbox.project), "--json")
    payload = json.loads(as_json.output)
    assert payload["lockfile"].endswith(LOCKFILE_NAME)
    assert {row["source_asset"] for row in payload["entries"]} == {"review"}


def test_cli_provenance_without_lockfile(sandbox: PromptSandbox) -> None:
    result = _invoke(sandbox, "provenance", str(sandbox.project))
    assert result.exit_code == 0
    assert "No tracked outputs in" in result.output


def test_cli_clean_dry_run_then_real(sandbox: PromptSandbox) -> None:
    _deploy(sandbox, "--yes")

    preview = _invoke(sandbox, "clean", str(sandbox.project), "--dry-run")
    assert preview.exit_code == 0, preview.output
    assert "Would remove .claude/commands/review.md" in preview.output
    assert (sandbox.project / ".claude/commands/review.md").exists()

    result = _invoke(sandbox, "clean", str(sandbox.project))
    assert result.exit_code == 0, result.output
    assert "Removed 3, kept 0, already gone 0" in result.output
    assert not (sandbox.project / ".cursor/commands/review.md").exists()


def test_cli_projects_list_and_prune(sandbox: PromptSandbox) -> None:
    empty = _invoke(sandbox, "projects", "list")
    assert "No projects registered" in empty.output

    _deploy(sandbox, "--yes")
    listed = _invoke(sandbox, "projects", "list", "--json")
    assert listed.exit_code == 0, listed.output
    (entry,) = json.loads(listed.output)
    assert entry["path"] == str(sandbox.project.resolve())
    assert entry["asset_count"] == 1

    (sandbox.project / LOCKFILE_NAME).unlink()
    pruned = _invoke(sandbox, "projects", "prune")
    assert f"Pruned {sandbox.project.resolve()}" in pruned.output
    assert "Pruned 1 project(s)" in pruned.output


def test_cli_info_and_version(sandbox: PromptSandbox) -> None:
    info = _invoke(sandbox, "info")
    assert info.exit_code == 0
    assert "lib_layered_prompts" in info.output

    version = _invoke(sandbox, "--version")
    assert version.exit_code == 0
    assert version.output.startswith("lib_layered_prompts version ")


def test_main_returns_zero_for_successful_deploy(sandbox: PromptSandbox, monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in sandbox.env.items():
        monkeypatch.setenv(key, value)
    code = cli.main(["deploy", str(sandbox.project), "--yes"])
    assert code == 0
    assert (sandbox.project / ".claude/commands/review.md").is_file()


def test_main_reports_failure_exit_code(sandbox: PromptSandbox, monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in sandbox.env.items():
        monkeypatch.setenv(key, value)
    code = cli.main(["deploy", str(sandbox.project), "--yes", "-t", "vscode"])
    assert code != 0
    assert not (sandbox.project / LOCKFILE_NAME).exists()


def test_main_without_layers_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    sandbox = create_prompt_sandbox(tmp_path)
    (sandbox.project_layer).rmdir()
    for key, value in sandbox.env.items():
        monkeypatch.setenv(key, value)
    assert cli.main(["deploy", str(sandbox.project), "--yes"]) != 0


def test_main_restores_traceback_flag(sandbox: PromptSandbox, monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in sandbox.env.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setattr(lib_cli_exit_tools.config, "traceback", False)
    cli.main(["--traceback", "info"])
    assert lib_cli_exit_tools.config.traceback is False
