"""Interactive conflict prompter for terminals.

Asks the operator what to do with a file that changed on disk since the last
deploy. Built on ``click.prompt`` so ``CliRunner`` can drive it in tests.
"""

from __future__ import annotations

import rich_click as click

from ...application.ports import Conflict, ConflictChoice

_CHOICES = {
    "o": ConflictChoice.OVERWRITE,
    "k": ConflictChoice.KEEP,
    "d": ConflictChoice.SHOW_DIFF,
    "a": ConflictChoice.OVERWRITE_ALL,
    "n": ConflictChoice.KEEP_ALL,
}

_REASONS = {
    "modified": "was modified since the last deploy",
    "untracked": "already exists and is not tracked",
}


class TerminalPrompter:
    """Implements :class:`~lib_layered_prompts.application.ports.Prompter`."""

    def ask(self, conflict: Conflict) -> ConflictChoice:
        click.echo(f"{conflict.key.path} {_REASONS.get(conflict.reason, conflict.reason)}.", err=True)
        answer = click.prompt(
            "[o]verwrite, [k]eep, [d]iff, overwrite [a]ll, keep all ([n]one)",
            type=click.Choice(sorted(_CHOICES), case_sensitive=False),
            default="k",
            show_choices=False,
            err=True,
        )
        return _CHOICES[answer.lower()]

    def show_diff(self, conflict: Conflict, diff: str) -> None:
        for line in diff.splitlines():
            if line.startswith("+") and not line.startswith("+++"):
                click.secho(line, fg="green", err=True)
            elif line.startswith("-") and not line.startswith("---"):
                click.secho(line, fg="red", err=True)
            else:
                click.echo(line, err=True)
