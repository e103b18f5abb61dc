"""Provenance report: where did each tracked output come from?

Reads only the lockfile; provenance fields are never consulted by the deploy
decisions themselves.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from ..domain.lockfile import Lockfile


@dataclass(frozen=True, slots=True)
class ProvenanceRow:
    key: str
    hash: str
    source_layer: str
    source_layer_path: str
    source_asset: str
    source_file: str
    overrides: str | None
    is_binary: bool
    is_skill_folder: bool

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def provenance_report(lockfile: Lockfile, *, filter_text: str | None = None) -> list[ProvenanceRow]:
    """Return one row per lockfile entry, sorted by key.

    ``filter_text`` keeps rows whose key or source file contains it.

    Examples
    --------
    >>> from lib_layered_prompts.domain.lockfile import LockfileEntry, OutputKey
    >>> ledger = Lockfile()
    >>> ledger.set(OutputKey.for_path("b.md"), LockfileEntry("sha256:2", source_layer="project"))
    >>> ledger.set(OutputKey.for_path("a.md"), LockfileEntry("sha256:1"))
    >>> [(row.key, row.source_layer) for row in provenance_report(ledger)]
    [('project:a.md', 'unknown'), ('project:b.md', 'project')]
    """

    rows = [
        ProvenanceRow(
            key=str(key),
            hash=entry.hash,
            source_layer=entry.source_layer,
            source_layer_path=entry.source_layer_path,
            source_asset=entry.source_asset,
            source_file=entry.source_file,
            overrides=entry.overrides,
            is_binary=entry.is_binary,
            is_skill_folder=entry.is_skill_folder,
        )
        for key, entry in lockfile.items()
    ]
    if filter_text:
        rows = [row for row in rows if filter_text in row.key or filter_text in row.source_file]
    return rows
