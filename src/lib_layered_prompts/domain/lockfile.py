"""Lockfile value objects: output identity, tracked entries, and the ledger.

Purpose
-------
Describe the persisted mapping from an output's identity to its last written
hash and provenance. Serialisation lives in
:mod:`lib_layered_prompts.adapters.lockfile.toml`; this module stays pure.

Contents
--------
* :class:`KeyNamespace` / :class:`OutputKey` – ``project:`` or ``home:`` keyed paths.
* :class:`LockfileEntry` – hash plus provenance metadata.
* :class:`Lockfile` – mutable ledger owned by exactly one pipeline run.

System Role
-----------
Provenance fields are metadata for reports. Classification and orphan decisions
only ever look at ``hash``, ``is_binary`` and ``is_skill_folder``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Final, Iterator

SCHEMA_VERSION: Final[int] = 2
UNKNOWN: Final[str] = "unknown"
"""Provenance placeholder for entries written by a release that did not record it."""


class KeyNamespace(str, Enum):
    PROJECT = "project"
    HOME = "home"


@dataclass(frozen=True, slots=True, order=True)
class OutputKey:
    """Identity of one tracked output: namespace plus normalised POSIX path."""

    namespace: KeyNamespace
    path: str

    @classmethod
    def for_path(cls, path: str) -> OutputKey:
        """Derive the key for an output path; ``~`` paths live in ``home:``.

        Examples
        --------
        >>> str(OutputKey.for_path("~\\\\.claude\\\\rules\\\\a.md"))
        'home:~/.claude/rules/a.md'
        >>> str(OutputKey.for_path(".cursor/rules/a/RULE.md"))
        'project:.cursor/rules/a/RULE.md'
        """

        normalized = path.replace("\\", "/")
        namespace = KeyNamespace.HOME if normalized.startswith("~") else KeyNamespace.PROJECT
        return cls(namespace, normalized)

    @classmethod
    def parse(cls, text: str) -> OutputKey:
        """Parse the ``namespace:path`` text form; bare paths are treated like :meth:`for_path`."""

        prefix, sep, rest = text.partition(":")
        if sep and prefix in (KeyNamespace.PROJECT.value, KeyNamespace.HOME.value):
            key = cls.for_path(rest)
            if prefix == KeyNamespace.HOME.value and key.namespace is not KeyNamespace.HOME:
                return cls(KeyNamespace.HOME, key.path)
            return key
        return cls.for_path(text)

    def __str__(self) -> str:
        return f"{self.namespace.value}:{self.path}"


@dataclass(frozen=True, slots=True)
class LockfileEntry:
    """Last known state of one output (or one whole skill folder)."""

    hash: str
    source_layer: str = UNKNOWN
    source_layer_path: str = UNKNOWN
    source_asset: str = UNKNOWN
    source_file: str = UNKNOWN
    overrides: str | None = None
    is_binary: bool = False
    is_skill_folder: bool = False

    def with_hash(self, new_hash: str) -> LockfileEntry:
        return dataclasses.replace(self, hash=new_hash)


@dataclass(slots=True)
class Lockfile:
    """Versioned ledger of tracked outputs.

    Entries iterate in key order so serialisation and reports are stable.

    Examples
    --------
    >>> ledger = Lockfile()
    >>> ledger.set(OutputKey.for_path("b.md"), LockfileEntry("sha256:1"))
    >>> ledger.set(OutputKey.for_path("a.md"), LockfileEntry("sha256:2"))
    >>> [str(key) for key, _ in ledger.items()]
    ['project:a.md', 'project:b.md']
    """

    version: int = SCHEMA_VERSION
    entries: dict[OutputKey, LockfileEntry] = field(default_factory=dict)

    def get(self, key: OutputKey) -> LockfileEntry | None:
        return self.entries.get(key)

    def set(self, key: OutputKey, entry: LockfileEntry) -> None:
        self.entries[key] = entry

    def remove(self, key: OutputKey) -> LockfileEntry | None:
        return self.entries.pop(key, None)

    def keys(self) -> set[OutputKey]:
        return set(self.entries)

    def items(self) -> Iterator[tuple[OutputKey, LockfileEntry]]:
        for key in sorted(self.entries):
            yield key, self.entries[key]

    def copy(self) -> Lockfile:
        return Lockfile(self.version, dict(self.entries))

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: object) -> bool:
        return key in self.entries
