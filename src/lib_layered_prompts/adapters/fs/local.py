"""Local disk implementation of the :class:`FileSystem` port.

Purpose
-------
Map project-relative and ``~/`` paths onto real files and make every write
crash-safe (temporary file in the same directory, ``fsync``, ``os.replace``).

Contents
--------
* :func:`atomic_write_bytes` – shared by the lockfile and registry adapters.
* :class:`LocalFileSystem` – the file capability used for local deploys.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from ...observability import log_debug


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write *data* to *path* atomically, creating parent directories.

    Examples
    --------
    >>> import tempfile
    >>> target = Path(tempfile.mkdtemp()) / "nested" / "out.txt"
    >>> atomic_write_bytes(target, b"hello")
    >>> target.read_bytes()
    b'hello'
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile("wb", dir=str(path.parent), prefix=f".{path.name}.", delete=False) as handle:
            tmp_path = Path(handle.name)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
        tmp_path = None
    finally:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)


class LocalFileSystem:
    """File capability rooted at a project directory.

    Parameters
    ----------
    root:
        Directory that project-relative paths are resolved against.
    home:
        Directory substituted for a leading ``~``.
    """

    def __init__(self, root: Path, home: Path) -> None:
        self.root = root
        self.home = home

    def resolve(self, path: str) -> Path:
        """Return the absolute location of *path*.

        Examples
        --------
        >>> fs = LocalFileSystem(Path("/project"), Path("/home/me"))
        >>> fs.resolve("~/.claude/rules/a.md").as_posix()
        '/home/me/.claude/rules/a.md'
        >>> fs.resolve(".cursor/commands/b.md").as_posix()
        '/project/.cursor/commands/b.md'
        """

        if path == "~":
            return self.home
        if path.startswith("~/"):
            return self.home / path[2:]
        return self.root / path

    def exists(self, path: str) -> bool:
        return self.resolve(path).exists()

    def read(self, path: str) -> bytes:
        return self.resolve(path).read_bytes()

    def write(self, path: str, content: str) -> None:
        self.write_binary(path, content.encode("utf-8"))

    def write_binary(self, path: str, content: bytes) -> None:
        target = self.resolve(path)
        atomic_write_bytes(target, content)
        log_debug("file_written", layer="fs", path=str(target), size=len(content))

    def remove(self, path: str) -> None:
        target = self.resolve(path)
        target.unlink(missing_ok=True)
        _prune_empty_parents(target.parent, stop=self._anchor(path))
        log_debug("file_removed", layer="fs", path=str(target))

    def remove_tree(self, path: str) -> None:
        target = self.resolve(path)
        if target.is_dir():
            shutil.rmtree(target)
        _prune_empty_parents(target.parent, stop=self._anchor(path))
        log_debug("tree_removed", layer="fs", path=str(target))

    def list_files(self, path: str) -> list[str]:
        base = self.resolve(path)
        if not base.is_dir():
            return []
        return sorted(item.relative_to(base).as_posix() for item in base.rglob("*") if item.is_file())

    def _anchor(self, path: str) -> Path:
        return self.home if path.startswith("~") else self.root


def snapshot_directories(directories: list[Path]) -> frozenset[tuple[str, int, int]]:
    """Fingerprint every non-hidden file below *directories* by mtime and size.

    Missing directories contribute nothing, so a layer appearing later counts as
    a change.
    """

    entries: set[tuple[str, int, int]] = set()
    for directory in directories:
        if not directory.is_dir():
            continue
        for item in directory.rglob("*"):
            if any(part.startswith(".") for part in item.relative_to(directory).parts):
                continue
            try:
                stat = item.stat()
            except FileNotFoundError:
                continue
            if item.is_file():
                entries.add((str(item), stat.st_mtime_ns, stat.st_size))
    return frozenset(entries)


def _prune_empty_parents(directory: Path, *, stop: Path) -> None:
    """Remove now-empty directories up to (not including) *stop*."""

    current = directory
    while current != stop and stop in current.parents:
        try:
            current.rmdir()
        except OSError:
            return
        current = current.parent
