"""Content hashing and the ownership marker embedded in generated files.

Skill folders are hashed as one unit: each file is hashed on its own, then the
sorted ``<relative path>\\0<file hash>\\n`` lines are hashed again. The result does
not depend on the order files are produced or listed in.
"""

from __future__ import annotations

import hashlib
from typing import Final, Mapping

HASH_PREFIX: Final[str] = "sha256:"
OWNERSHIP_MARKER: Final[str] = "Generated by lib_layered_prompts"
_MARKER_BYTES: Final[bytes] = OWNERSHIP_MARKER.encode("utf-8")


def content_hash(content: bytes | str) -> str:
    """Return the prefixed SHA-256 hash of *content*.

    Examples
    --------
    >>> content_hash("abc")[:15]
    'sha256:ba7816b'
    """

    data = content.encode("utf-8") if isinstance(content, str) else content
    return HASH_PREFIX + hashlib.sha256(data).hexdigest()


def folder_hash(files: Mapping[str, bytes | str]) -> str:
    """Return the combined hash of a folder given ``relative path -> content``.

    Examples
    --------
    >>> folder_hash({"a": "1", "b": "2"}) == folder_hash({"b": "2", "a": "1"})
    True
    """

    lines = sorted(f"{path}\0{content_hash(content)}\n" for path, content in files.items())
    return content_hash("".join(lines))


def has_ownership_marker(content: bytes | str) -> bool:
    data = content.encode("utf-8") if isinstance(content, str) else content
    return _MARKER_BYTES in data


def ownership_footer(source_file: str) -> str:
    """Return the marker comment appended to every generated text file."""

    return f"<!-- {OWNERSHIP_MARKER}. Source: {source_file}. DO NOT EDIT. -->"
