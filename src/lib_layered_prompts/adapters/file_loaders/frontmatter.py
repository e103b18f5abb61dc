"""YAML frontmatter parsing for asset source files.

Every asset file starts with a ``---`` delimited YAML block followed by the
Markdown body. The block is parsed with ``yaml.safe_load``.
"""

from __future__ import annotations

from typing import Mapping

import yaml

from ...domain.errors import InvalidFormat
from ...observability import log_error

_DELIMITER = "---"


def split_frontmatter(text: str, *, path: str) -> tuple[Mapping[str, object], str]:
    """Return ``(metadata, body)`` for an asset document.

    Examples
    --------
    >>> meta, body = split_frontmatter("---\\ndescription: Style\\n---\\nUse tabs.\\n", path="a.md")
    >>> meta["description"], body
    ('Style', 'Use tabs.\\n')
    >>> split_frontmatter("no header", path="a.md")
    Traceback (most recent call last):
    ...
    lib_layered_prompts.domain.errors.InvalidFormat: Missing YAML frontmatter in a.md
    Hint: Start the file with a '---' line, the metadata, and a closing '---' line.
    """

    lines = text.lstrip("\ufeff").splitlines(keepends=True)
    if not lines or lines[0].strip() != _DELIMITER:
        raise _missing(path)
    for index in range(1, len(lines)):
        if lines[index].strip() == _DELIMITER:
            header = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            return _parse(header, path), body
    raise _missing(path)


def _parse(header: str, path: str) -> Mapping[str, object]:
    try:
        data = yaml.safe_load(header)
    except yaml.YAMLError as exc:
        log_error("frontmatter_invalid", layer="asset", path=path, error=str(exc))
        raise InvalidFormat(f"Invalid YAML frontmatter in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise InvalidFormat(f"Frontmatter in {path} did not produce a mapping")
    return data


def _missing(path: str) -> InvalidFormat:
    return InvalidFormat(
        f"Missing YAML frontmatter in {path}",
        remedy="Start the file with a '---' line, the metadata, and a closing '---' line.",
    )
