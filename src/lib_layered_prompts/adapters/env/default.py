"""Environment variable adapter for the settings layer.

Purpose
-------
Translate ``LIB_LAYERED_PROMPTS_*`` process environment variables into nested
settings dictionaries. Forms the environment layer that sits between the
settings files and CLI flags.

Key behaviours
--------------
* Only variables carrying the prefix are captured.
* ``__`` nests keys (``LIB_LAYERED_PROMPTS_DEPLOY__CLEAN_ORPHANS`` becomes
  ``{"deploy": {"clean_orphans": ...}}``).
* Scalars are coerced to bool, int, float, or ``None``.
* Path-override variables consumed by the path resolver are not settings and
  are skipped.
"""

from __future__ import annotations

import os
from typing import Final, Mapping

from ...observability import log_debug

_RESERVED: Final[frozenset[str]] = frozenset({"HOME", "CONFIG_DIR", "MAC_HOME_ROOT", "APPDATA"})


def default_env_prefix(slug: str) -> str:
    """Return the canonical environment prefix for *slug*.

    Examples
    --------
    >>> default_env_prefix('lib-layered-prompts')
    'LIB_LAYERED_PROMPTS'
    """

    return slug.replace("-", "_").upper()


ENV_PREFIX: Final[str] = default_env_prefix("lib-layered-prompts")


class DefaultEnvLoader:
    """Load environment variables that belong to the settings namespace."""

    def __init__(self, *, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def load(self, prefix: str = ENV_PREFIX) -> dict[str, object]:
        """Return a nested mapping of variables starting with *prefix*.

        Keys are lower-cased so they line up with the TOML settings files.

        Examples
        --------
        >>> env = {
        ...     'LIB_LAYERED_PROMPTS_DEPLOY__CLEAN_ORPHANS': 'true',
        ...     'LIB_LAYERED_PROMPTS_REGISTRY__LOCK_TIMEOUT': '2.5',
        ...     'OTHER': 'x',
        ... }
        >>> payload = DefaultEnvLoader(environ=env).load()
        >>> payload['deploy']['clean_orphans'], payload['registry']['lock_timeout']
        (True, 2.5)
        """

        prefix = f"{prefix}_" if prefix and not prefix.endswith("_") else prefix
        collected: dict[str, object] = {}
        for key, value in self._environ.items():
            if not key.startswith(prefix):
                continue
            stripped = key[len(prefix) :]
            if not stripped or stripped in _RESERVED:
                continue
            assign_nested(collected, stripped, _coerce(value))
        log_debug("env_variables_loaded", layer="env", path=None, keys=sorted(collected.keys()))
        return collected


def assign_nested(target: dict[str, object], key: str, value: object) -> None:
    """Assign ``value`` inside ``target`` using ``__`` as a nesting delimiter.

    Examples
    --------
    >>> data: dict[str, object] = {}
    >>> assign_nested(data, 'WATCH__DEBOUNCE', 1)
    >>> data
    {'watch': {'debounce': 1}}
    """

    parts = [part.lower() for part in key.split("__")]
    cursor = target
    for part in parts[:-1]:
        child = cursor.setdefault(part, {})
        if not isinstance(child, dict):
            raise ValueError(f"Cannot override scalar with mapping for key {key}")
        cursor = child
    cursor[parts[-1]] = value


def _coerce(value: str) -> object:
    """Coerce textual environment values to Python primitives where possible.

    Examples
    --------
    >>> _coerce('false'), _coerce('-3'), _coerce('0.5'), _coerce('none'), _coerce('cursor')
    (False, -3, 0.5, None, 'cursor')
    """

    lowered = value.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if lowered in {"null", "none"}:
        return None
    if value.isdigit() or (value.startswith("-") and value[1:].isdigit()):
        return int(value)
    try:
        return float(value)
    except ValueError:
        return value
