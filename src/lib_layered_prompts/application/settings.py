"""Settings merge policy and validation.

Purpose
-------
Combine settings sources (defaults → user file → project file → environment)
into one mapping while tracking which source set each dotted key, then convert
the mapping into a typed :class:`~lib_layered_prompts.domain.settings.Settings`.

Contents
    - ``merge_sources``: deep merge with per-key provenance.
    - ``build_settings``: validation and conversion; unknown keys are ignored,
      wrong types raise :class:`ConfigurationError`.

System Role
-----------
Called by :func:`lib_layered_prompts.core.load_settings`. CLI flags are applied
on top of the returned :class:`Settings` by the CLI itself.
"""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from pathlib import Path
from typing import Iterable

from ..domain.errors import ConfigurationError
from ..domain.models import Target
from ..domain.settings import DEFAULTS, LayerSettings, Settings

Source = tuple[str, Mapping[str, object], "str | None"]


def merge_sources(
    sources: Iterable[Source],
) -> tuple[dict[str, object], dict[str, dict[str, object]]]:
    """Deep-merge settings *sources*, lowest precedence first.

    Returns
    -------
    tuple[dict, dict]
        ``(merged, origins)`` where ``origins`` maps dotted keys to
        ``{"layer", "path", "key"}``. Lists and scalars replace earlier values
        wholesale; tables merge key by key.

    Examples
    --------
    >>> merged, origins = merge_sources([
    ...     ("defaults", {"deploy": {"clean_orphans": False, "targets": ["cursor"]}}, None),
    ...     ("env", {"deploy": {"clean_orphans": True}}, None),
    ... ])
    >>> merged["deploy"], origins["deploy.clean_orphans"]["layer"]
    ({'clean_orphans': True, 'targets': ['cursor']}, 'env')
    """

    merged: dict[str, object] = {}
    origins: dict[str, dict[str, object]] = {}
    for name, payload, path in sources:
        _merge_into(merged, origins, deepcopy(dict(payload)), name, path, ())
    return merged, origins


def _merge_into(
    target: dict[str, object],
    origins: dict[str, dict[str, object]],
    incoming: Mapping[str, object],
    layer: str,
    path: str | None,
    segments: tuple[str, ...],
) -> None:
    for key, value in incoming.items():
        dotted = ".".join((*segments, key))
        if isinstance(value, Mapping):
            existing = target.get(key)
            if not isinstance(existing, dict):
                _forget(origins, dotted)
                existing = {}
                target[key] = existing
            _merge_into(existing, origins, value, layer, path, (*segments, key))
            continue
        _forget(origins, dotted)
        target[key] = value
        origins[dotted] = {"layer": layer, "path": path, "key": dotted}


def _forget(origins: dict[str, dict[str, object]], prefix: str) -> None:
    """Drop provenance for *prefix* and everything nested below it."""

    for key in [key for key in origins if key == prefix or key.startswith(prefix + ".")]:
        del origins[key]


def build_settings(merged: Mapping[str, object], origins: Mapping[str, Mapping[str, object]] | None = None) -> Settings:
    """Validate *merged* (already layered over :data:`DEFAULTS`) into :class:`Settings`.

    Examples
    --------
    >>> settings = build_settings({"deploy": {"targets": "cursor, codex"}})
    >>> [target.value for target in settings.targets]
    ['cursor', 'codex']
    >>> build_settings({"watch": {"debounce": "soon"}})
    Traceback (most recent call last):
    ...
    lib_layered_prompts.domain.errors.ConfigurationError: Setting watch.debounce must be a number, got 'soon'
    """

    layers = _section(merged, "layers")
    deploy = _section(merged, "deploy")
    registry = _section(merged, "registry")
    watch = _section(merged, "watch")

    user_layer = _optional_path(layers, "layers", "user_layer")
    registry_path = _optional_path(registry, "registry", "path")
    return Settings(
        layers=LayerSettings(
            user_layer=user_layer,
            additional=tuple(Path(item) for item in _string_list(layers, "layers", "additional")),
            use_user_layer=_bool(layers, "layers", "use_user_layer"),
            use_additional=_bool(layers, "layers", "use_additional"),
            use_project_layer=_bool(layers, "layers", "use_project_layer"),
            project_layer=_string(layers, "layers", "project_layer"),
        ),
        targets=tuple(dict.fromkeys(Target.parse(item) for item in _string_list(deploy, "deploy", "targets"))),
        clean_orphans=_bool(deploy, "deploy", "clean_orphans"),
        registry_path=registry_path,
        lock_timeout=_number(registry, "registry", "lock_timeout"),
        debounce=_number(watch, "watch", "debounce"),
        poll_interval=_number(watch, "watch", "poll_interval"),
        origins=dict(origins or {}),
    )


def _section(merged: Mapping[str, object], name: str) -> dict[str, object]:
    defaults = dict(DEFAULTS[name])
    value = merged.get(name, {})
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Setting [{name}] must be a table")
    defaults.update(value)
    return defaults


def _value(section: Mapping[str, object], table: str, key: str) -> object:
    return section.get(key, DEFAULTS[table][key])


def _bool(section: Mapping[str, object], table: str, key: str) -> bool:
    value = _value(section, table, key)
    if not isinstance(value, bool):
        raise ConfigurationError(f"Setting {table}.{key} must be true or false, got {value!r}")
    return value


def _number(section: Mapping[str, object], table: str, key: str) -> float:
    value = _value(section, table, key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"Setting {table}.{key} must be a number, got {value!r}")
    if value < 0:
        raise ConfigurationError(f"Setting {table}.{key} must not be negative, got {value!r}")
    return float(value)


def _string(section: Mapping[str, object], table: str, key: str) -> str:
    value = _value(section, table, key)
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"Setting {table}.{key} must be a non-empty string, got {value!r}")
    return value


def _optional_path(section: Mapping[str, object], table: str, key: str) -> Path | None:
    value = _value(section, table, key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"Setting {table}.{key} must be a path string, got {value!r}")
    return Path(value)


def _string_list(section: Mapping[str, object], table: str, key: str) -> list[str]:
    value = _value(section, table, key)
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigurationError(f"Setting {table}.{key} must be a list of strings, got {value!r}")
    return list(value)
