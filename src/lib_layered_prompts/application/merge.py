"""Application-layer merge policy for prompt assets.

Purpose
-------
Collapse the assets of an ordered layer stack into one winner per identifier,
recording every override. Remains free of I/O so it can be reused by the
``layers`` report, dry runs and the deploy pipeline alike.

Contents
    - ``merge_layers``: public entry point driven by a simple loop.
    - ``MergeResult``: winners in identifier order plus the override log.

System Role
-----------
Receives loaded layers from :mod:`lib_layered_prompts.application.deploy`,
applies precedence (user → additional → project), and hands winners to the
target adapters. Winners are replaced wholesale; no field of a losing asset
survives.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from ..domain.models import Layer, MergedAsset, OverrideInfo
from ..observability import log_debug, make_event


@dataclass(slots=True)
class MergeResult:
    assets: list[MergedAsset] = field(default_factory=list)
    overrides: list[OverrideInfo] = field(default_factory=list)

    def get(self, identifier: str) -> MergedAsset | None:
        return next((merged for merged in self.assets if merged.identifier == identifier), None)


def merge_layers(layers: Iterable[Layer]) -> MergeResult:
    """Merge asset *layers* (lowest priority first) by identifier.

    Why
    ----
    Override semantics must be predictable and auditable, so the merge never
    looks inside asset content.

    Returns
    -------
    MergeResult
        Winners sorted by identifier and overrides in the order they happened.

    Examples
    --------
    >>> from pathlib import Path
    >>> from lib_layered_prompts.domain.models import Asset, AssetKind, LayerKind, LayerPath
    >>> def layer(name, kind, *ids):
    ...     path = LayerPath(Path(name), Path(name))
    ...     assets = tuple(Asset(i, AssetKind.POLICY, "d", name, f"{i}.md") for i in ids)
    ...     return Layer(name, path, kind, assets)
    >>> result = merge_layers([layer("user", LayerKind.USER, "style"), layer("project", LayerKind.PROJECT, "style", "extra")])
    >>> [(m.identifier, m.layer_name, m.overrides) for m in result.assets]
    [('extra', 'project', None), ('style', 'project', 'user')]
    """

    winners: dict[str, MergedAsset] = {}
    overrides: list[OverrideInfo] = []

    for layer in layers:
        for asset in layer.assets:
            previous = winners.get(asset.identifier)
            overridden = None
            if previous is not None:
                overridden = previous.layer_name
                overrides.append(OverrideInfo(asset.identifier, previous.layer_name, layer.name))
                log_debug(
                    "asset_overridden",
                    **make_event(layer.name, asset.source_file, {"asset": asset.identifier, "previous": previous.layer_name}),
                )
            winners[asset.identifier] = MergedAsset(asset, layer.name, layer.path.resolved, overridden)

    ordered = [winners[identifier] for identifier in sorted(winners)]
    return MergeResult(ordered, overrides)
