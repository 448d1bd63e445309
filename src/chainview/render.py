"""Render-surface interface and a headless in-memory implementation.

Lifecycle stores never draw directly; they describe geometry and hand it to
a :class:`RenderSurface`. Panes are addressed by string id, conventionally
``"{layerId}.{paneName}"``.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from typing import Protocol

from chainview.geo import GeoPoint


@dataclasses.dataclass(frozen=True, slots=True)
class HeatPoint:
    location: GeoPoint
    weight: float = 1.0


@dataclasses.dataclass(frozen=True, slots=True)
class PlotPoint:
    location: GeoPoint
    classification: int
    colour: str


@dataclasses.dataclass(frozen=True, slots=True)
class Polyline:
    points: tuple[GeoPoint, ...]
    colour: str = "#327F7F"
    weight: float = 1.0


@dataclasses.dataclass(frozen=True, slots=True)
class Circle:
    center: GeoPoint
    radius_m: float
    weight: float = 1.0


@dataclasses.dataclass(frozen=True, slots=True)
class Label:
    location: GeoPoint
    text: str


@dataclasses.dataclass(frozen=True, slots=True)
class Marker:
    """Track target symbol."""

    location: GeoPoint
    symbol: str
    colour: str
    bearing: float = 0.0
    text: str = ""


@dataclasses.dataclass(frozen=True, slots=True)
class Popup:
    location: GeoPoint
    text: str


@dataclasses.dataclass(frozen=True, slots=True)
class HotZone:
    location: GeoPoint


Geometry = HeatPoint | PlotPoint | Polyline | Circle | Label | Marker | Popup | HotZone


class RenderSurface(Protocol):
    def create_layer(self, pane_id: str) -> None: ...

    def remove_layer(self, pane_id: str) -> None: ...

    def set_entities(self, pane_id: str, geometry: Sequence[Geometry]) -> None: ...

    def add_entity(self, pane_id: str, entity_id: str, geometry: Geometry) -> None: ...

    def remove_entity(self, pane_id: str, entity_id: str) -> None: ...

    def set_opacity(self, pane_id: str, opacity: float) -> None: ...

    def set_visible(self, pane_id: str, visible: bool) -> None: ...

    def set_tile_source(self, pane_id: str, url: str) -> None: ...

    def recenter(self, origin: GeoPoint, radius_m: float) -> None: ...

    def set_count(self, layer_id: str, count: int) -> None: ...


@dataclasses.dataclass
class PaneState:
    opacity: float = 1.0
    visible: bool = True
    bulk: list[Geometry] = dataclasses.field(default_factory=list)
    entities: dict[str, Geometry] = dataclasses.field(default_factory=dict)
    tile_url: str | None = None


class InMemorySurface:
    """Records what a map renderer would be asked to draw."""

    def __init__(self) -> None:
        self.panes: dict[str, PaneState] = {}
        self.counts: dict[str, int] = {}
        self.center: GeoPoint | None = None
        self.radius_m: float | None = None

    def _pane(self, pane_id: str) -> PaneState:
        try:
            return self.panes[pane_id]
        except KeyError:
            raise KeyError(f"Unknown pane {pane_id!r}") from None

    def create_layer(self, pane_id: str) -> None:
        self.panes.setdefault(pane_id, PaneState())

    def remove_layer(self, pane_id: str) -> None:
        self.panes.pop(pane_id, None)

    def set_entities(self, pane_id: str, geometry: Sequence[Geometry]) -> None:
        self._pane(pane_id).bulk = list(geometry)

    def add_entity(self, pane_id: str, entity_id: str, geometry: Geometry) -> None:
        self._pane(pane_id).entities[entity_id] = geometry

    def remove_entity(self, pane_id: str, entity_id: str) -> None:
        self._pane(pane_id).entities.pop(entity_id, None)

    def set_opacity(self, pane_id: str, opacity: float) -> None:
        self._pane(pane_id).opacity = opacity

    def set_visible(self, pane_id: str, visible: bool) -> None:
        self._pane(pane_id).visible = visible

    def set_tile_source(self, pane_id: str, url: str) -> None:
        self._pane(pane_id).tile_url = url

    def recenter(self, origin: GeoPoint, radius_m: float) -> None:
        self.center = origin
        self.radius_m = radius_m

    def set_count(self, layer_id: str, count: int) -> None:
        self.counts[layer_id] = count

    def panes_for(self, layer_id: str) -> dict[str, PaneState]:
        prefix = f"{layer_id}."
        return {pane_id: pane for pane_id, pane in self.panes.items() if pane_id.startswith(prefix)}
