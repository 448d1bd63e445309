"""Static overlays: the range/azimuth rosette and the base map tiles."""

from __future__ import annotations

import math
from typing import ClassVar

from chainview._constants import DEFAULT_TILE_URL_DARK, DEFAULT_TILE_URL_LIGHT
from chainview.geo import GeoPoint, destination
from chainview.keys import LayerKey
from chainview.layers.base import LayerEngine, opacity_for
from chainview.models.interpretation import DisplayType
from chainview.preferences import DEFAULT_PREFERENCE, LayerPreference, OpacityLevel
from chainview.render import Circle, Geometry, Label, Polyline, RenderSurface

MAJOR_RING_SPACING_M = 1_000
MINOR_RING_SPACING_M = 500
TRIVIAL_RING_SPACING_M = 100
TRIVIAL_RING_LIMIT_M = 3_000
MAJOR_SPOKE_SPACING_DEG = 90
MINOR_SPOKE_SPACING_DEG = 30
MAJOR_SPOKE_LABEL_FACTOR = 1.06
MINOR_SPOKE_LABEL_FACTOR = 1.04


class RosetteEngine(LayerEngine):
    """Range rings and azimuth spokes around a chain's sensor origin.

    Every :meth:`initialize` clears the previous overlay and rebuilds it
    from scratch. A non-positive or NaN range, or a NaN origin, leaves the
    overlay empty.
    """

    display: ClassVar[DisplayType] = DisplayType.ROSETTE
    pane_names: ClassVar[tuple[str, ...]] = (
        "majorLineViews",
        "minorLineViews",
        "trivialLineViews",
        "labelViews",
    )

    def __init__(self, key: LayerKey, surface: RenderSurface) -> None:
        super().__init__(key, surface)
        self.origin: GeoPoint | None = None
        self.range_m = 0.0
        self._drawn: dict[str, list[Geometry]] = {}

    def drawn(self, pane_name: str) -> list[Geometry]:
        return list(self._drawn.get(pane_name, []))

    def initialize(
        self,
        origin: GeoPoint,
        range_m: float,
        preference: LayerPreference = DEFAULT_PREFERENCE,
    ) -> None:
        self._ensure_panes()
        self.apply_preference(preference)
        self.origin = origin
        self.range_m = range_m
        self._clear_state()

        if math.isnan(range_m) or range_m <= 0 or not origin.is_finite:
            self._push()
            return

        major: list[Geometry] = []
        minor: list[Geometry] = []
        trivial: list[Geometry] = []
        labels: list[Geometry] = []

        full_km = range_m / MAJOR_RING_SPACING_M
        ring = 1
        while ring <= full_km:
            radius = ring * MAJOR_RING_SPACING_M
            major.append(Circle(origin, radius, 2.0))
            labels.extend(
                Label(destination(origin, quadrant * MAJOR_SPOKE_SPACING_DEG, radius), f"{round(radius / 1000)}")
                for quadrant in range(4)
            )
            ring += 1

        half_rings = 2 * full_km - 1
        ring = 1
        while ring <= half_rings:
            minor.append(Circle(origin, ring * MINOR_RING_SPACING_M))
            ring += 2

        trivial_limit = min(TRIVIAL_RING_LIMIT_M, range_m) / TRIVIAL_RING_SPACING_M
        ring = 1
        while ring < trivial_limit:
            radius = ring * TRIVIAL_RING_SPACING_M
            if radius % MINOR_RING_SPACING_M != 0:
                trivial.append(Circle(origin, radius))
            ring += 1

        for azimuth in range(0, 360, MINOR_SPOKE_SPACING_DEG):
            spoke = Polyline((origin, destination(origin, azimuth, range_m)))
            if azimuth % MAJOR_SPOKE_SPACING_DEG == 0:
                major.append(Polyline(spoke.points, weight=2.0))
                labels.append(Label(destination(origin, azimuth, range_m * MAJOR_SPOKE_LABEL_FACTOR), f"{azimuth}"))
            else:
                minor.append(spoke)
                labels.append(Label(destination(origin, azimuth, range_m * MINOR_SPOKE_LABEL_FACTOR), f"{azimuth}"))

        self._drawn = dict(zip(self.pane_names, (major, minor, trivial, labels), strict=True))
        self._push()

    def _push(self) -> None:
        for pane_name, pane_id in zip(self.pane_names, self.panes, strict=True):
            self._surface.set_entities(pane_id, self._drawn.get(pane_name, []))

    def _clear_state(self) -> None:
        self._drawn = {}


class TileEngine(LayerEngine):
    """Base map tile source, switched between day and night styles.

    Hiding the layer drops its opacity to zero rather than hiding the pane.
    """

    display: ClassVar[DisplayType] = DisplayType.TILE
    pane_names: ClassVar[tuple[str, ...]] = ("tileViews",)

    def __init__(
        self,
        key: LayerKey,
        surface: RenderSurface,
        *,
        light_url: str = DEFAULT_TILE_URL_LIGHT,
        dark_url: str = DEFAULT_TILE_URL_DARK,
    ) -> None:
        super().__init__(key, surface)
        self._light_url = light_url
        self._dark_url = dark_url
        self.day_mode = False

    @property
    def url(self) -> str:
        return self._light_url if self.day_mode else self._dark_url

    def initialize(self, day_mode: bool, preference: LayerPreference = DEFAULT_PREFERENCE) -> None:
        self._ensure_panes()
        self.set_day_mode(day_mode)
        self.apply_preference(preference)

    def set_day_mode(self, day_mode: bool) -> None:
        self.day_mode = bool(day_mode)
        if self._panes_created:
            self._surface.set_tile_source(self.panes[0], self.url)

    def set_opacity(self, level: OpacityLevel | int) -> None:
        self._opacity = OpacityLevel(level)
        self._apply_tile_opacity()

    def set_visible(self, visible: bool) -> None:
        self._visible = bool(visible)
        self._apply_tile_opacity()

    def _apply_tile_opacity(self) -> None:
        if not self._panes_created:
            return
        opacity = opacity_for(self._opacity, self.opacity_divisor) if self._visible else 0.0
        self._surface.set_opacity(self.panes[0], opacity)
