"""Owner of all live layer engines and their poll handles."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator

from chainview._constants import DEFAULT_TILE_URL_DARK, DEFAULT_TILE_URL_LIGHT
from chainview.geo import GeoPoint
from chainview.keys import LayerKey
from chainview.layers.base import LayerEngine, StreamEngine
from chainview.layers.density import HeatMapEngine, PlotEngine
from chainview.layers.entities import StrobeEngine, TrackEngine
from chainview.layers.overlay import RosetteEngine, TileEngine
from chainview.models.interpretation import DisplayType, Interpretation
from chainview.preferences import OpacityLevel, PreferenceStore
from chainview.render import RenderSurface
from chainview.scheduling import HandleTable, Scheduler
from chainview.schema import RecordSchema

_logger = logging.getLogger(__name__)

STREAM_ENGINES: dict[DisplayType, type[StreamEngine]] = {
    DisplayType.HEAT_MAP: HeatMapEngine,
    DisplayType.PLOT: PlotEngine,
    DisplayType.STROBE: StrobeEngine,
    DisplayType.TRACK: TrackEngine,
}


class LayerRegistry:
    """Creates, looks up and tears down layer engines.

    Every periodic action an engine declares is armed here and recorded in a
    :class:`HandleTable` under the layer key, so disposing a layer (directly
    or through its subsystem/chain) always cancels its timers.
    """

    def __init__(
        self,
        surface: RenderSurface,
        scheduler: Scheduler,
        preferences: PreferenceStore,
        *,
        clock: Callable[[], float] = time.monotonic,
        tile_url_light: str = DEFAULT_TILE_URL_LIGHT,
        tile_url_dark: str = DEFAULT_TILE_URL_DARK,
    ) -> None:
        self._surface = surface
        self._scheduler = scheduler
        self._preferences = preferences
        self._clock = clock
        self._tile_url_light = tile_url_light
        self._tile_url_dark = tile_url_dark
        self._engines: dict[LayerKey, LayerEngine] = {}
        self._handles: HandleTable[LayerKey] = HandleTable()

    @property
    def handles(self) -> HandleTable[LayerKey]:
        return self._handles

    def __contains__(self, key: object) -> bool:
        return key in self._engines

    def __iter__(self) -> Iterator[LayerKey]:
        return iter(list(self._engines))

    def __len__(self) -> int:
        return len(self._engines)

    def get(self, key: LayerKey) -> LayerEngine | None:
        return self._engines.get(key)

    def stream(self, key: LayerKey) -> StreamEngine | None:
        engine = self._engines.get(key)
        return engine if isinstance(engine, StreamEngine) else None

    def _arm(self, key: LayerKey, engine: LayerEngine) -> None:
        for action, interval in engine.poll_plan():
            self._handles.add(key, self._scheduler.schedule(action, interval))

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def ensure_stream(
        self,
        key: LayerKey,
        interpretation: Interpretation,
        schema: RecordSchema,
        sensor_origin: GeoPoint,
    ) -> StreamEngine:
        """Return the engine for *key*, creating and starting it on first use."""
        existing = self.stream(key)
        if existing is not None:
            return existing

        engine_cls = STREAM_ENGINES[schema.display]
        engine = engine_cls(key, self._surface, clock=self._clock)
        engine.initialize(interpretation, schema, sensor_origin, self._preferences.get(key.layer_id))
        self._engines[key] = engine
        self._arm(key, engine)
        _logger.debug("Layer started layer=%s display=%s", key.layer_id, schema.display)
        return engine

    def ensure_rosette(self, chain_id: str, origin: GeoPoint, range_m: float) -> RosetteEngine:
        """(Re)build the rosette overlay for *chain_id*."""
        key = LayerKey.rosette(chain_id)
        engine = self._engines.get(key)
        if not isinstance(engine, RosetteEngine):
            engine = RosetteEngine(key, self._surface)
            self._engines[key] = engine
        engine.initialize(origin, range_m, self._preferences.get(key.layer_id))
        return engine

    def ensure_world_map(self, day_mode: bool) -> TileEngine:
        key = LayerKey.world_map()
        engine = self._engines.get(key)
        if isinstance(engine, TileEngine):
            return engine
        engine = TileEngine(key, self._surface, light_url=self._tile_url_light, dark_url=self._tile_url_dark)
        engine.initialize(day_mode, self._preferences.get(key.layer_id))
        self._engines[key] = engine
        return engine

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def enqueue(self, key: LayerKey, line: str) -> bool:
        engine = self.stream(key)
        if engine is None:
            return False
        return engine.enqueue(line)

    def set_opacity(self, key: LayerKey, level: OpacityLevel | int) -> None:
        engine = self._engines.get(key)
        if engine is not None:
            engine.set_opacity(level)

    def set_visible(self, key: LayerKey, visible: bool) -> None:
        engine = self._engines.get(key)
        if engine is not None:
            engine.set_visible(visible)

    def set_day_mode(self, day_mode: bool) -> None:
        engine = self._engines.get(LayerKey.world_map())
        if isinstance(engine, TileEngine):
            engine.set_day_mode(day_mode)

    def set_sensor_origin(self, chain_id: str, origin: GeoPoint) -> None:
        for key, engine in self._engines.items():
            if key.chain_id == chain_id and isinstance(engine, StreamEngine):
                engine.set_sensor_origin(origin)

    def persist_preferences(self) -> None:
        """Write every live layer's opacity/visibility to the preference store."""
        for key, engine in self._engines.items():
            self._preferences.put(key.layer_id, engine.preference)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def dispose(self, key: LayerKey) -> bool:
        cancelled = self._handles.cancel(key)
        engine = self._engines.pop(key, None)
        if engine is None:
            return False
        engine.dispose()
        _logger.debug("Layer disposed layer=%s cancelled_handles=%d", key.layer_id, cancelled)
        return True

    def dispose_where(self, predicate: Callable[[LayerKey], bool]) -> int:
        keys = [key for key in self._engines if predicate(key)]
        for key in keys:
            self.dispose(key)
        return len(keys)

    def dispose_subsystem(self, chain_id: str, subsystem_id: str) -> int:
        return self.dispose_where(lambda key: key.chain_id == chain_id and key.subsystem_id == subsystem_id)

    def dispose_chain(self, chain_id: str) -> int:
        return self.dispose_where(lambda key: key.chain_id == chain_id)

    def dispose_all(self) -> None:
        self.dispose_where(lambda _key: True)
        self._handles.cancel_all()
