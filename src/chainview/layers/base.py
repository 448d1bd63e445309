"""Common lifecycle for per-layer render engines.

Every engine owns one or more render panes named ``"{layerId}.{pane}"``.
Engines never schedule themselves: :meth:`LayerEngine.poll_plan` describes
the periodic actions and the :class:`~chainview.layers.registry.LayerRegistry`
arms them, so teardown can cancel every timer a layer owns.
"""

from __future__ import annotations

import abc
import logging
import math
import time
from collections.abc import Callable
from typing import ClassVar

from chainview.geo import GeoPoint
from chainview.keys import LayerKey
from chainview.models.interpretation import DisplayType, Interpretation
from chainview.preferences import DEFAULT_PREFERENCE, LayerPreference, OpacityLevel
from chainview.render import RenderSurface
from chainview.schema import DecodedRecord, RecordSchema

_logger = logging.getLogger(__name__)

PollPlan = list[tuple[Callable[[], None], float]]

UNSET_ORIGIN = GeoPoint(math.nan, math.nan)


def opacity_for(level: OpacityLevel | int, divisor: float) -> float:
    """Map a three-step opacity level to a render opacity."""
    return (1 + int(level)) / divisor


class LayerEngine(abc.ABC):
    """Base for every layer engine."""

    display: ClassVar[DisplayType]
    pane_names: ClassVar[tuple[str, ...]]
    opacity_divisor: ClassVar[float] = 3.0

    def __init__(
        self,
        key: LayerKey,
        surface: RenderSurface,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.key = key
        self._surface = surface
        self._clock = clock
        self._opacity = DEFAULT_PREFERENCE.opacity
        self._visible = DEFAULT_PREFERENCE.is_visible
        self._panes_created = False
        self._disposed = False

    @property
    def layer_id(self) -> str:
        return self.key.layer_id

    @property
    def panes(self) -> tuple[str, ...]:
        return tuple(f"{self.layer_id}.{name}" for name in self.pane_names)

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def preference(self) -> LayerPreference:
        return LayerPreference(opacity=self._opacity, is_visible=self._visible)

    @property
    def count(self) -> int:
        return 0

    def _ensure_panes(self) -> None:
        if self._panes_created:
            return
        for pane_id in self.panes:
            self._surface.create_layer(pane_id)
        self._panes_created = True

    def apply_preference(self, preference: LayerPreference) -> None:
        self.set_opacity(preference.opacity)
        self.set_visible(preference.is_visible)

    def set_opacity(self, level: OpacityLevel | int) -> None:
        self._opacity = OpacityLevel(level)
        if not self._panes_created:
            return
        opacity = opacity_for(self._opacity, self.opacity_divisor)
        for pane_id in self.panes:
            self._surface.set_opacity(pane_id, opacity)

    def set_visible(self, visible: bool) -> None:
        self._visible = bool(visible)
        if not self._panes_created:
            return
        for pane_id in self.panes:
            self._surface.set_visible(pane_id, self._visible)

    def poll_plan(self) -> PollPlan:
        """Periodic ``(action, interval_seconds)`` pairs for this layer."""
        return []

    def refresh(self) -> None:  # noqa: B027
        """Push buffered state to the surface."""

    def prune(self) -> None:  # noqa: B027
        """Drop aged state."""

    def dispose(self) -> None:
        """Drop all state and remove every pane this engine created."""
        if self._disposed:
            return
        self._disposed = True
        self._clear_state()
        if self._panes_created:
            for pane_id in self.panes:
                self._surface.remove_layer(pane_id)
        self._panes_created = False

    def _clear_state(self) -> None:  # noqa: B027
        pass


class StreamEngine(LayerEngine):
    """Engine fed by a record stream declared through an interpretation."""

    def __init__(
        self,
        key: LayerKey,
        surface: RenderSurface,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(key, surface, clock=clock)
        self._interpretation: Interpretation | None = None
        self._schema: RecordSchema | None = None
        self._sensor_origin = UNSET_ORIGIN
        self._clear_state()

    @property
    def interpretation(self) -> Interpretation | None:
        return self._interpretation

    @property
    def schema(self) -> RecordSchema | None:
        return self._schema

    @property
    def refresh_period(self) -> float:
        return self._interpretation.refresh_period if self._interpretation is not None else 1.0

    def initialize(
        self,
        interpretation: Interpretation,
        schema: RecordSchema,
        sensor_origin: GeoPoint,
        preference: LayerPreference = DEFAULT_PREFERENCE,
    ) -> None:
        self._ensure_panes()
        self._interpretation = interpretation
        self._schema = schema
        self._sensor_origin = sensor_origin
        self._clear_state()
        self.apply_preference(preference)

    def set_sensor_origin(self, origin: GeoPoint) -> None:
        self._sensor_origin = origin

    def enqueue(self, line: str) -> bool:
        """Decode and ingest one record line; return whether it was accepted."""
        if self._disposed or self._schema is None or not line.strip():
            return False
        record = self._schema.decode(line, self._sensor_origin)
        if record is None:
            _logger.debug("Dropping record not matching schema layer=%s line=%r", self.layer_id, line)
            return False
        return self._ingest(record)

    @abc.abstractmethod
    def _ingest(self, record: DecodedRecord) -> bool: ...
