"""Ring-buffered density layers (heat-map cells and plots).

Points accumulate in the current generation of a fixed-size ring. Every
declared refresh period the ring advances: the oldest generation is cleared
and becomes current, so older scans fade out while new points always draw on
top. Rendering runs on its own one-second cadence so bursts of messages do
not cause per-message redraws.

The activity counter sums per-tick arrivals over a window of
``round(refreshPeriod)`` ticks. A tick's arrivals are ``current - last``;
when the ring has rotated since the previous tick (``last > current``) the
previous generation's size is added back in. This is a display metric and
can under-count when arrivals outpace a full rotation.
"""

from __future__ import annotations

import math
from collections import deque
from typing import ClassVar

from chainview._constants import LAYER_REFRESH_INTERVAL, SCAN_HISTORY, SCAN_LAYER_HISTORY
from chainview.geo import GeoPoint
from chainview.layers.base import PollPlan, StreamEngine
from chainview.models.interpretation import DisplayType
from chainview.render import HeatPoint, PlotPoint
from chainview.schema import DecodedRecord


def _window_length(refresh_period: float) -> int:
    return max(1, math.floor(refresh_period + 0.5))


def _tick_arrivals(last: int, current: int, previous: int) -> int:
    if last <= current:
        return current - last
    return previous + current - last


class HeatMapEngine(StreamEngine):
    """Heat-map cells: current scan plus the previous one."""

    display: ClassVar[DisplayType] = DisplayType.HEAT_MAP
    pane_names: ClassVar[tuple[str, ...]] = ("heatMapMarkerView",)
    opacity_divisor: ClassVar[float] = 4.0
    history: ClassVar[int] = SCAN_HISTORY

    def _clear_state(self) -> None:
        self._generations: list[list[HeatPoint]] = [[] for _ in range(self.history)]
        self._current = 0
        self._last_size = 0
        self._ticks: deque[int] = deque(maxlen=_window_length(self.refresh_period))
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    @property
    def current_generation(self) -> tuple[HeatPoint, ...]:
        return tuple(self._generations[self._current])

    @property
    def generations(self) -> tuple[tuple[HeatPoint, ...], ...]:
        """All generations, oldest first."""
        n = self.history
        return tuple(tuple(self._generations[(self._current + 1 + i) % n]) for i in range(n))

    def poll_plan(self) -> PollPlan:
        return [(self.refresh, LAYER_REFRESH_INTERVAL), (self.prune, self.refresh_period)]

    def _ingest(self, record: DecodedRecord) -> bool:
        weight = record.intensity if record.intensity is not None else 1.0
        self._generations[self._current].append(HeatPoint(record.location, weight))
        return True

    def prune(self) -> None:
        if self._disposed:
            return
        self._current = (self._current + 1) % self.history
        self._generations[self._current] = []

    def refresh(self) -> None:
        if self._disposed:
            return
        self._surface.set_entities(self.panes[0], [point for gen in self.generations for point in gen])

        active = len(self._generations[self._current])
        previous = len(self._generations[(self._current - 1) % self.history])
        self._ticks.append(_tick_arrivals(self._last_size, active, previous))
        self._last_size = active
        self._count = sum(self._ticks)
        self._surface.set_count(self.layer_id, self._count)


class PlotEngine(StreamEngine):
    """Classified plots over the last six scans, bucketed by classification."""

    display: ClassVar[DisplayType] = DisplayType.PLOT
    pane_names: ClassVar[tuple[str, ...]] = ("plotViews",)
    history: ClassVar[int] = SCAN_LAYER_HISTORY

    def _class_count(self) -> int:
        return len(self._interpretation.classifications) if self._interpretation is not None else 0

    def _clear_state(self) -> None:
        classes = self._class_count()
        self._generations: list[list[list[GeoPoint]]] = [[[] for _ in range(classes)] for _ in range(self.history)]
        self._current = 0
        self._last_sizes = [0] * classes
        self._ticks: deque[list[int]] = deque(maxlen=_window_length(self.refresh_period))
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    @property
    def current_generation(self) -> tuple[tuple[GeoPoint, ...], ...]:
        return tuple(tuple(bucket) for bucket in self._generations[self._current])

    @property
    def generations(self) -> tuple[tuple[tuple[GeoPoint, ...], ...], ...]:
        """All generations, oldest first, each as per-classification buckets."""
        n = self.history
        return tuple(
            tuple(tuple(bucket) for bucket in self._generations[(self._current + 1 + i) % n]) for i in range(n)
        )

    def points(self) -> list[PlotPoint]:
        """Every retained plot, oldest generation first."""
        interpretation = self._interpretation
        if interpretation is None:
            return []
        result: list[PlotPoint] = []
        for generation in self.generations:
            for index, bucket in enumerate(generation):
                colour = interpretation.classifications[index].colour
                result.extend(PlotPoint(location, index, colour) for location in bucket)
        return result

    def poll_plan(self) -> PollPlan:
        return [(self.refresh, LAYER_REFRESH_INTERVAL), (self.prune, self.refresh_period)]

    def _ingest(self, record: DecodedRecord) -> bool:
        classification = record.classification
        if classification is None or not 0 <= classification < self._class_count():
            return False
        self._generations[self._current][classification].append(record.location)
        return True

    def prune(self) -> None:
        if self._disposed:
            return
        self._current = (self._current + 1) % self.history
        self._generations[self._current] = [[] for _ in range(self._class_count())]

    def refresh(self) -> None:
        if self._disposed:
            return
        self._surface.set_entities(self.panes[0], self.points())

        current = self._generations[self._current]
        previous = self._generations[(self._current - 1) % self.history]
        tick: list[int] = []
        for index, bucket in enumerate(current):
            tick.append(_tick_arrivals(self._last_sizes[index], len(bucket), len(previous[index])))
            self._last_sizes[index] = len(bucket)
        self._ticks.append(tick)
        self._count = sum(sum(entry) for entry in self._ticks)
        self._surface.set_count(self.layer_id, self._count)
