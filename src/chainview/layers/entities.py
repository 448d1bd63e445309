"""Keyed-entity layers: strobes and tracks.

Entities are keyed by the identifier their source declares. Each ingest
creates or updates the entity in place and stamps ``last_update``; a
one-second prune evicts every entity idle for ``4 × refreshPeriod`` and
removes all visuals it owns.
"""

from __future__ import annotations

import abc
import dataclasses
import logging
from collections import deque
from typing import ClassVar

from chainview._constants import (
    ENTITY_TIMEOUT_PERIODS,
    LAYER_REFRESH_INTERVAL,
    TRACK_SYMBOLS,
    TRAIL_HISTORY_LIMIT,
    palette_colour,
)
from chainview.geo import GeoPoint
from chainview.layers.base import PollPlan, StreamEngine
from chainview.models.interpretation import Classification, DisplayType
from chainview.render import HotZone, Marker, Polyline, Popup
from chainview.schema import DecodedRecord

_logger = logging.getLogger(__name__)

_DEFAULT_CLASSIFICATION = Classification()


@dataclasses.dataclass
class StrobeEntity:
    origin: GeoPoint | None
    location: GeoPoint
    colour: str
    last_update: float


@dataclasses.dataclass
class TrackEntity:
    location: GeoPoint
    history: deque[GeoPoint]
    colour: str
    symbol: str
    speed: float | None
    bearing: float | None
    info: str
    last_update: float

    @property
    def has_trail(self) -> bool:
        return len(self.history) >= 2


class _KeyedEngine(StreamEngine):
    _entities: dict[str, StrobeEntity] | dict[str, TrackEntity]

    @property
    def count(self) -> int:
        return len(self._entities)

    @property
    def timeout(self) -> float:
        return ENTITY_TIMEOUT_PERIODS * self.refresh_period

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entities

    def _classification(self, record: DecodedRecord) -> Classification:
        if self._interpretation is None:
            return _DEFAULT_CLASSIFICATION
        return self._interpretation.classification(record.classification) or _DEFAULT_CLASSIFICATION

    def _touch(self, previous: float | None) -> float:
        now = self._clock()
        return now if previous is None else max(previous, now)

    def poll_plan(self) -> PollPlan:
        return [(self.prune, LAYER_REFRESH_INTERVAL)]

    def refresh(self) -> None:
        if not self._disposed:
            self._surface.set_count(self.layer_id, self.count)

    def prune(self) -> None:
        if self._disposed:
            return
        now = self._clock()
        stale = [key for key, entity in self._entities.items() if now - entity.last_update > self.timeout]
        if not stale:
            return
        for key in stale:
            self._remove(key)
        _logger.debug("Evicted %d stale entities layer=%s", len(stale), self.layer_id)
        self._surface.set_count(self.layer_id, self.count)

    @abc.abstractmethod
    def _remove(self, key: str) -> None: ...

    def _clear_state(self) -> None:
        if self._panes_created:
            for key in list(getattr(self, "_entities", {})):
                self._remove(key)
        self._entities = {}


class StrobeEngine(_KeyedEngine):
    """Directional detections drawn as a line from origin to target."""

    display: ClassVar[DisplayType] = DisplayType.STROBE
    pane_names: ClassVar[tuple[str, ...]] = ("strobeViews",)

    _entities: dict[str, StrobeEntity]

    def entity(self, identifier: str) -> StrobeEntity | None:
        return self._entities.get(identifier)

    def _ingest(self, record: DecodedRecord) -> bool:
        identifier = record.identifier
        if identifier is None:
            return False
        colour = self._classification(record).colour
        existing = self._entities.get(identifier)
        if existing is None:
            entity = StrobeEntity(record.origin, record.location, colour, self._touch(None))
            self._entities[identifier] = entity
            self._surface.set_count(self.layer_id, self.count)
        else:
            existing.origin = record.origin
            existing.location = record.location
            existing.colour = colour
            existing.last_update = self._touch(existing.last_update)
            entity = existing

        points = (entity.origin, entity.location) if entity.origin is not None else (entity.location,)
        self._surface.add_entity(self.panes[0], identifier, Polyline(points, entity.colour, 3.0))
        return True

    def _remove(self, key: str) -> None:
        self._entities.pop(key, None)
        self._surface.remove_entity(self.panes[0], key)


def track_label(identifier: str, speed: float | None, bearing: float | None) -> str:
    speed_text = f"{round(speed):04d}" if speed is not None else "-"
    bearing_text = f"{round(bearing):03d}" if bearing is not None else "-"
    return f"TN:{identifier or '-'} {speed_text}/{bearing_text}"


class TrackEngine(_KeyedEngine):
    """Persistent targets with a bounded position trail."""

    display: ClassVar[DisplayType] = DisplayType.TRACK
    pane_names: ClassVar[tuple[str, ...]] = (
        "trackHotZoneViews",
        "trackTrailViews",
        "trackTargetViews",
        "trackPopupViews",
    )

    _entities: dict[str, TrackEntity]

    @property
    def hot_zone_pane(self) -> str:
        return self.panes[0]

    @property
    def trail_pane(self) -> str:
        return self.panes[1]

    @property
    def target_pane(self) -> str:
        return self.panes[2]

    @property
    def popup_pane(self) -> str:
        return self.panes[3]

    def entity(self, identifier: str) -> TrackEntity | None:
        return self._entities.get(identifier)

    def _ingest(self, record: DecodedRecord) -> bool:
        identifier = record.identifier
        if identifier is None:
            return False
        classification = self._classification(record)
        colour = palette_colour(classification.palette_index)
        symbol = TRACK_SYMBOLS[classification.symbol_index % len(TRACK_SYMBOLS)]
        info = record.info or ""

        track = self._entities.get(identifier)
        if track is None:
            track = TrackEntity(
                location=record.location,
                history=deque([record.location], maxlen=TRAIL_HISTORY_LIMIT),
                colour=colour,
                symbol=symbol,
                speed=record.speed,
                bearing=record.bearing,
                info=info,
                last_update=self._touch(None),
            )
            self._entities[identifier] = track
            self._surface.set_count(self.layer_id, self.count)
        else:
            track.location = record.location
            track.history.append(record.location)
            track.colour = colour
            track.symbol = symbol
            track.speed = record.speed
            track.bearing = record.bearing
            track.info = info
            track.last_update = self._touch(track.last_update)

        self._draw(identifier, track)
        return True

    def _draw(self, identifier: str, track: TrackEntity) -> None:
        marker = Marker(
            location=track.location,
            symbol=track.symbol,
            colour=track.colour,
            bearing=track.bearing or 0.0,
            text=track_label(identifier, track.speed, track.bearing),
        )
        self._surface.add_entity(self.target_pane, identifier, marker)
        self._surface.add_entity(self.hot_zone_pane, identifier, HotZone(track.location))
        self._surface.add_entity(self.popup_pane, identifier, Popup(track.location, track.info))
        if track.has_trail:
            self._surface.add_entity(self.trail_pane, identifier, Polyline(tuple(track.history), track.colour, 1.4))

    def _remove(self, key: str) -> None:
        self._entities.pop(key, None)
        for pane_id in self.panes:
            self._surface.remove_entity(pane_id, key)
