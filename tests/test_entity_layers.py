from __future__ import annotations

import pytest

from chainview._constants import TRACK_SYMBOLS, TRAIL_HISTORY_LIMIT
from chainview.geo import GeoPoint
from chainview.keys import LayerKey
from chainview.layers.entities import StrobeEngine, TrackEngine, _KeyedEngine, track_label
from chainview.models.interpretation import DisplayType, Interpretation
from chainview.render import HotZone, InMemorySurface, Marker, Polyline, Popup
from chainview.schema import DecodedRecord, decode_schema


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


SENSOR = GeoPoint(50.0, 0.0)


def _strobes(surface: InMemorySurface, clock: _Clock) -> StrobeEngine:
    interpretation = Interpretation.model_validate(
        {
            "display": "Strobe",
            "header": "Identifier,Azimuth,Range,Type",
            "classifications": [{"paletteIndex": 2}],
            "refreshPeriod": "PT1S",
        }
    )
    engine = StrobeEngine(LayerKey("A", "S1", "B"), surface, clock=clock)
    engine.initialize(interpretation, decode_schema(interpretation.header, interpretation.display), SENSOR)
    return engine


def _tracks(surface: InMemorySurface, clock: _Clock) -> TrackEngine:
    interpretation = Interpretation.model_validate(
        {
            "display": "Track",
            "header": "Identifier,Latitude,Longitude,Speed,Bearing,Type,Info",
            "classifications": [{"paletteIndex": 1, "symbolIndex": 2}],
            "refreshPeriod": 2,
        }
    )
    engine = TrackEngine(LayerKey("A", "S1", "T"), surface, clock=clock)
    engine.initialize(interpretation, decode_schema(interpretation.header, interpretation.display), SENSOR)
    return engine


def test_strobe_upserts_line_from_sensor_origin() -> None:
    surface = InMemorySurface()
    clock = _Clock()
    engine = _strobes(surface, clock)

    assert engine.enqueue("s1,90,1000,0")
    assert engine.enqueue("s1,180,1000,0")

    assert engine.count == 1
    line = surface.panes["A.S1.B.strobeViews"].entities["s1"]
    assert isinstance(line, Polyline)
    assert line.points[0] == SENSOR
    assert line.colour == "#3B78FF"
    assert surface.counts["A.S1.B"] == 1


def test_strobe_without_identifier_is_dropped() -> None:
    engine = _strobes(InMemorySurface(), _Clock())
    assert not engine.enqueue(",90,1000,0")
    assert engine.count == 0


def test_entity_evicted_after_four_refresh_periods() -> None:
    surface = InMemorySurface()
    clock = _Clock()
    engine = _strobes(surface, clock)
    engine.enqueue("s1,90,1000,0")

    clock.now += 4.0
    engine.prune()
    assert "s1" in engine

    clock.now += 0.5
    engine.prune()
    assert "s1" not in engine
    assert surface.panes["A.S1.B.strobeViews"].entities == {}
    assert surface.counts["A.S1.B"] == 0


def test_reenqueue_resets_eviction_clock() -> None:
    clock = _Clock()
    engine = _strobes(InMemorySurface(), clock)
    engine.enqueue("s1,90,1000,0")

    clock.now += 3.0
    engine.enqueue("s1,91,1000,0")
    clock.now += 3.0
    engine.prune()
    assert "s1" in engine

    clock.now += 1.5
    engine.prune()
    assert "s1" not in engine


def test_track_draws_owned_visuals_and_starts_trail_at_two_positions() -> None:
    surface = InMemorySurface()
    clock = _Clock()
    engine = _tracks(surface, clock)

    engine.enqueue('7,1.0,2.0,12,45,0,"fast mover"')
    assert "7" not in surface.panes[engine.trail_pane].entities
    marker = surface.panes[engine.target_pane].entities["7"]
    assert isinstance(marker, Marker)
    assert marker.symbol == TRACK_SYMBOLS[2]
    assert marker.colour == "#16C60C"
    assert marker.text == "TN:7 0012/045"
    assert surface.panes[engine.hot_zone_pane].entities["7"] == HotZone(GeoPoint(1.0, 2.0))
    assert surface.panes[engine.popup_pane].entities["7"] == Popup(GeoPoint(1.0, 2.0), "fast mover")

    engine.enqueue('7,1.1,2.1,12,45,0,"fast mover"')
    trail = surface.panes[engine.trail_pane].entities["7"]
    assert isinstance(trail, Polyline)
    assert trail.points == (GeoPoint(1.0, 2.0), GeoPoint(1.1, 2.1))


def test_track_eviction_removes_every_visual() -> None:
    surface = InMemorySurface()
    clock = _Clock()
    engine = _tracks(surface, clock)
    engine.enqueue("7,1.0,2.0,12,45,0,x")
    engine.enqueue("7,1.1,2.1,12,45,0,x")

    clock.now += 8.5
    engine.prune()

    assert engine.count == 0
    for pane_id in engine.panes:
        assert surface.panes[pane_id].entities == {}


def test_track_trail_is_bounded() -> None:
    engine = _tracks(InMemorySurface(), _Clock())
    for i in range(TRAIL_HISTORY_LIMIT + 10):
        engine.enqueue(f"7,{i * 0.001},0.0,1,1,0,x")

    track = engine.entity("7")
    assert track is not None
    assert len(track.history) == TRAIL_HISTORY_LIMIT


def test_unknown_classification_falls_back_to_default_style() -> None:
    surface = InMemorySurface()
    engine = _tracks(surface, _Clock())
    engine.enqueue("9,1.0,2.0,,,5,")

    marker = surface.panes[engine.target_pane].entities["9"]
    assert isinstance(marker, Marker)
    assert marker.symbol == TRACK_SYMBOLS[0]
    assert marker.text == "TN:9 -/-"


def test_track_label_formatting() -> None:
    assert track_label("12", 5.4, 7.6) == "TN:12 0005/008"
    assert track_label("", None, None) == "TN:- -/-"


def test_dispose_clears_entities_and_panes() -> None:
    surface = InMemorySurface()
    engine = _tracks(surface, _Clock())
    engine.enqueue("7,1.0,2.0,12,45,0,x")
    engine.dispose()

    assert surface.panes_for("A.S1.T") == {}
    assert engine.count == 0


def test_refresh_republishes_live_entity_count() -> None:
    surface = InMemorySurface()
    engine = _strobes(surface, _Clock())
    engine.enqueue("s1,90,1000,0")
    engine.enqueue("s2,45,800,0")
    surface.counts.clear()

    engine.refresh()
    assert surface.counts["A.S1.B"] == 2


def test_keyed_engine_requires_entity_removal() -> None:
    class _NoRemoval(_KeyedEngine):
        display = DisplayType.STROBE
        pane_names = ("strobeViews",)

        def _ingest(self, record: DecodedRecord) -> bool:
            return False

    with pytest.raises(TypeError):
        _NoRemoval(LayerKey("A", "S1", "B"), InMemorySurface())
