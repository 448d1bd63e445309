"""Per-layer render engines."""

from chainview.layers.base import LayerEngine, StreamEngine, opacity_for
from chainview.layers.density import HeatMapEngine, PlotEngine
from chainview.layers.entities import StrobeEngine, TrackEngine
from chainview.layers.overlay import RosetteEngine, TileEngine
from chainview.layers.registry import STREAM_ENGINES, LayerRegistry

__all__ = [
    "HeatMapEngine",
    "LayerEngine",
    "LayerRegistry",
    "PlotEngine",
    "RosetteEngine",
    "STREAM_ENGINES",
    "StreamEngine",
    "StrobeEngine",
    "TileEngine",
    "TrackEngine",
    "opacity_for",
]
