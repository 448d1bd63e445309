"""Record-stream declaration (``.../Data/{streamKey}/Interpretation``)."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field, field_validator

from chainview._constants import palette_colour
from chainview.models._base import ChainViewModel, Duration


class DisplayType(StrEnum):
    HEAT_MAP = "HeatMap"
    PLOT = "Plot"
    STROBE = "Strobe"
    TRACK = "Track"
    TILE = "Tile"
    ROSETTE = "Rosette"


STREAM_DISPLAYS: frozenset[DisplayType] = frozenset(
    {DisplayType.HEAT_MAP, DisplayType.PLOT, DisplayType.STROBE, DisplayType.TRACK}
)


class Classification(ChainViewModel):
    """Per-class styling for records carrying a ``Type`` field."""

    label: str = ""
    palette_index: int = 0
    symbol_index: int = 0

    @property
    def colour(self) -> str:
        return palette_colour(self.palette_index)


class Interpretation(ChainViewModel):
    """Schema declaration for one output stream of a subsystem."""

    key: str | None = None
    display: DisplayType
    header: str
    classifications: list[Classification] = Field(default_factory=list)
    refresh_period: Duration = 1.0
    dot_size: float = 0.0
    data_types: list[str] = Field(default_factory=list)

    @field_validator("refresh_period")
    @classmethod
    def _positive_period(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("refreshPeriod must be positive")
        return value

    def classification(self, index: int | None) -> Classification | None:
        """Return the classification at *index*, or ``None`` when out of range."""
        if index is None or not 0 <= index < len(self.classifications):
            return None
        return self.classifications[index]
