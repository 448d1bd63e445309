"""Runtime record-schema decoding.

An interpretation message declares a comma-separated header for a stream.
:func:`decode_schema` turns that header into a positional field map for the
stream's display type and picks how records are placed on the map:

* ``Latitude`` and ``Longitude`` present → :attr:`PlacementMode.ABSOLUTE`
* else ``Origin_Latitude`` and ``Origin_Longitude`` present →
  :attr:`PlacementMode.RELATIVE_TO_DECLARED_ORIGIN` (range/azimuth from the
  origin carried in each record)
* else → :attr:`PlacementMode.RELATIVE_TO_SENSOR_ORIGIN` (range/azimuth from
  the chain's configured origin)

Fields missing from the header map to :data:`NOT_PRESENT`. Records that do
not fit the schema decode to ``None`` and are dropped individually.
"""

from __future__ import annotations

import dataclasses
from enum import IntEnum, StrEnum

from chainview.exceptions import SchemaError
from chainview.geo import GeoPoint, destination
from chainview.models.interpretation import STREAM_DISPLAYS, DisplayType
from chainview.normalize import safe_float, safe_int, unquote

NOT_PRESENT = -1


class FieldName(StrEnum):
    IDENTIFIER = "Identifier"
    INTENSITY = "Intensity"
    LATITUDE = "Latitude"
    LONGITUDE = "Longitude"
    ORIGIN_LATITUDE = "Origin_Latitude"
    ORIGIN_LONGITUDE = "Origin_Longitude"
    RANGE = "Range"
    AZIMUTH = "Azimuth"
    SPEED = "Speed"
    BEARING = "Bearing"
    TYPE = "Type"
    INFO = "Info"


class PlacementMode(IntEnum):
    ABSOLUTE = 0
    RELATIVE_TO_DECLARED_ORIGIN = 1
    RELATIVE_TO_SENSOR_ORIGIN = 2


_PLACEMENT_FIELDS = (
    FieldName.LATITUDE,
    FieldName.LONGITUDE,
    FieldName.ORIGIN_LATITUDE,
    FieldName.ORIGIN_LONGITUDE,
    FieldName.RANGE,
    FieldName.AZIMUTH,
)

DISPLAY_FIELDS: dict[DisplayType, tuple[FieldName, ...]] = {
    DisplayType.HEAT_MAP: (FieldName.INTENSITY, *_PLACEMENT_FIELDS),
    DisplayType.PLOT: (FieldName.TYPE, *_PLACEMENT_FIELDS),
    DisplayType.STROBE: (FieldName.IDENTIFIER, *_PLACEMENT_FIELDS, FieldName.TYPE),
    DisplayType.TRACK: (
        FieldName.IDENTIFIER,
        *_PLACEMENT_FIELDS,
        FieldName.SPEED,
        FieldName.BEARING,
        FieldName.TYPE,
        FieldName.INFO,
    ),
}

_KEYED_DISPLAYS = frozenset({DisplayType.STROBE, DisplayType.TRACK})


@dataclasses.dataclass(frozen=True, slots=True)
class DecodedRecord:
    """One data line resolved against its stream schema."""

    location: GeoPoint
    origin: GeoPoint | None = None
    identifier: str | None = None
    classification: int | None = None
    intensity: float | None = None
    range: float | None = None
    azimuth: float | None = None
    speed: float | None = None
    bearing: float | None = None
    info: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class RecordSchema:
    """Positional field map plus placement strategy for one stream."""

    display: DisplayType
    indices: dict[FieldName, int]
    mode: PlacementMode

    @property
    def width(self) -> int:
        """Minimum number of columns a record needs to satisfy the schema."""
        present = [idx for idx in self.indices.values() if idx != NOT_PRESENT]
        return max(present) + 1 if present else 0

    def index(self, field: FieldName) -> int:
        return self.indices.get(field, NOT_PRESENT)

    def has(self, field: FieldName) -> bool:
        return self.index(field) != NOT_PRESENT

    def decode(self, line: str, sensor_origin: GeoPoint) -> DecodedRecord | None:
        """Decode one delimited record, or return ``None`` on a mismatch."""
        columns = line.split(",")
        if len(columns) < self.width:
            return None

        def column(field: FieldName) -> str | None:
            idx = self.index(field)
            return columns[idx] if idx != NOT_PRESENT else None

        identifier: str | None = None
        if self.has(FieldName.IDENTIFIER):
            identifier = unquote(column(FieldName.IDENTIFIER) or "") or None
        if self.display in _KEYED_DISPLAYS and identifier is None:
            return None

        range_m = safe_float(column(FieldName.RANGE))
        azimuth = safe_float(column(FieldName.AZIMUTH))

        declared_origin: GeoPoint | None = None
        olat = safe_float(column(FieldName.ORIGIN_LATITUDE))
        olng = safe_float(column(FieldName.ORIGIN_LONGITUDE))
        if olat is not None and olng is not None:
            declared_origin = GeoPoint(olat, olng)

        if self.mode is PlacementMode.ABSOLUTE:
            lat = safe_float(column(FieldName.LATITUDE))
            lng = safe_float(column(FieldName.LONGITUDE))
            if lat is None or lng is None:
                return None
            location = GeoPoint(lat, lng)
            origin = declared_origin or (sensor_origin if sensor_origin.is_finite else None)
        else:
            if self.mode is PlacementMode.RELATIVE_TO_DECLARED_ORIGIN:
                origin = declared_origin
            else:
                origin = sensor_origin if sensor_origin.is_finite else None
            if origin is None or range_m is None or azimuth is None:
                return None
            location = destination(origin, azimuth, range_m)

        info = column(FieldName.INFO)
        return DecodedRecord(
            location=location,
            origin=origin,
            identifier=identifier,
            classification=safe_int(column(FieldName.TYPE)),
            intensity=safe_float(column(FieldName.INTENSITY)),
            range=range_m,
            azimuth=azimuth,
            speed=safe_float(column(FieldName.SPEED)),
            bearing=safe_float(column(FieldName.BEARING)),
            info=unquote(info) if info is not None else None,
        )


def _find_field(headers: list[str], field: FieldName) -> int:
    for idx, name in enumerate(headers):
        if name.startswith(field.value):
            return idx
    return NOT_PRESENT


def decode_schema(header: str, display: DisplayType | str) -> RecordSchema:
    """Build the :class:`RecordSchema` for *header* under *display*.

    Header names are matched by prefix, so ``"Range [m]"`` resolves to
    :attr:`FieldName.RANGE`. Raises :class:`SchemaError` for display types
    that do not carry records (``Tile``/``Rosette``).
    """
    display_type = DisplayType(display)
    if display_type not in STREAM_DISPLAYS:
        raise SchemaError(f"Display type {display_type} does not carry records", display=str(display_type))

    headers = [name.strip() for name in header.split(",")]
    indices = {field: _find_field(headers, field) for field in DISPLAY_FIELDS[display_type]}

    if indices[FieldName.LATITUDE] != NOT_PRESENT and indices[FieldName.LONGITUDE] != NOT_PRESENT:
        mode = PlacementMode.ABSOLUTE
    elif indices[FieldName.ORIGIN_LATITUDE] != NOT_PRESENT and indices[FieldName.ORIGIN_LONGITUDE] != NOT_PRESENT:
        mode = PlacementMode.RELATIVE_TO_DECLARED_ORIGIN
    else:
        mode = PlacementMode.RELATIVE_TO_SENSOR_ORIGIN

    return RecordSchema(display=display_type, indices=indices, mode=mode)
