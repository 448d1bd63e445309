"""Chain-level payload models."""

from __future__ import annotations

import math

from pydantic import Field, field_validator

from chainview.geo import GeoPoint
from chainview.models._base import ChainViewEnum, ChainViewModel


class OperationalState(ChainViewEnum):
    """Operational state reported by subsystems and rolled up per chain."""

    UNKNOWN = "Unknown"
    OPERATIONAL = "Operational"
    CAUTION = "Caution"
    FAILURE = "Failure"


class Origin(ChainViewModel):
    """Sensor origin as published in a chain setup."""

    latitude: float = math.nan
    longitude: float = math.nan

    def to_point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)


class ChainSetup(ChainViewModel):
    """Payload of ``Chains/{chainId}/Setup``."""

    label: str = ""
    origin: Origin = Field(default_factory=Origin)
    range: float = 0.0

    @field_validator("range", mode="before")
    @classmethod
    def _coerce_range(cls, value: object) -> object:
        if value is None or value == "":
            return 0.0
        return value


class SelectedChain(ChainViewModel):
    """Payload of ``SelectedChain``."""

    id: str
    is_running: bool = False

    @field_validator("id")
    @classmethod
    def _require_id(cls, value: str) -> str:
        chain_id = value.strip()
        if not chain_id:
            raise ValueError("id must be non-empty")
        return chain_id
