"""Mutable records held by the model store."""

from __future__ import annotations

import dataclasses
import math

from chainview._constants import EMPTY_RATE_MASK
from chainview.geo import GeoPoint
from chainview.keys import LayerKey, SubSystemKey
from chainview.models.chain import ChainSetup, OperationalState, Origin
from chainview.models.controls import Control
from chainview.models.interpretation import DisplayType, Interpretation
from chainview.models.subsystem import Endpoint, IncomingEndpoint
from chainview.schema import RecordSchema
from chainview.state.policy import is_chain_enabled


@dataclasses.dataclass
class Chain:
    id: str
    label: str = ""
    origin: GeoPoint = GeoPoint(math.nan, math.nan)
    range_m: float = 0.0
    is_running: bool = False
    state: OperationalState = OperationalState.UNKNOWN
    subsystem_ids: list[str] = dataclasses.field(default_factory=list)
    has_setup: bool = False

    @property
    def is_enabled(self) -> bool:
        return is_chain_enabled(self.state, self.is_running)

    def to_setup(self) -> ChainSetup:
        """Setup payload as published; an unset origin is written as 0, 0."""
        lat, lng = self.origin if self.origin.is_finite else (0.0, 0.0)
        return ChainSetup(
            label=self.label,
            origin=Origin(latitude=lat, longitude=lng),
            range=self.range_m,
        )


@dataclasses.dataclass
class AvailableSubSystem:
    """A subsystem broadcasting status/definition, bound to a chain or not."""

    id: str
    label: str = ""
    streams: list[str] = dataclasses.field(default_factory=list)
    state: OperationalState = OperationalState.UNKNOWN
    last_heard: float | None = None


@dataclasses.dataclass
class DataStream:
    """Cached facts about one output stream of a bound subsystem."""

    layout: list[str] | None = None
    incoming: IncomingEndpoint | None = None


@dataclasses.dataclass
class SubSystem:
    """A subsystem as bound into one chain."""

    chain_id: str
    id: str
    endpoint: Endpoint = dataclasses.field(default_factory=Endpoint)
    incoming: IncomingEndpoint | None = None
    controls: dict[str, Control] = dataclasses.field(default_factory=dict)
    rate_mask: tuple[int, ...] = EMPTY_RATE_MASK
    stream_keys: set[str] = dataclasses.field(default_factory=set)
    data_streams: dict[str, DataStream] = dataclasses.field(default_factory=dict)

    @property
    def key(self) -> SubSystemKey:
        return SubSystemKey(self.chain_id, self.id)

    def data_stream(self, stream_key: str) -> DataStream:
        return self.data_streams.setdefault(stream_key, DataStream())


@dataclasses.dataclass
class LayerRecord:
    key: LayerKey
    display: DisplayType
    interpretation: Interpretation | None = None
    schema: RecordSchema | None = None


@dataclasses.dataclass(frozen=True)
class SubSystemPurge:
    """Broker topics of an unbound subsystem to clear on the next save."""

    key: SubSystemKey
    control_ids: tuple[str, ...] = ()
    stream_keys: tuple[str, ...] = ()
