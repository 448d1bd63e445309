"""Subsystem-level payload models."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BeforeValidator, Field, field_validator

from chainview._constants import (
    BROKER_ENDPOINT_PROTOCOLS,
    INCOMING_ENDPOINT_PROTOCOLS,
    RATE_BAR_COUNT,
)
from chainview.models._base import ChainViewModel
from chainview.normalize import safe_int


def _port_text(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


PortText = Annotated[str, BeforeValidator(_port_text)]


class Endpoint(ChainViewModel):
    """Outbound endpoint of a subsystem (``.../Outgoing``).

    ``topics`` lists every output stream the subsystem can serve;
    ``selected_topic`` is the one the next subsystem in the chain reads.
    """

    protocol: str | None = None
    ip: str = ""
    port: PortText = ""
    topics: list[str] = Field(default_factory=list)
    selected_topic: str | None = None

    @property
    def is_broker(self) -> bool:
        return self.protocol in BROKER_ENDPOINT_PROTOCOLS

    @property
    def effective_topic(self) -> str | None:
        """Topic handed to the downstream subsystem."""
        if self.selected_topic:
            return self.selected_topic
        return self.topics[0] if self.topics else None


class IncomingEndpoint(ChainViewModel):
    """Inbound endpoint of a subsystem (``.../Incoming``)."""

    protocol: str | None = None
    ip: str = ""
    port: PortText = ""
    topics: list[str] = Field(default_factory=list)
    source: str | None = None
    layout: Any = None

    @property
    def is_acceptable(self) -> bool:
        return self.protocol in INCOMING_ENDPOINT_PROTOCOLS and bool(self.source)


class SubSystemDefinition(ChainViewModel):
    """Payload of ``AvailableSubSystems/{id}/Definition``."""

    label: str = ""
    streams: list[str] = Field(default_factory=list)


class RateReport(ChainViewModel):
    """Payload of ``.../Rates``: a six-bar activity histogram."""

    total: tuple[int, ...] = (0,) * RATE_BAR_COUNT

    @field_validator("total", mode="before")
    @classmethod
    def _normalize_bars(cls, value: Any) -> tuple[int, ...]:
        if isinstance(value, str):
            items: list[Any] = list(value)
        elif isinstance(value, list | tuple):
            items = list(value)
        else:
            raise ValueError("total must be a list or digit string")
        bars = [max(0, safe_int(item) or 0) for item in items[:RATE_BAR_COUNT]]
        bars.extend([0] * (RATE_BAR_COUNT - len(bars)))
        return tuple(bars)
