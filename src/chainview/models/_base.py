"""Base model and enum for broker payloads.

Every JSON payload model inherits from :class:`ChainViewModel` which
provides:

* ``alias_generator=to_camel`` so camelCase broker keys map
  automatically to snake_case fields.
* ``extra="ignore"`` so additional keys published by newer chain
  services do not break decoding.

String enums inherit from :class:`ChainViewEnum` which resolves any
unmapped value to its ``UNKNOWN`` member instead of raising.
"""

from __future__ import annotations

import enum
import re
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

from chainview._constants import (
    SECONDS_IN_DAY,
    SECONDS_IN_HOUR,
    SECONDS_IN_MINUTE,
    SECONDS_IN_MONTH,
    SECONDS_IN_WEEK,
    SECONDS_IN_YEAR,
)

_ISO_DURATION = re.compile(
    r"^(?P<sign>-)?P"
    r"(?:(?P<years>[\d.,]+)Y)?"
    r"(?:(?P<months>[\d.,]+)M)?"
    r"(?:(?P<weeks>[\d.,]+)W)?"
    r"(?:(?P<days>[\d.,]+)D)?"
    r"(?:T(?:(?P<hours>[\d.,]+)H)?(?:(?P<minutes>[\d.,]+)M)?(?:(?P<seconds>[\d.,]+)S)?)?$"
)

_UNIT_SECONDS: dict[str, int] = {
    "years": SECONDS_IN_YEAR,
    "months": SECONDS_IN_MONTH,
    "weeks": SECONDS_IN_WEEK,
    "days": SECONDS_IN_DAY,
    "hours": SECONDS_IN_HOUR,
    "minutes": SECONDS_IN_MINUTE,
    "seconds": 1,
}


def parse_iso_duration(value: Any) -> float:
    """Convert an ISO-8601 duration (``"PT1.5S"``, ``"P1DT2H"``) to seconds.

    Plain numbers are taken as seconds already. Raises :class:`ValueError`
    for anything else.
    """
    if isinstance(value, bool):
        raise ValueError("duration must be a string or number")
    if isinstance(value, int | float):
        return float(value)
    if not isinstance(value, str):
        raise ValueError("duration must be a string or number")

    match = _ISO_DURATION.match(value.strip().upper())
    if match is None or not any(match.group(unit) for unit in _UNIT_SECONDS):
        raise ValueError(f"invalid ISO-8601 duration: {value!r}")

    total = 0.0
    for unit, seconds in _UNIT_SECONDS.items():
        amount = match.group(unit)
        if amount:
            total += float(amount.replace(",", ".")) * seconds
    return -total if match.group("sign") else total


Duration = Annotated[float, BeforeValidator(parse_iso_duration)]
"""Annotated type that coerces ISO-8601 durations to seconds."""


class ChainViewEnum(enum.StrEnum):
    """Base for broker string enums.

    Every subclass **must** define ``UNKNOWN``. Values without a mapped
    member resolve to ``UNKNOWN`` instead of raising ``ValueError``.
    """

    @classmethod
    def _missing_(cls, value: object) -> ChainViewEnum:
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        unknown: ChainViewEnum = cls["UNKNOWN"]
        return unknown


class ChainViewModel(BaseModel):
    """Base for broker payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_payload(self) -> dict[str, Any]:
        """Serialize back to the camelCase broker shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
