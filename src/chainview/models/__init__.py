"""Data models for broker payloads."""

from chainview.models._base import ChainViewEnum, ChainViewModel, Duration, parse_iso_duration
from chainview.models.chain import ChainSetup, OperationalState, Origin, SelectedChain
from chainview.models.controls import (
    CheckBoxControl,
    CheckBoxItem,
    Control,
    RadioControl,
    SliderControl,
    TextBoxControl,
    edit_control,
    parse_control,
)
from chainview.models.interpretation import STREAM_DISPLAYS, Classification, DisplayType, Interpretation
from chainview.models.subsystem import Endpoint, IncomingEndpoint, RateReport, SubSystemDefinition

__all__ = [
    "ChainSetup",
    "ChainViewEnum",
    "ChainViewModel",
    "CheckBoxControl",
    "CheckBoxItem",
    "Classification",
    "Control",
    "DisplayType",
    "Duration",
    "Endpoint",
    "IncomingEndpoint",
    "Interpretation",
    "OperationalState",
    "Origin",
    "RadioControl",
    "RateReport",
    "STREAM_DISPLAYS",
    "SelectedChain",
    "SliderControl",
    "SubSystemDefinition",
    "TextBoxControl",
    "edit_control",
    "parse_control",
    "parse_iso_duration",
]
