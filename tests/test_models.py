from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from chainview.models import (
    ChainSetup,
    CheckBoxControl,
    Endpoint,
    IncomingEndpoint,
    Interpretation,
    OperationalState,
    RadioControl,
    RateReport,
    SelectedChain,
    SliderControl,
    TextBoxControl,
    edit_control,
    parse_control,
    parse_iso_duration,
)


def test_operational_state_is_case_insensitive_and_defaults_to_unknown() -> None:
    assert OperationalState("operational") is OperationalState.OPERATIONAL
    assert OperationalState("Failure") is OperationalState.FAILURE
    assert OperationalState("Exploded") is OperationalState.UNKNOWN


@pytest.mark.parametrize(
    ("value", "seconds"),
    [
        ("PT1S", 1.0),
        ("PT0.5S", 0.5),
        ("PT1M30S", 90.0),
        ("P1DT2H", 93_600.0),
        ("P1W", 604_800.0),
        ("P1Y", 31_536_000.0),
        (2, 2.0),
        (1.5, 1.5),
    ],
)
def test_parse_iso_duration(value: object, seconds: float) -> None:
    assert parse_iso_duration(value) == pytest.approx(seconds)


@pytest.mark.parametrize("value", ["P", "PT", "1S", "soon", True, None])
def test_parse_iso_duration_rejects_garbage(value: object) -> None:
    with pytest.raises(ValueError):
        parse_iso_duration(value)


def test_chain_setup_uses_camel_case_and_defaults() -> None:
    setup = ChainSetup.model_validate({"label": "North", "origin": {"latitude": 1.5, "longitude": 2.5}, "range": None})
    assert setup.label == "North"
    assert setup.origin.to_point() == (1.5, 2.5)
    assert setup.range == 0.0

    empty = ChainSetup.model_validate({})
    assert math.isnan(empty.origin.latitude)


def test_selected_chain_requires_id() -> None:
    selected = SelectedChain.model_validate({"id": " A ", "isRunning": True})
    assert selected.id == "A"
    assert selected.is_running is True
    with pytest.raises(ValidationError):
        SelectedChain.model_validate({"id": "  "})
    with pytest.raises(ValidationError):
        SelectedChain.model_validate({"isRunning": True})


def test_endpoint_port_and_effective_topic() -> None:
    endpoint = Endpoint.model_validate({"protocol": "MQTT", "ip": "10.0.0.1", "port": 1883, "topics": ["a", "b"]})
    assert endpoint.port == "1883"
    assert endpoint.is_broker
    assert endpoint.effective_topic == "a"

    selected = endpoint.model_copy(update={"selected_topic": "b"})
    assert selected.effective_topic == "b"

    tcp = Endpoint.model_validate({"protocol": "TCP"})
    assert not tcp.is_broker
    assert tcp.effective_topic is None


def test_incoming_endpoint_acceptance() -> None:
    assert IncomingEndpoint.model_validate({"protocol": "TCP", "source": "S0"}).is_acceptable
    assert not IncomingEndpoint.model_validate({"protocol": "UDP", "source": "S0"}).is_acceptable
    assert not IncomingEndpoint.model_validate({"protocol": "MQTT"}).is_acceptable
    assert not IncomingEndpoint.model_validate({}).is_acceptable


def test_rate_report_normalizes_bars() -> None:
    assert RateReport.model_validate({"total": [1, 2, 3]}).total == (1, 2, 3, 0, 0, 0)
    assert RateReport.model_validate({"total": "1234567"}).total == (1, 2, 3, 4, 5, 6)
    assert RateReport.model_validate({}).total == (0, 0, 0, 0, 0, 0)
    with pytest.raises(ValidationError):
        RateReport.model_validate({"total": 7})


def test_interpretation_parses_duration_and_classifications() -> None:
    interpretation = Interpretation.model_validate(
        {
            "header": "Type,Latitude,Longitude",
            "display": "Plot",
            "classifications": [{"label": "air", "paletteIndex": 3, "symbolIndex": 1}],
            "refreshPeriod": "PT2S",
        }
    )
    assert interpretation.refresh_period == 2.0
    assert interpretation.classification(0) is not None
    assert interpretation.classification(0).colour == "#E74856"
    assert interpretation.classification(1) is None
    assert interpretation.classification(None) is None

    with pytest.raises(ValidationError):
        Interpretation.model_validate({"header": "Type", "display": "Plot", "refreshPeriod": "PT0S"})


def test_controls_are_a_tagged_union() -> None:
    assert isinstance(parse_control({"type": "TextBox", "label": "Name", "value": "x"}), TextBoxControl)
    assert isinstance(parse_control({"type": "Radio", "items": ["a", "b"], "selected": 1}), RadioControl)
    checkbox = parse_control({"type": "CheckBox", "items": [{"label": "on", "isChecked": True}]})
    assert isinstance(checkbox, CheckBoxControl)
    assert checkbox.items[0].is_checked
    assert isinstance(parse_control({"type": "Slider", "min": 0, "max": 10, "value": 5}), SliderControl)
    with pytest.raises(ValidationError):
        parse_control({"type": "Dial"})


def test_edit_control_variants() -> None:
    text = edit_control(TextBoxControl(value="a"), 42)
    assert isinstance(text, TextBoxControl)
    assert text.value == "42"

    radio = RadioControl(items=["a", "b"])
    assert edit_control(radio, 1).selected == 1  # type: ignore[union-attr]
    with pytest.raises(ValueError):
        edit_control(radio, 2)

    checkbox = parse_control({"type": "CheckBox", "items": [{"label": "x"}, {"label": "y"}]})
    edited = edit_control(checkbox, True, index=1)
    assert isinstance(edited, CheckBoxControl)
    assert [item.is_checked for item in edited.items] == [False, True]
    with pytest.raises(ValueError):
        edit_control(checkbox, True)

    slider = SliderControl(min=0, max=10)
    assert edit_control(slider, 99).value == 10  # type: ignore[union-attr]


def test_control_payload_round_trips_camel_case() -> None:
    checkbox = parse_control({"type": "CheckBox", "label": "Modes", "items": [{"label": "x", "isChecked": True}]})
    assert checkbox.to_payload() == {
        "type": "CheckBox",
        "label": "Modes",
        "items": [{"label": "x", "isChecked": True}],
    }
