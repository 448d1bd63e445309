"""Dynamic subsystem controls (``.../Controls/{controlId}``).

Each control kind is its own model; the ``type`` key selects the variant.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter

from chainview.models._base import ChainViewModel


class TextBoxControl(ChainViewModel):
    type: Literal["TextBox"] = "TextBox"
    label: str = ""
    value: str = ""


class RadioControl(ChainViewModel):
    type: Literal["Radio"] = "Radio"
    label: str = ""
    items: list[str] = Field(default_factory=list)
    selected: int = 0


class CheckBoxItem(ChainViewModel):
    label: str = ""
    is_checked: bool = False


class CheckBoxControl(ChainViewModel):
    type: Literal["CheckBox"] = "CheckBox"
    label: str = ""
    items: list[CheckBoxItem] = Field(default_factory=list)


class SliderControl(ChainViewModel):
    type: Literal["Slider"] = "Slider"
    label: str = ""
    min: float = 0.0
    max: float = 100.0
    value: float = 0.0


Control = Annotated[
    TextBoxControl | RadioControl | CheckBoxControl | SliderControl,
    Field(discriminator="type"),
]

_CONTROL_ADAPTER: TypeAdapter[Control] = TypeAdapter(Control)


def parse_control(payload: Any) -> Control:
    """Validate a decoded control payload into its variant.

    Raises :class:`pydantic.ValidationError` for unknown ``type`` values or
    malformed variant payloads.
    """
    return _CONTROL_ADAPTER.validate_python(payload)


def edit_control(control: Control, value: Any, *, index: int | None = None) -> Control:
    """Return a copy of *control* with an operator edit applied.

    ``index`` selects the checkbox item for :class:`CheckBoxControl`; it is
    ignored for the other kinds.
    """
    match control:
        case TextBoxControl():
            return control.model_copy(update={"value": str(value)})
        case RadioControl():
            selected = int(value)
            if not 0 <= selected < len(control.items):
                raise ValueError(f"radio selection {selected} out of range")
            return control.model_copy(update={"selected": selected})
        case CheckBoxControl():
            if index is None or not 0 <= index < len(control.items):
                raise ValueError(f"checkbox index {index} out of range")
            items = list(control.items)
            items[index] = items[index].model_copy(update={"is_checked": bool(value)})
            return control.model_copy(update={"items": items})
        case SliderControl():
            clamped = min(control.max, max(control.min, float(value)))
            return control.model_copy(update={"value": clamped})
    raise TypeError(f"unsupported control: {type(control).__name__}")
