from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from jsonschema import Draft7Validator
from pydantic import BaseModel, Field, TypeAdapter

from formpulse.errors import ShapeError

FREE_TEXT_TYPES = ("text", "textarea", "email", "number")
CHOICE_TYPES = ("select", "radio", "checkbox")
FIELD_TYPES = FREE_TEXT_TYPES + CHOICE_TYPES + ("rating",)

DEFAULT_PLACEHOLDER = "Enter your answer..."
DEFAULT_OPTIONS = ("Option 1", "Option 2")
PLACEHOLDER_DEFAULT_TYPES = {"text", "textarea", "email"}


class BaseField(BaseModel):
    id: str
    label: str = ""
    required: bool = False
    order: int = 0


class TextField(BaseField):
    type: Literal["text", "textarea", "email", "number"]
    placeholder: str | None = None


class ChoiceField(BaseField):
    type: Literal["select", "radio", "checkbox"]
    options: list[str] = Field(default_factory=list)


class RatingField(BaseField):
    type: Literal["rating"]


FormField = Annotated[Union[TextField, ChoiceField, RatingField], Field(discriminator="type")]

_field_adapter: TypeAdapter[Any] = TypeAdapter(FormField)

FIELD_SHAPE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "type", "label", "required", "order"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "type": {"enum": list(FIELD_TYPES)},
        "label": {"type": "string"},
        "required": {"type": "boolean"},
        "order": {"type": "integer", "minimum": 0},
        "placeholder": {"type": "string"},
        "options": {"type": "array", "items": {"type": "string"}},
    },
    "allOf": [
        {
            "if": {"properties": {"type": {"enum": list(CHOICE_TYPES)}}},
            "then": {
                "required": ["options"],
                "properties": {"options": {"minItems": 1}},
            },
            "else": {"not": {"required": ["options"]}},
        },
        {
            "if": {"properties": {"type": {"enum": list(FREE_TEXT_TYPES)}}},
            "else": {"not": {"required": ["placeholder"]}},
        },
    ],
}

_shape_validator = Draft7Validator(FIELD_SHAPE_SCHEMA)


def mutable_keys(field: BaseField) -> set[str]:
    return set(type(field).model_fields) - {"id", "type", "order"}


def new_field(field_type: str, order: int, field_id: str) -> BaseField:
    if field_type not in FIELD_TYPES:
        raise ValueError(f"Unknown field type: {field_type}")
    label = f"New {field_type.capitalize()} Field"
    if field_type in CHOICE_TYPES:
        return ChoiceField(
            id=field_id,
            type=field_type,
            label=label,
            order=order,
            options=list(DEFAULT_OPTIONS),
        )
    if field_type in FREE_TEXT_TYPES:
        placeholder = DEFAULT_PLACEHOLDER if field_type in PLACEHOLDER_DEFAULT_TYPES else None
        return TextField(
            id=field_id,
            type=field_type,
            label=label,
            order=order,
            placeholder=placeholder,
        )
    return RatingField(id=field_id, type=field_type, label=label, order=order)


def parse_field(raw: dict[str, Any]) -> BaseField:
    return _field_adapter.validate_python(raw)


def dump_field(field: BaseField) -> dict[str, Any]:
    return field.model_dump(mode="json", exclude_none=True)


def field_shape_errors(field: BaseField) -> list[str]:
    name = field.label or field.id
    data = field.model_dump(mode="python", exclude_none=True)
    errors: list[str] = []
    issues = sorted(
        _shape_validator.iter_errors(data),
        key=lambda err: [str(part) for part in err.path],
    )
    for error in issues:
        location = ".".join(str(part) for part in error.path)
        missing_options = error.validator == "required" and "'options'" in error.message
        if missing_options or (location == "options" and error.validator == "minItems"):
            errors.append(f"{name}: choice fields need at least one option")
        elif location:
            errors.append(f"{name}: {location}: {error.message}")
        else:
            errors.append(f"{name}: {error.message}")
    return errors


def validate_shape(field: BaseField) -> None:
    errors = field_shape_errors(field)
    if errors:
        raise ShapeError({field.id: errors})
