from __future__ import annotations

from typing import Any, Mapping

from formpulse.errors import MissingFields, ShapeError
from formpulse.fields import BaseField, field_shape_errors
from formpulse.schema import Form


def _is_zero(value: Any) -> bool:
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, str):
        try:
            return float(value) == 0
        except ValueError:
            return False
    return False


def is_empty_answer(field: BaseField, value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        if not value.strip():
            return True
    elif isinstance(value, (list, tuple, set, frozenset, Mapping)):
        if not value:
            return True
    if field.type == "rating":
        return _is_zero(value)
    if field.type == "checkbox":
        if value is False:
            return True
        if isinstance(value, Mapping):
            return not any(value.values())
    return False


def missing_required_labels(form: Form, responses: Mapping[str, Any]) -> list[str]:
    return [
        field.label or field.id
        for field in form.ordered_fields()
        if field.required and is_empty_answer(field, responses.get(field.id))
    ]


def validate_submission(form: Form, responses: Mapping[str, Any]) -> Mapping[str, Any]:
    shape_errors: dict[str, list[str]] = {}
    for field in form.ordered_fields():
        messages = field_shape_errors(field)
        if messages:
            shape_errors[field.id] = messages
    if shape_errors:
        raise ShapeError(shape_errors)

    missing = missing_required_labels(form, responses)
    if missing:
        raise MissingFields(missing)
    return responses
