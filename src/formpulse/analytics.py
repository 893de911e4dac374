from __future__ import annotations

from typing import Any, Iterable

from formpulse.schema import Form
from formpulse.utils import now_utc, to_iso

TEXT_TYPES = {"text", "textarea", "email"}
SINGLE_CHOICE_TYPES = {"select", "radio"}


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _text_summary(values: list[Any]) -> dict[str, Any]:
    answers = [value for value in values if isinstance(value, str) and value]
    average = sum(len(item) for item in answers) / len(answers) if answers else 0
    return {"average_length": average, "response_count": len(answers)}


def _number_summary(values: list[Any]) -> dict[str, Any]:
    numbers = [number for number in map(_as_number, values) if number is not None]
    if not numbers:
        return {"average": 0, "min": 0, "max": 0, "response_count": 0}
    return {
        "average": sum(numbers) / len(numbers),
        "min": min(numbers),
        "max": max(numbers),
        "response_count": len(numbers),
    }


def _choice_summary(values: list[Any]) -> dict[str, Any]:
    distribution: dict[str, int] = {}
    count = 0
    for value in values:
        if isinstance(value, str) and value:
            distribution[value] = distribution.get(value, 0) + 1
            count += 1
    return {"distribution": distribution, "response_count": count}


def _checkbox_summary(values: list[Any]) -> dict[str, Any]:
    distribution: dict[str, int] = {}
    count = 0
    for value in values:
        if not isinstance(value, list):
            continue
        for item in value:
            if isinstance(item, str):
                distribution[item] = distribution.get(item, 0) + 1
        if value:
            count += 1
    return {"distribution": distribution, "response_count": count}


def _rating_summary(values: list[Any]) -> dict[str, Any]:
    distribution: dict[str, int] = {}
    ratings: list[float] = []
    for value in values:
        rating = _as_number(value)
        if rating is None or not 1 <= rating <= 5:
            continue
        key = f"{rating:.0f}"
        distribution[key] = distribution.get(key, 0) + 1
        ratings.append(rating)
    average = sum(ratings) / len(ratings) if ratings else 0
    return {
        "average_rating": average,
        "distribution": distribution,
        "response_count": len(ratings),
    }


def summarize_field(field_type: str, values: list[Any]) -> dict[str, Any]:
    if field_type in TEXT_TYPES:
        return _text_summary(values)
    if field_type == "number":
        return _number_summary(values)
    if field_type in SINGLE_CHOICE_TYPES:
        return _choice_summary(values)
    if field_type == "checkbox":
        return _checkbox_summary(values)
    if field_type == "rating":
        return _rating_summary(values)
    return {}


def compute_form_analytics(form: Form, responses: Iterable[dict[str, Any]]) -> dict[str, Any]:
    answer_sets = [item.get("responses") or {} for item in responses]
    field_analytics: list[dict[str, Any]] = []
    for field in form.ordered_fields():
        values = [answers[field.id] for answers in answer_sets if field.id in answers]
        answered = sum(1 for value in values if value is not None and value != "")
        field_analytics.append(
            {
                "field_id": field.id,
                "field_label": field.label,
                "field_type": field.type,
                "response_count": answered,
                "data": summarize_field(field.type, values),
            }
        )
    return {
        "form_id": form.id,
        "form_title": form.title,
        "total_responses": len(answer_sets),
        "field_analytics": field_analytics,
        "created_at": to_iso(now_utc()),
    }
