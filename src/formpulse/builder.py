from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from formpulse.errors import FieldNotFound, FormNotSavable, ShapeError
from formpulse.fields import BaseField, field_shape_errors, mutable_keys, new_field
from formpulse.schema import Form, FormRequest, FormStatus
from formpulse.utils import new_field_id

logger = logging.getLogger(__name__)

MOVE_DIRECTIONS = ("up", "down")


class FormBuilder:
    def __init__(
        self,
        title: str = "",
        description: str = "",
        fields: Iterable[BaseField] | None = None,
    ) -> None:
        self.title = title
        self.description = description
        self._fields: list[BaseField] = sorted(fields or [], key=lambda field: field.order)
        self._issued_ids: set[str] = {field.id for field in self._fields}
        if len(self._issued_ids) != len(self._fields):
            raise ValueError("field ids must be unique within a form")
        self.active_field_id: str | None = None
        self._restamp()

    @classmethod
    def from_form(cls, form: Form) -> FormBuilder:
        fields = [field.model_copy(deep=True) for field in form.fields]
        return cls(title=form.title, description=form.description, fields=fields)

    @property
    def fields(self) -> list[BaseField]:
        return list(self._fields)

    def get_field(self, field_id: str) -> BaseField:
        return self._fields[self._index_of(field_id)]

    def add_field(self, field_type: str) -> BaseField:
        field_id = new_field_id(self._issued_ids)
        field = new_field(field_type, order=len(self._fields), field_id=field_id)
        self._issued_ids.add(field_id)
        self._fields.append(field)
        self.active_field_id = field_id
        logger.debug("Added %s field %s", field_type, field_id)
        return field

    def update_field(self, field_id: str, changes: Mapping[str, Any]) -> None:
        field = self._fields[self._index_of(field_id)]
        rejected = sorted(set(changes) - mutable_keys(field))
        if rejected:
            raise ValueError(
                f"Cannot change {', '.join(rejected)} on a {field.type} field"
            )
        if isinstance(changes.get("options"), str):
            raise ValueError("options must be a list of strings, not a single string")
        for key, value in changes.items():
            if key == "options" and value is not None:
                value = list(value)
            setattr(field, key, value)

    def delete_field(self, field_id: str) -> None:
        index = self._index_of(field_id)
        del self._fields[index]
        self._restamp()
        if self.active_field_id == field_id:
            self.active_field_id = None
        logger.debug("Deleted field %s", field_id)

    def move_field(self, field_id: str, direction: str) -> None:
        if direction not in MOVE_DIRECTIONS:
            raise ValueError(f"Unknown direction: {direction}")
        index = self._index_of(field_id)
        target = index - 1 if direction == "up" else index + 1
        if target < 0 or target >= len(self._fields):
            return
        self._fields[index], self._fields[target] = self._fields[target], self._fields[index]
        self._restamp()

    def set_metadata(self, title: str | None = None, description: str | None = None) -> None:
        if title is not None:
            self.title = title
        if description is not None:
            self.description = description

    def can_save(self) -> bool:
        return bool(self.title.strip()) and len(self._fields) >= 1

    def shape_errors(self) -> dict[str, list[str]]:
        errors: dict[str, list[str]] = {}
        for field in self._fields:
            messages = field_shape_errors(field)
            if messages:
                errors[field.id] = messages
        return errors

    def to_request(self, status: FormStatus = "draft") -> FormRequest:
        if not self.can_save():
            raise FormNotSavable("A form needs a title and at least one field")
        if status == "published":
            errors = self.shape_errors()
            if errors:
                raise ShapeError(errors)
        return FormRequest(
            title=self.title.strip(),
            description=self.description,
            fields=[field.model_copy(deep=True) for field in self._fields],
            status=status,
        )

    def _index_of(self, field_id: str) -> int:
        for index, field in enumerate(self._fields):
            if field.id == field_id:
                return index
        raise FieldNotFound(field_id)

    def _restamp(self) -> None:
        for index, field in enumerate(self._fields):
            field.order = index
