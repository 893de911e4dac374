from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from formpulse.fields import FormField, dump_field

FORM_STATUSES = ("draft", "published")

FormStatus = Literal["draft", "published"]


class FormRequest(BaseModel):
    title: str = ""
    description: str = ""
    fields: list[FormField] = Field(default_factory=list)
    status: FormStatus | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "fields": [dump_field(field) for field in self.fields],
        }
        if self.status is not None:
            payload["status"] = self.status
        return payload


class Form(BaseModel):
    id: str
    title: str = ""
    description: str = ""
    fields: list[FormField] = Field(default_factory=list)
    status: FormStatus = "draft"
    share_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _share_url_matches_status(self) -> Form:
        if self.status == "published" and not self.share_url:
            raise ValueError("published forms need a share_url")
        if self.status == "draft" and self.share_url:
            raise ValueError("draft forms cannot carry a share_url")
        return self

    def ordered_fields(self) -> list[Any]:
        return sorted(self.fields, key=lambda field: field.order)


def serialize_form(form: Form) -> dict[str, Any]:
    data = form.model_dump(mode="json", exclude={"fields"}, exclude_none=True)
    data["fields"] = [dump_field(field) for field in form.ordered_fields()]
    return data
