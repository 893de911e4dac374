from __future__ import annotations

from typing import Any, Protocol


class FormRepository(Protocol):
    def list_forms(self, status: str | None = None) -> list[dict[str, Any]]: ...

    def get_form(self, form_id: str) -> dict[str, Any] | None: ...

    def get_form_by_share_url(self, share_url: str) -> dict[str, Any] | None: ...

    def create_form(self, form: dict[str, Any]) -> None: ...

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]: ...


class ResponseRepository(Protocol):
    def list_responses(self, form_id: str) -> list[dict[str, Any]]: ...

    def create_response(self, response: dict[str, Any]) -> None: ...


class Storage(Protocol):
    backend: str
    forms: FormRepository
    responses: ResponseRepository
