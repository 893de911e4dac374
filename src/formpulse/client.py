from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Mapping

import httpx

from formpulse.builder import FormBuilder
from formpulse.schema import FORM_STATUSES, Form, FormRequest
from formpulse.submission import validate_submission

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiSession:
    base_url: str
    token: str | None = None

    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def websocket_url(self, path: str = "/ws") -> str:
        url = httpx.URL(self.base_url)
        scheme = "wss" if url.scheme == "https" else "ws"
        return str(url.copy_with(scheme=scheme, path=path))


class FormsClient:
    def __init__(
        self,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    @asynccontextmanager
    async def _client(self, session: ApiSession) -> AsyncIterator[httpx.AsyncClient]:
        async with httpx.AsyncClient(
            base_url=session.base_url,
            headers=session.headers(),
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            yield client

    async def _request(
        self,
        session: ApiSession,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> Any:
        async with self._client(session) as client:
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()
        return response.json()

    async def list_forms(self, session: ApiSession, status: str | None = None) -> list[Form]:
        if status is not None and status not in FORM_STATUSES:
            raise ValueError(f"Unknown status filter: {status}")
        params = {"status": status} if status else None
        data = await self._request(session, "GET", "/api/v1/forms", params=params)
        return [Form.model_validate(item) for item in data]

    async def create_form(self, session: ApiSession, form_request: FormRequest) -> Form:
        data = await self._request(
            session, "POST", "/api/v1/forms", json=form_request.to_payload()
        )
        return Form.model_validate(data)

    async def get_form(self, session: ApiSession, form_id: str) -> Form:
        data = await self._request(session, "GET", f"/api/v1/forms/{form_id}")
        return Form.model_validate(data)

    async def update_form(
        self, session: ApiSession, form_id: str, form_request: FormRequest
    ) -> Form:
        data = await self._request(
            session, "PUT", f"/api/v1/forms/{form_id}", json=form_request.to_payload()
        )
        return Form.model_validate(data)

    async def save_draft(
        self, session: ApiSession, builder: FormBuilder, form_id: str | None = None
    ) -> Form:
        form_request = builder.to_request("draft")
        if form_id is None:
            return await self.create_form(session, form_request)
        return await self.update_form(session, form_id, form_request)

    async def publish(
        self, session: ApiSession, builder: FormBuilder, form_id: str | None = None
    ) -> Form:
        form_request = builder.to_request("published")
        if form_id is None:
            form = await self.create_form(session, form_request)
        else:
            form = await self.update_form(session, form_id, form_request)
        logger.info("Published form %s at %s", form.id, form.share_url)
        return form

    async def get_analytics(self, session: ApiSession, form_id: str) -> dict[str, Any]:
        return await self._request(session, "GET", f"/api/v1/forms/{form_id}/analytics")

    async def get_public_form(self, session: ApiSession, share_url: str) -> Form:
        data = await self._request(session, "GET", f"/api/v1/public/forms/{share_url}")
        return Form.model_validate(data)

    async def submit_response(
        self, session: ApiSession, form: Form, responses: Mapping[str, Any]
    ) -> dict[str, Any]:
        if not form.share_url:
            raise ValueError("Only published forms accept responses")
        accepted = validate_submission(form, responses)
        return await self._request(
            session,
            "POST",
            f"/api/v1/public/forms/{form.share_url}/responses",
            json={"responses": dict(accepted)},
        )
