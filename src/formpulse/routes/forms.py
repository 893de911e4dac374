from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from formpulse.analytics import compute_form_analytics
from formpulse.fields import dump_field, field_shape_errors
from formpulse.schema import FORM_STATUSES, Form, FormRequest, serialize_form
from formpulse.utils import new_share_token, new_ulid, now_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")


async def parse_form_request(request: Request) -> FormRequest:
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid request body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid request body")
    try:
        return FormRequest.model_validate(payload)
    except ValidationError as exc:
        errors = [
            {"loc": [str(part) for part in error["loc"]], "msg": error["msg"]}
            for error in exc.errors()
        ]
        raise HTTPException(
            status_code=400,
            detail={"message": "Invalid form definition", "errors": errors},
        )


def check_savable(form_request: FormRequest, status: str) -> None:
    if not form_request.title.strip():
        raise HTTPException(status_code=400, detail="Form title is required")
    if not form_request.fields:
        raise HTTPException(status_code=400, detail="A form needs at least one field")
    ids = [field.id for field in form_request.fields]
    if len(set(ids)) != len(ids):
        raise HTTPException(status_code=400, detail="Field ids must be unique")
    if status == "published":
        errors: dict[str, list[str]] = {}
        for field in form_request.fields:
            messages = field_shape_errors(field)
            if messages:
                errors[field.id] = messages
        if errors:
            raise HTTPException(
                status_code=422,
                detail={"message": "Invalid field configuration", "errors": errors},
            )


def dense_fields(form_request: FormRequest) -> list[dict[str, Any]]:
    ordered = sorted(form_request.fields, key=lambda field: field.order)
    fields: list[dict[str, Any]] = []
    for index, field in enumerate(ordered):
        data = dump_field(field)
        data["order"] = index
        fields.append(data)
    return fields


def load_form(request: Request, form_id: str) -> Form:
    storage = request.app.state.storage
    record = storage.forms.get_form(form_id)
    if not record:
        raise HTTPException(status_code=404, detail="Form not found")
    return Form.model_validate(record)


@router.get("/forms", tags=["forms"])
async def list_forms(request: Request) -> JSONResponse:
    storage = request.app.state.storage
    status = request.query_params.get("status") or None
    if status is not None and status not in FORM_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status filter")
    records = storage.forms.list_forms(status)
    return JSONResponse([serialize_form(Form.model_validate(record)) for record in records])


@router.post("/forms", tags=["forms"])
async def create_form(request: Request) -> JSONResponse:
    storage = request.app.state.storage
    form_request = await parse_form_request(request)
    status = form_request.status or "draft"
    check_savable(form_request, status)

    form_id = new_ulid()
    now = now_utc()
    storage.forms.create_form(
        {
            "id": form_id,
            "share_url": new_share_token() if status == "published" else None,
            "title": form_request.title.strip(),
            "description": form_request.description.strip(),
            "status": status,
            "fields": dense_fields(form_request),
            "created_at": now,
            "updated_at": now,
        }
    )
    logger.info("Created %s form %s", status, form_id)
    form = load_form(request, form_id)
    return JSONResponse(serialize_form(form), status_code=201)


@router.get("/forms/{form_id}", tags=["forms"])
async def get_form(request: Request, form_id: str) -> JSONResponse:
    return JSONResponse(serialize_form(load_form(request, form_id)))


@router.put("/forms/{form_id}", tags=["forms"])
async def update_form(request: Request, form_id: str) -> JSONResponse:
    storage = request.app.state.storage
    hub = request.app.state.hub
    current = load_form(request, form_id)
    form_request = await parse_form_request(request)
    status = form_request.status or current.status
    if current.status == "published" and status == "draft":
        raise HTTPException(status_code=409, detail="Published forms cannot return to draft")
    check_savable(form_request, status)

    updates: dict[str, Any] = {
        "title": form_request.title.strip(),
        "description": form_request.description.strip(),
        "fields": dense_fields(form_request),
        "status": status,
        "updated_at": now_utc(),
    }
    if status == "published" and not current.share_url:
        updates["share_url"] = new_share_token()
    try:
        record = storage.forms.update_form(form_id, updates)
    except KeyError:
        raise HTTPException(status_code=404, detail="Form not found")
    form = Form.model_validate(record)
    payload = serialize_form(form)
    await hub.broadcast_form_update(form_id, payload)
    return JSONResponse(payload)


@router.get("/forms/{form_id}/analytics", tags=["analytics"])
async def get_form_analytics(request: Request, form_id: str) -> JSONResponse:
    storage = request.app.state.storage
    form = load_form(request, form_id)
    responses = storage.responses.list_responses(form_id)
    return JSONResponse(compute_form_analytics(form, responses))
