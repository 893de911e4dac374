from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from formpulse.analytics import compute_form_analytics
from formpulse.errors import MissingFields, ShapeError
from formpulse.schema import Form, serialize_form
from formpulse.submission import validate_submission
from formpulse.utils import new_ulid, now_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")


def load_published_form(request: Request, share_url: str) -> Form:
    storage = request.app.state.storage
    record = storage.forms.get_form_by_share_url(share_url)
    if not record or record.get("status") != "published":
        logger.info("No published form for share_url: %s", share_url)
        raise HTTPException(status_code=404, detail="Form not found")
    return Form.model_validate(record)


@router.get("/public/forms/{share_url}", tags=["public"])
async def get_public_form(request: Request, share_url: str) -> JSONResponse:
    form = load_published_form(request, share_url)
    return JSONResponse(serialize_form(form))


@router.post("/public/forms/{share_url}/responses", tags=["public"])
async def submit_public_response(request: Request, share_url: str) -> JSONResponse:
    storage = request.app.state.storage
    hub = request.app.state.hub
    form = load_published_form(request, share_url)
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid request body")
    responses = payload.get("responses") if isinstance(payload, dict) else None
    if not isinstance(responses, dict):
        raise HTTPException(status_code=400, detail="responses must be an object")

    try:
        accepted = validate_submission(form, responses)
    except MissingFields as exc:
        raise HTTPException(
            status_code=400,
            detail={"message": str(exc), "missing_fields": exc.labels},
        )
    except ShapeError as exc:
        logger.warning("Published form %s has invalid fields: %s", form.id, exc)
        raise HTTPException(status_code=409, detail={"message": str(exc), "errors": exc.errors})

    response_id = new_ulid()
    storage.responses.create_response(
        {
            "id": response_id,
            "form_id": form.id,
            "responses": dict(accepted),
            "ip_address": request.client.host if request.client else None,
            "user_agent": request.headers.get("user-agent"),
            "submitted_at": now_utc(),
        }
    )
    logger.info("Stored response %s for form %s", response_id, form.id)

    analytics = compute_form_analytics(form, storage.responses.list_responses(form.id))
    await hub.broadcast_analytics(form.id, analytics)

    return JSONResponse(
        {
            "message": "Response submitted successfully",
            "response_id": response_id,
            "form_id": form.id,
        },
        status_code=201,
    )
