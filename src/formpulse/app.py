from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from formpulse.config import VERSION, Settings
from formpulse.hub import AnalyticsHub
from formpulse.routes.forms import router as forms_router
from formpulse.routes.public import router as public_router
from formpulse.routes.ws import router as ws_router
from formpulse.storage import init_storage


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()
    storage = init_storage(settings)

    app = FastAPI(
        title="formpulse",
        version=VERSION,
        openapi_tags=[
            {"name": "forms", "description": "Form builder API"},
            {"name": "analytics", "description": "Response analytics"},
            {"name": "public", "description": "Public form submission"},
            {"name": "system", "description": "System"},
        ],
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.storage = storage
    app.state.settings = settings
    app.state.hub = AnalyticsHub()

    @app.get("/health", tags=["system"])
    async def health(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "storage": request.app.state.storage.backend,
                "version": VERSION,
            }
        )

    app.include_router(forms_router)
    app.include_router(public_router)
    app.include_router(ws_router)

    return app
