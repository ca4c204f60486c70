"""
FastAPI application entry point for the video platform backend.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vidtube.config import get_settings
from vidtube.errors import register_error_handlers
from vidtube.routes import subscriptions_router, users_router, videos_router


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Vidtube Backend (FastAPI)", version="0.1.0")

    origins = [origin.strip() for origin in settings.cors_origin.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    for router in (users_router, subscriptions_router, videos_router):
        app.include_router(router, prefix=settings.api_prefix)

    @app.get("/healthz", include_in_schema=False)
    def healthz():
        return {"status": "ok"}

    return app


app = create_app()
