# src/sitemapper/api/app.py
"""
FastAPI application wiring.

`create_app()` builds the app from settings: logging, the CORS allow-list for the
map frontend (`api.cors_origins`), the API router and a health check. The module
level `app` is what `sitemapper serve` / uvicorn load.
"""

from __future__ import annotations

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from sitemapper.config.settings import Settings, get_settings
from sitemapper.core.logging import configure_logging

from .routes import router


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.app.log_level)

    api = FastAPI(title=f"{settings.app.name} API", version="0.1.0")
    if settings.api.cors_origins:
        api.add_middleware(
            CORSMiddleware,
            allow_origins=settings.api.cors_origins,
            allow_credentials=False,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    api.include_router(router)

    @api.get("/healthz", include_in_schema=False)
    def healthz() -> dict:
        return {"status": "ok"}

    return api


app = create_app()
