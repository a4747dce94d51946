"""FastAPI application entry point for AutoComplaint."""

from __future__ import annotations

import logging
import os
from typing import Final

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from autocomplaint.api.routes import router
from autocomplaint.config.settings import AutoComplaintConfig

_DEVELOPMENT_ENVIRONMENTS: Final[set[str]] = {"dev", "development", "local"}

VERSION = "0.1.0"


def _resolve_cors_origins() -> list[str]:
    environment = os.getenv("AUTOCOMPLAINT_ENV", "development").strip().lower()
    origins_raw = os.getenv("AUTOCOMPLAINT_ALLOWED_ORIGINS", "")
    origins = [origin.strip() for origin in origins_raw.split(",") if origin.strip()]
    if origins:
        return origins
    if environment not in _DEVELOPMENT_ENVIRONMENTS:
        raise RuntimeError(
            "Production CORS configuration error: AUTOCOMPLAINT_ALLOWED_ORIGINS must be "
            "set when AUTOCOMPLAINT_ENV is not development/local/dev."
        )
    return []


def create_app() -> FastAPI:
    """Factory function for creating the FastAPI application."""
    logging.basicConfig(level=AutoComplaintConfig().log_level.upper())

    app = FastAPI(
        title="AutoComplaint",
        description="Order extraction and grievance form fill engine",
        version=VERSION,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_resolve_cors_origins(),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "autocomplaint", "version": VERSION}

    return app


app = create_app()
