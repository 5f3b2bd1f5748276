"""
FastAPI application entrypoint for the OAuth bridge.
"""

from __future__ import annotations

from fastapi import FastAPI

from authbridge.api.routes import router as api_router
from authbridge.core.config import get_settings
from authbridge.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Kratos to Hydra OAuth2 Bridge",
        version="0.1.0",
        description="Silent OAuth2 authorization-code flow with PKCE for Kratos sessions.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
