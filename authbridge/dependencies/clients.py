"""
Factory functions providing upstream transports and services as FastAPI dependencies.
"""

from typing import Annotated, Optional

import httpx
from fastapi import Depends

from authbridge.core.config import AppSettings
from authbridge.services import CookieIssuer, SilentFlowService

from .config import get_app_settings


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport used for Kratos and Hydra calls; ``None`` means real network I/O."""
    return None


def get_silent_flow_service(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    transport: Annotated[Optional[httpx.AsyncBaseTransport], Depends(get_http_transport)],
) -> SilentFlowService:
    """Build the silent flow coordinator for the current request."""
    return SilentFlowService(settings, transport=transport)


def get_cookie_issuer(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> CookieIssuer:
    """Provide a fresh cookie staging area for the current response."""
    return CookieIssuer(settings.cookies)


__all__ = [
    "get_cookie_issuer",
    "get_http_transport",
    "get_silent_flow_service",
]
