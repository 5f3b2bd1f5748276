"""Expose dependency helpers for FastAPI routers."""

from .clients import get_cookie_issuer, get_http_transport, get_silent_flow_service
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_cookie_issuer",
    "get_http_transport",
    "get_silent_flow_service",
]
