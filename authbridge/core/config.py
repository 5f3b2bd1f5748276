"""
Application configuration models and helpers.

Centralizes settings management so the routes, the upstream clients and the
operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_ENV_FILE_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    populate_by_name=True,
)


class KratosSettings(BaseSettings):
    """Configuration required for talking to the Kratos public API."""

    model_config = _ENV_FILE_CONFIG

    public_url: AnyHttpUrl = Field(..., validation_alias="KRATOS_PUBLIC_URL")
    session_cookie: str = Field(
        "ory_kratos_session",
        validation_alias="KRATOS_SESSION_COOKIE",
        description="Name of the cookie holding the first-party session.",
    )


class HydraSettings(BaseSettings):
    """Hydra public and administrative endpoints."""

    model_config = _ENV_FILE_CONFIG

    public_url: AnyHttpUrl = Field(..., validation_alias="HYDRA_PUBLIC_URL")
    admin_url: AnyHttpUrl = Field(..., validation_alias="HYDRA_ADMIN_URL")


class OAuthSettings(BaseSettings):
    """OAuth client registration and silent flow tuning."""

    model_config = _ENV_FILE_CONFIG

    client_id: str = Field(..., validation_alias="OAUTH2_CLIENT_ID")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="OAUTH2_REDIRECT_URI")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("openid", "profile", "email", "offline"),
        validation_alias="OAUTH2_SCOPES",
        description="Hydra expects 'offline' rather than 'offline_access'.",
    )
    login_path: str = Field(
        "/api/auth/oauth/hydra-login", validation_alias="OAUTH2_LOGIN_PATH"
    )
    consent_path: str = Field(
        "/api/auth/oauth/hydra-consent", validation_alias="OAUTH2_CONSENT_PATH"
    )
    max_redirects: int = Field(10, ge=1, validation_alias="OAUTH2_MAX_REDIRECTS")
    remember_for: int = Field(3600, ge=0, validation_alias="OAUTH2_REMEMBER_FOR")
    acr: str = Field(
        "urn:mace:incommon:iap:silver", validation_alias="OAUTH2_ACR"
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class CookieSettings(BaseSettings):
    """Attributes applied to every cookie the bridge writes."""

    model_config = _ENV_FILE_CONFIG

    secure: bool = Field(True, validation_alias="COOKIE_SECURE")
    path: str = Field("/", validation_alias="COOKIE_PATH")
    pkce_ttl_seconds: int = Field(60 * 10, validation_alias="PKCE_COOKIE_TTL")
    refresh_ttl_seconds: int = Field(
        60 * 60 * 24 * 30, validation_alias="REFRESH_COOKIE_TTL"
    )
    default_access_ttl_seconds: int = Field(
        60 * 60,
        validation_alias="ACCESS_COOKIE_DEFAULT_TTL",
        description="Used when the token endpoint omits expires_in.",
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = _ENV_FILE_CONFIG

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    http_timeout_seconds: float = Field(
        10.0,
        gt=0,
        validation_alias="HTTP_TIMEOUT_SECONDS",
        description="Per-call timeout applied to every upstream request.",
    )
    kratos: KratosSettings = Field(default_factory=KratosSettings)
    hydra: HydraSettings = Field(default_factory=HydraSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    cookies: CookieSettings = Field(default_factory=CookieSettings)


def load_settings(env_file: Optional[Path] = None) -> AppSettings:
    """Build settings, reading `env_file` instead of `.env` when provided."""
    if env_file is None:
        return AppSettings()  # type: ignore[call-arg]
    return AppSettings(  # type: ignore[call-arg]
        _env_file=env_file,
        kratos=KratosSettings(_env_file=env_file),  # type: ignore[call-arg]
        hydra=HydraSettings(_env_file=env_file),  # type: ignore[call-arg]
        oauth=OAuthSettings(_env_file=env_file),  # type: ignore[call-arg]
        cookies=CookieSettings(_env_file=env_file),  # type: ignore[call-arg]
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return load_settings()


__all__ = [
    "AppSettings",
    "CookieSettings",
    "HydraSettings",
    "KratosSettings",
    "OAuthSettings",
    "get_settings",
    "load_settings",
]
