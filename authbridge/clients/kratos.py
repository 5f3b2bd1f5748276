"""
Kratos session verification and browser logout.

A client is built for each inbound request and carries nothing but that
request's cookie header.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx
from fastapi import status

from authbridge.core.config import KratosSettings
from authbridge.core.errors import Unauthenticated, UpstreamUnavailable
from authbridge.models import Identity
from authbridge.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


class KratosSessionClient:
    """Confirm or end a first-party session on behalf of the browser."""

    WHOAMI_PATH = "/sessions/whoami"
    LOGOUT_FLOW_PATH = "/self-service/logout/browser"
    LOGOUT_PATH = "/self-service/logout"

    def __init__(
        self,
        settings: KratosSettings,
        cookie_header: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._settings = settings
        self._cookie_header = cookie_header or ""
        self._timeout = timeout
        self._transport = transport
        self._retry_config = retry_config

    @property
    def cookie_header(self) -> str:
        return self._cookie_header

    def has_session_cookie(self) -> bool:
        name = re.escape(self._settings.session_cookie)
        return re.search(rf"(?:^|;\s*){name}=[^;]+", self._cookie_header) is not None

    async def verify(self) -> Identity:
        """Return the session identity or raise ``Unauthenticated``."""
        if not self.has_session_cookie():
            raise Unauthenticated("No Kratos session found. Please login first.")

        url = f"{str(self._settings.public_url).rstrip('/')}{self.WHOAMI_PATH}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await request_with_retry(
                    client.get,
                    url,
                    headers={"Cookie": self._cookie_header, "Accept": "application/json"},
                    retry_config=self._retry_config,
                )
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"Kratos session check failed: {exc}") from exc

        if response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
            raise Unauthenticated("Invalid Kratos session")
        if response.status_code != status.HTTP_200_OK:
            raise UpstreamUnavailable(
                f"Kratos answered whoami with HTTP {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamUnavailable("Kratos returned a non-JSON session payload") from exc

        identity = payload.get("identity") if isinstance(payload, dict) else None
        if not isinstance(identity, dict) or not identity.get("id"):
            raise Unauthenticated("No identity found in session")

        return self._to_identity(identity)

    async def end_session(self) -> bool:
        """Run Kratos' browser logout flow for the forwarded session.

        Best effort: the session may already be gone, so failures are logged
        and reported as ``False`` rather than raised.
        """
        if not self.has_session_cookie():
            return False

        base = str(self._settings.public_url).rstrip("/")
        headers = {"Cookie": self._cookie_header, "Accept": "application/json"}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                flow = await client.get(f"{base}{self.LOGOUT_FLOW_PATH}", headers=headers)
                token = _logout_token(flow)
                if not token:
                    logger.warning("Kratos refused a logout flow (HTTP %s)", flow.status_code)
                    return False
                response = await client.get(
                    f"{base}{self.LOGOUT_PATH}", params={"token": token}, headers=headers
                )
        except httpx.HTTPError as exc:
            logger.warning("Kratos logout failed: %s", exc)
            return False

        if not response.is_success:
            logger.warning("Kratos logout answered HTTP %s", response.status_code)
            return False
        return True

    @staticmethod
    def _to_identity(identity: dict[str, Any]) -> Identity:
        traits = identity.get("traits") or {}
        email = traits.get("email") or traits.get("email_address")
        logger.debug("Kratos session resolved to identity %s", identity["id"])
        return Identity(
            subject_id=str(identity["id"]),
            email=email,
            email_verified=bool(traits.get("email_verified", False)),
        )


def _logout_token(response: httpx.Response) -> str | None:
    if not response.is_success:
        return None
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload.get("logout_token") if isinstance(payload, dict) else None


__all__ = ["KratosSessionClient"]
