"""
Silent answers to Hydra login, consent and logout challenges.

Every acceptor consumes the challenge on Hydra's side. A failure is final for
the flow attempt: the acceptors never call the same endpoint twice.
"""

from __future__ import annotations

import logging
from typing import Any

from authbridge.clients import HydraAdminClient
from authbridge.core.config import OAuthSettings
from authbridge.core.errors import ChallengeAcceptFailed
from authbridge.core.logging import truncate
from authbridge.models import AdminResult, Challenge, Identity

logger = logging.getLogger(__name__)

LOGOUT_FALLBACK_REDIRECT = "/"


def _failure(action: str, challenge: Challenge, result: AdminResult) -> ChallengeAcceptFailed:
    detail: dict[str, Any] = {
        "challenge_kind": challenge.kind,
        "status_code": result.status_code,
    }
    if result.error:
        detail["upstream_error"] = result.error
    if result.redirect_to:
        # Hydra hands back a redirect for already-handled challenges; it is
        # reported, not followed.
        detail["redirect_to"] = result.redirect_to
    return ChallengeAcceptFailed(f"Failed to {action}", detail=detail)


class LoginAcceptor:
    """Accept a login challenge on behalf of the verified Kratos subject."""

    def __init__(self, admin_client: HydraAdminClient, oauth_settings: OAuthSettings) -> None:
        self._admin = admin_client
        self._oauth = oauth_settings

    async def accept(self, challenge: Challenge, identity: Identity) -> str:
        body = {
            "subject": identity.subject_id,
            "remember": True,
            "remember_for": self._oauth.remember_for,
            "acr": self._oauth.acr,
            "context": identity.claims(),
        }
        logger.debug("Accepting login challenge %s", truncate(challenge.decoded_token))
        result = await self._admin.accept_login(challenge.decoded_token, body)
        if not result.ok or not result.redirect_to:
            raise _failure("accept login challenge", challenge, result)
        return result.redirect_to


class ConsentAcceptor:
    """Grant every scope a consent challenge asks for, without narrowing."""

    def __init__(self, admin_client: HydraAdminClient, oauth_settings: OAuthSettings) -> None:
        self._admin = admin_client
        self._oauth = oauth_settings

    async def accept(self, challenge: Challenge, identity: Identity) -> str:
        request = await self._admin.get_consent_request(challenge.decoded_token)
        if not request.ok:
            raise _failure("get consent request", challenge, request)

        requested_scope = request.payload.get("requested_scope")
        if not isinstance(requested_scope, (list, tuple)):
            requested_scope = self._oauth.scopes
        client = request.payload.get("client") or {}
        client_id = client.get("client_id")

        claims = identity.claims()
        body = {
            "grant_scope": list(requested_scope),
            "grant_access_token_audience": [client_id] if client_id else [],
            "session": {"access_token": dict(claims), "id_token": dict(claims)},
            "remember": True,
            "remember_for": self._oauth.remember_for,
        }
        logger.debug(
            "Accepting consent challenge %s for scopes %s",
            truncate(challenge.decoded_token),
            " ".join(body["grant_scope"]),
        )
        result = await self._admin.accept_consent(challenge.decoded_token, body)
        if not result.ok or not result.redirect_to:
            raise _failure("accept consent challenge", challenge, result)
        return result.redirect_to


class LogoutAcceptor:
    """Confirm a logout challenge without showing the user a confirmation page."""

    def __init__(self, admin_client: HydraAdminClient) -> None:
        self._admin = admin_client

    async def inspect(self, challenge: Challenge) -> dict[str, Any]:
        """Return Hydra's logout request, raising if the challenge is unknown."""
        request = await self._admin.get_logout_request(challenge.decoded_token)
        if not request.ok:
            raise _failure("get logout request", challenge, request)
        return request.payload

    async def accept(self, challenge: Challenge) -> str:
        logger.debug("Accepting logout challenge %s", truncate(challenge.decoded_token))
        result = await self._admin.accept_logout(challenge.decoded_token)
        if not result.ok:
            raise _failure("accept logout challenge", challenge, result)
        return result.redirect_to or LOGOUT_FALLBACK_REDIRECT


__all__ = ["ConsentAcceptor", "LOGOUT_FALLBACK_REDIRECT", "LoginAcceptor", "LogoutAcceptor"]
