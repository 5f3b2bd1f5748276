"""
Coordinator for the silent Kratos-to-Hydra token flow.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from authbridge.clients import HydraAdminClient, HydraPublicClient, KratosSessionClient
from authbridge.core.config import AppSettings
from authbridge.core.errors import FlowError, TokenExchangeFailed
from authbridge.core.logging import truncate
from authbridge.models import Challenge
from authbridge.services import pkce as pkce_generator
from authbridge.services.acceptors import (
    LOGOUT_FALLBACK_REDIRECT,
    ConsentAcceptor,
    LoginAcceptor,
    LogoutAcceptor,
)
from authbridge.services.cookies import CookieIssuer
from authbridge.services.redirect_chain import RedirectChainOrchestrator

logger = logging.getLogger(__name__)


class SilentFlowService:
    """Turns a valid Kratos session into Hydra tokens without user interaction.

    Every call builds its own upstream clients; the service holds only
    configuration, so one instance is safely shared across requests.
    """

    def __init__(
        self,
        settings: AppSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def public_client(self) -> HydraPublicClient:
        return HydraPublicClient(
            self._settings.hydra,
            self._settings.oauth,
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
            default_expires_in=self._settings.cookies.default_access_ttl_seconds,
        )

    def session_client(self, cookie_header: str) -> KratosSessionClient:
        return KratosSessionClient(
            self._settings.kratos,
            cookie_header,
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
        )

    def admin_client(self) -> HydraAdminClient:
        return HydraAdminClient(
            self._settings.hydra,
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
        )

    def orchestrator(self, cookie_header: str) -> RedirectChainOrchestrator:
        admin = self.admin_client()
        return RedirectChainOrchestrator(
            self.public_client(),
            LoginAcceptor(admin, self._settings.oauth),
            ConsentAcceptor(admin, self._settings.oauth),
            self._settings.oauth,
            cookie_header,
        )

    async def start(self, cookie_header: str, cookies: CookieIssuer) -> int:
        """Run one silent flow attempt, staging the resulting cookies.

        Returns the access token lifetime in seconds. Raises ``FlowError``
        subclasses; once the PKCE cookies are staged they are cleared on
        every exit path.
        """
        identity = await self.session_client(cookie_header).verify()

        pkce, flow_state = pkce_generator.generate()
        # Replaced by clear_transient below; only the deletion reaches the browser.
        cookies.stage_transient(pkce, flow_state)
        try:
            orchestrator = self.orchestrator(cookie_header)
            code = await orchestrator.run(pkce, flow_state, identity)
            tokens = await self.public_client().exchange_code(code.value, pkce.verifier)
            orchestrator.complete()
            cookies.stage_tokens(tokens)
        finally:
            cookies.clear_transient()

        logger.info(
            "Issued Hydra tokens for subject %s (refresh token: %s)",
            identity.subject_id,
            "yes" if tokens.refresh_token else "no",
        )
        return tokens.expires_in

    async def refresh(self, refresh_token: str, cookies: CookieIssuer) -> int:
        """Rotate the access token; token cookies are dropped when Hydra refuses."""
        try:
            tokens = await self.public_client().refresh(refresh_token)
        except TokenExchangeFailed:
            cookies.clear_tokens()
            raise
        cookies.stage_tokens(tokens)
        return tokens.expires_in

    async def userinfo(self, access_token: str) -> dict[str, Any]:
        info = await self.public_client().userinfo(access_token)
        name = info.get("name") if isinstance(info.get("name"), dict) else {}
        return {
            "id": info.get("sub") or "",
            "email": info.get("email") or "",
            "email_verified": bool(info.get("email_verified", False)),
            "first_name": info.get("given_name") or name.get("first") or "",
            "last_name": info.get("family_name") or name.get("last") or "",
            "avatar": info.get("picture"),
            "roles": [],
        }

    async def logout(
        self, logout_challenge: str, cookie_header: str, cookies: CookieIssuer
    ) -> str:
        """Accept a Hydra logout challenge and end the local sessions.

        Returns where to send the browser next. Hydra failures are logged and
        answered with the fallback redirect, never with an error page.
        """
        acceptor = LogoutAcceptor(self.admin_client())
        challenge = Challenge(
            kind="logout", raw_token=logout_challenge, decoded_token=logout_challenge
        )
        try:
            await acceptor.inspect(challenge)

            session = self.session_client(cookie_header)
            if session.has_session_cookie():
                await session.end_session()
                cookies.clear(self._settings.kratos.session_cookie)

            redirect_to = await acceptor.accept(challenge)
        except FlowError as exc:
            logger.warning(
                "Logout challenge %s not accepted: %s", truncate(logout_challenge), exc.message
            )
            return LOGOUT_FALLBACK_REDIRECT

        cookies.clear_tokens()
        return redirect_to


__all__ = ["SilentFlowService"]
