"""
Hydra public and administrative API clients.

The public client drives the authorization endpoint and the token endpoint;
the admin client answers login, consent and logout challenges.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import httpx
from fastapi import status

from authbridge.core.config import HydraSettings, OAuthSettings
from authbridge.core.errors import TokenExchangeFailed, Unauthenticated, UpstreamUnavailable
from authbridge.models import AdminResult, FlowState, PkcePair, TokenResult
from authbridge.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({302, 303, 307, 308})


def _join(base: Any, path: str) -> str:
    return f"{str(base).rstrip('/')}{path}"


class HydraPublicClient:
    """Build Hydra authorization URLs and exchange codes for tokens."""

    AUTH_PATH = "/oauth2/auth"
    TOKEN_PATH = "/oauth2/token"
    USERINFO_PATH = "/userinfo"

    def __init__(
        self,
        hydra_settings: HydraSettings,
        oauth_settings: OAuthSettings,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        default_expires_in: int = 3600,
    ) -> None:
        self._hydra = hydra_settings
        self._oauth = oauth_settings
        self._timeout = timeout
        self._transport = transport
        self._default_expires_in = default_expires_in

    @property
    def token_url(self) -> str:
        return _join(self._hydra.public_url, self.TOKEN_PATH)

    def build_authorization_url(self, pkce: PkcePair, flow_state: FlowState) -> str:
        """Construct the Hydra authorization URL for a PKCE-protected code flow."""
        params = {
            "client_id": self._oauth.client_id,
            "redirect_uri": str(self._oauth.redirect_uri),
            "response_type": "code",
            "scope": " ".join(self._oauth.scopes),
            "state": flow_state.state,
            "code_challenge": pkce.challenge,
            "code_challenge_method": pkce.method,
        }
        return f"{_join(self._hydra.public_url, self.AUTH_PATH)}?{urlencode(params)}"

    async def get_without_redirect(self, url: str, cookie_header: str) -> httpx.Response:
        """GET ``url`` forwarding the caller's cookies, leaving redirects unfollowed."""
        headers = {"Cookie": cookie_header} if cookie_header else {}
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport, follow_redirects=False
        ) as client:
            return await client.get(url, headers=headers)

    async def exchange_code(self, code: str, code_verifier: str) -> TokenResult:
        """Exchange an authorization code plus its PKCE verifier for tokens."""
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": str(self._oauth.redirect_uri),
            "client_id": self._oauth.client_id,
            "code_verifier": code_verifier,
        }
        return await self._post_token(payload, "Failed to exchange code for tokens")

    async def refresh(self, refresh_token: str) -> TokenResult:
        """Exchange a refresh token for a new access token."""
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self._oauth.client_id,
        }
        return await self._post_token(payload, "Failed to refresh token")

    async def userinfo(self, access_token: str) -> dict[str, Any]:
        """Fetch the OIDC userinfo document for ``access_token``."""
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await request_with_retry(
                    client.get,
                    _join(self._hydra.public_url, self.USERINFO_PATH),
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"Hydra userinfo request failed: {exc}") from exc

        if response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN):
            raise Unauthenticated("Access token rejected by Hydra")
        if response.status_code != status.HTTP_200_OK:
            raise UpstreamUnavailable(
                f"Hydra userinfo answered with HTTP {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamUnavailable("Hydra userinfo returned a non-JSON body") from exc

    async def _post_token(self, payload: dict[str, str], failure: str) -> TokenResult:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.token_url,
                    data=payload,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            raise TokenExchangeFailed(f"{failure}: {exc}") from exc

        try:
            token_payload = response.json()
        except ValueError:
            token_payload = {}

        if response.status_code != status.HTTP_200_OK:
            logger.warning(
                "Hydra token endpoint answered %s (%s)",
                response.status_code,
                token_payload.get("error") if isinstance(token_payload, dict) else None,
            )
            raise TokenExchangeFailed(
                failure,
                detail=_oauth_error(token_payload, response.status_code),
            )

        access_token = token_payload.get("access_token") if isinstance(token_payload, dict) else None
        if not access_token:
            raise TokenExchangeFailed(f"{failure}: no access token received from Hydra")

        return TokenResult(
            access_token=access_token,
            refresh_token=token_payload.get("refresh_token") or None,
            expires_in=int(token_payload.get("expires_in") or self._default_expires_in),
            id_token=token_payload.get("id_token"),
            scope=token_payload.get("scope"),
            token_type=token_payload.get("token_type"),
        )


class HydraAdminClient:
    """Thin wrapper over Hydra's login, consent and logout administrative endpoints.

    Every call returns an ``AdminResult``; interpreting it is left to the
    acceptors. The accept calls consume the challenge on Hydra's side and
    are deliberately issued exactly once.
    """

    REQUESTS_PATH = "/admin/oauth2/auth/requests"

    def __init__(
        self,
        hydra_settings: HydraSettings,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._hydra = hydra_settings
        self._timeout = timeout
        self._transport = transport
        self._retry_config = retry_config

    def _url(self, suffix: str) -> str:
        return _join(self._hydra.admin_url, f"{self.REQUESTS_PATH}{suffix}")

    async def accept_login(self, login_challenge: str, body: dict[str, Any]) -> AdminResult:
        return await self._send(
            "PUT",
            self._url("/login/accept"),
            params={"login_challenge": login_challenge},
            json=body,
        )

    async def get_consent_request(self, consent_challenge: str) -> AdminResult:
        return await self._send(
            "GET",
            self._url("/consent"),
            params={"consent_challenge": consent_challenge},
            retry=True,
        )

    async def accept_consent(self, consent_challenge: str, body: dict[str, Any]) -> AdminResult:
        return await self._send(
            "PUT",
            self._url("/consent/accept"),
            params={"consent_challenge": consent_challenge},
            json=body,
        )

    async def get_logout_request(self, logout_challenge: str) -> AdminResult:
        return await self._send(
            "GET",
            self._url("/logout"),
            params={"logout_challenge": logout_challenge},
            retry=True,
        )

    async def accept_logout(self, logout_challenge: str) -> AdminResult:
        return await self._send(
            "PUT",
            self._url("/logout/accept"),
            params={"logout_challenge": logout_challenge},
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str],
        json: dict[str, Any] | None = None,
        retry: bool = False,
    ) -> AdminResult:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                if retry:
                    response = await request_with_retry(
                        client.request,
                        method,
                        url,
                        params=params,
                        retry_config=self._retry_config,
                    )
                else:
                    response = await client.request(method, url, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.warning("Hydra admin %s %s failed: %s", method, url, exc)
            return AdminResult(ok=False, status_code=0, error=str(exc))

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_success:
            return AdminResult(ok=True, status_code=response.status_code, payload=payload)

        error = payload.get("error_description") or payload.get("error") or response.reason_phrase
        return AdminResult(
            ok=False,
            status_code=response.status_code,
            payload=payload,
            error=str(error),
        )


def _oauth_error(payload: Any, status_code: int) -> dict[str, Any]:
    detail: dict[str, Any] = {"status_code": status_code}
    if isinstance(payload, dict):
        for key in ("error", "error_description", "error_hint"):
            if payload.get(key):
                detail[key] = payload[key]
    return detail


__all__ = ["HydraAdminClient", "HydraPublicClient", "REDIRECT_STATUSES"]
