"""
Redirect-chain state machine driving Hydra's authorization endpoint.

The orchestrator plays the part of the browser: it requests the
authorization URL, inspects every ``Location`` it is handed, answers login
and consent challenges through the admin API and stops as soon as an
authorization code shows up.
"""

from __future__ import annotations

import logging
from enum import Enum
from urllib.parse import parse_qs, urljoin, urlsplit

import httpx

from authbridge.clients import HydraPublicClient
from authbridge.clients.hydra import REDIRECT_STATUSES
from authbridge.core.config import OAuthSettings
from authbridge.core.errors import (
    AuthorizationRejected,
    FlowError,
    RedirectBoundExceeded,
    UnexpectedAuthResponse,
)
from authbridge.core.logging import truncate
from authbridge.models import AuthorizationCode, Challenge, FlowState, FlowStep, Identity, PkcePair
from authbridge.services.acceptors import ConsentAcceptor, LoginAcceptor
from authbridge.services.challenge import decode_challenge

logger = logging.getLogger(__name__)


class HopKind(str, Enum):
    CODE = "code"
    LOGIN = "login"
    CONSENT = "consent"
    CALLBACK = "callback"
    EXTERNAL = "external"
    UNKNOWN = "unknown"


def _query(url: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(url).query)


def extract_code(url: str) -> str | None:
    values = _query(url).get("code")
    return values[0] if values and values[0] else None


def raw_query_param(url: str, name: str) -> str | None:
    """Return ``name`` from the query string exactly as it appears, undecoded."""
    for part in urlsplit(url).query.split("&"):
        key, sep, value = part.partition("=")
        if sep and key == name and value:
            return value
    return None


def _matches_endpoint(url: str, path: str) -> bool:
    return urlsplit(url).path.rstrip("/").endswith(path.rstrip("/"))


def _is_callback(url: str, redirect_uri: str) -> bool:
    target = urlsplit(redirect_uri)
    candidate = urlsplit(url)
    return (
        candidate.scheme == target.scheme
        and candidate.netloc == target.netloc
        and candidate.path.rstrip("/") == target.path.rstrip("/")
    )


def classify(url: str, oauth_settings: OAuthSettings) -> HopKind:
    """Classify a redirect target.

    The code check runs first: a hop carrying ``code`` is the end of the
    chain wherever it points.
    """
    if extract_code(url):
        return HopKind.CODE
    if _matches_endpoint(url, oauth_settings.login_path):
        return HopKind.LOGIN
    if _matches_endpoint(url, oauth_settings.consent_path):
        return HopKind.CONSENT
    if _is_callback(url, str(oauth_settings.redirect_uri)):
        return HopKind.CALLBACK
    if urlsplit(url).scheme in ("http", "https"):
        return HopKind.EXTERNAL
    return HopKind.UNKNOWN


class RedirectChainOrchestrator:
    """Drive one authorization request to an authorization code.

    Instances are single use: ``run`` issues exactly one authorization
    request and may not be called again.
    """

    def __init__(
        self,
        public_client: HydraPublicClient,
        login_acceptor: LoginAcceptor,
        consent_acceptor: ConsentAcceptor,
        oauth_settings: OAuthSettings,
        cookie_header: str,
    ) -> None:
        self._public = public_client
        self._login = login_acceptor
        self._consent = consent_acceptor
        self._oauth = oauth_settings
        self._cookie_header = cookie_header
        self.step = FlowStep.INIT
        self.hops: list[str] = []

    async def run(
        self, pkce: PkcePair, flow_state: FlowState, identity: Identity
    ) -> AuthorizationCode:
        if self.step is not FlowStep.INIT:
            raise RuntimeError("RedirectChainOrchestrator.run may only be called once")
        try:
            return await self._run(pkce, flow_state, identity)
        except FlowError as exc:
            self._transition(FlowStep.FAILED)
            logger.warning(
                "Silent flow failed after %s hops: %s (last URL: %s)",
                len(self.hops),
                exc.kind,
                truncate(exc.final_redirect_url or (self.hops[-1] if self.hops else None), 160),
            )
            raise

    def complete(self) -> None:
        """Mark the attempt finished once the code has been exchanged."""
        self._transition(FlowStep.DONE)

    async def _run(
        self, pkce: PkcePair, flow_state: FlowState, identity: Identity
    ) -> AuthorizationCode:
        self._transition(FlowStep.AUTHORIZING)
        authorization_url = self._public.build_authorization_url(pkce, flow_state)
        url = await self._next_location(
            authorization_url, "Unexpected response from authorization endpoint"
        )

        for _ in range(self._oauth.max_redirects):
            self.hops.append(url)
            kind = classify(url, self._oauth)

            if kind in (HopKind.CODE, HopKind.CALLBACK):
                code = extract_code(url)
                if code is None:
                    query = _query(url)
                    raise AuthorizationRejected(
                        "Hydra redirected to the callback without an authorization code",
                        final_redirect_url=url,
                        detail={
                            key: query[key][0]
                            for key in ("error", "error_description", "error_hint")
                            if key in query
                        },
                    )
                self._transition(FlowStep.CODE_FOUND)
                return AuthorizationCode(value=code)

            if kind is HopKind.LOGIN:
                self._transition(FlowStep.LOGIN_PENDING)
                challenge = self._challenge("login", url)
                url = urljoin(url, await self._login.accept(challenge, identity))
            elif kind is HopKind.CONSENT:
                self._transition(FlowStep.CONSENT_PENDING)
                challenge = self._challenge("consent", url)
                url = urljoin(url, await self._consent.accept(challenge, identity))
            elif kind is HopKind.EXTERNAL:
                self._transition(FlowStep.OPAQUE_HOP)
                url = await self._next_location(url, "Unexpected response while following redirect")
            else:
                raise UnexpectedAuthResponse(
                    "Cannot follow redirect target", final_redirect_url=url
                )

        raise RedirectBoundExceeded(
            "Failed to get authorization code from Hydra",
            final_redirect_url=url,
            detail={"max_redirects": self._oauth.max_redirects},
        )

    def _challenge(self, kind: str, url: str) -> Challenge:
        param = f"{kind}_challenge"
        raw = raw_query_param(url, param)
        if raw is None:
            raise UnexpectedAuthResponse(
                f"Redirect to the {kind} endpoint carries no {param}",
                final_redirect_url=url,
            )
        decoded = decode_challenge(raw)
        logger.debug(
            "Lifted %s challenge %s (raw %s)", kind, truncate(decoded), truncate(raw)
        )
        return Challenge(kind=kind, raw_token=raw, decoded_token=decoded)  # type: ignore[arg-type]

    async def _next_location(self, url: str, failure: str) -> str:
        try:
            response = await self._public.get_without_redirect(url, self._cookie_header)
        except httpx.HTTPError as exc:
            raise UnexpectedAuthResponse(f"{failure}: {exc}", final_redirect_url=url) from exc

        location = response.headers.get("location")
        if response.status_code not in REDIRECT_STATUSES or not location:
            raise UnexpectedAuthResponse(
                failure,
                final_redirect_url=url,
                detail={"status_code": response.status_code},
            )
        return urljoin(url, location)

    def _transition(self, step: FlowStep) -> None:
        logger.debug("Silent flow %s -> %s", self.step.value, step.value)
        self.step = step


__all__ = [
    "HopKind",
    "RedirectChainOrchestrator",
    "classify",
    "extract_code",
    "raw_query_param",
]
