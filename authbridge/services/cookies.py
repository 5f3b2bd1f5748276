"""
Cookie handling for the silent flow.

Cookie operations are staged per name and written to the outgoing response
once, so a deletion staged after a set of the same cookie replaces it and
the response carries a single ``Set-Cookie`` header per cookie.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from fastapi import Response

from authbridge.core.config import CookieSettings
from authbridge.models import FlowState, PkcePair, TokenResult

PKCE_VERIFIER_COOKIE = "oauth2_code_verifier"
STATE_COOKIE = "oauth2_state"
ACCESS_TOKEN_COOKIE = "hydra_access_token"
REFRESH_TOKEN_COOKIE = "hydra_refresh_token"

TRANSIENT_COOKIES = (PKCE_VERIFIER_COOKIE, STATE_COOKIE)
TOKEN_COOKIES = (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE)


@dataclass(frozen=True)
class _CookieOp:
    value: Optional[str]
    max_age: int
    samesite: Literal["lax", "strict"]

    @property
    def is_delete(self) -> bool:
        return self.value is None


class CookieIssuer:
    def __init__(self, settings: CookieSettings) -> None:
        self._settings = settings
        self._staged: dict[str, _CookieOp] = {}

    @property
    def staged(self) -> dict[str, Optional[str]]:
        """Staged values by cookie name; ``None`` marks a deletion."""
        return {name: op.value for name, op in self._staged.items()}

    def stage_transient(self, pkce: PkcePair, flow_state: FlowState) -> None:
        ttl = self._settings.pkce_ttl_seconds
        self._set(PKCE_VERIFIER_COOKIE, pkce.verifier, ttl, "strict")
        self._set(STATE_COOKIE, flow_state.state, ttl, "strict")

    def stage_tokens(self, tokens: TokenResult) -> None:
        self._set(ACCESS_TOKEN_COOKIE, tokens.access_token, tokens.expires_in, "lax")
        if tokens.refresh_token:
            self._set(
                REFRESH_TOKEN_COOKIE,
                tokens.refresh_token,
                self._settings.refresh_ttl_seconds,
                "lax",
            )

    def clear_transient(self) -> None:
        for name in TRANSIENT_COOKIES:
            self._staged[name] = _CookieOp(None, 0, "strict")

    def clear_tokens(self) -> None:
        self.clear(*TOKEN_COOKIES)

    def clear(self, *names: str) -> None:
        for name in names:
            self._staged[name] = _CookieOp(None, 0, "lax")

    def apply(self, response: Response) -> Response:
        """Write every staged operation to ``response``."""
        for name, op in self._staged.items():
            if op.is_delete:
                response.delete_cookie(
                    name,
                    path=self._settings.path,
                    secure=self._settings.secure,
                    httponly=True,
                    samesite=op.samesite,
                )
            else:
                response.set_cookie(
                    name,
                    op.value,
                    max_age=op.max_age,
                    path=self._settings.path,
                    secure=self._settings.secure,
                    httponly=True,
                    samesite=op.samesite,
                )
        return response

    def _set(self, name: str, value: str, max_age: int, samesite: Literal["lax", "strict"]) -> None:
        self._staged[name] = _CookieOp(value, max_age, samesite)


__all__ = [
    "ACCESS_TOKEN_COOKIE",
    "CookieIssuer",
    "PKCE_VERIFIER_COOKIE",
    "REFRESH_TOKEN_COOKIE",
    "STATE_COOKIE",
    "TOKEN_COOKIES",
    "TRANSIENT_COOKIES",
]
