"""Exception hierarchy for the silent OAuth2 flow.

Every failure of a flow attempt is raised as a ``FlowError`` subclass and
rendered by the API layer as a single structured error response.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any


class FlowError(Exception):
    """Base exception for all silent flow failures."""

    kind = "FlowError"
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        final_redirect_url: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.final_redirect_url = final_redirect_url
        self.detail = detail or {}

    def to_detail(self) -> dict[str, Any]:
        """Diagnostic payload returned to the caller."""
        payload: dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.final_redirect_url:
            payload["final_redirect_url"] = self.final_redirect_url
        if self.detail:
            payload["detail"] = self.detail
        return payload


class Unauthenticated(FlowError):
    """Raised when no valid Kratos session backs the request."""

    kind = "Unauthenticated"
    status_code = HTTPStatus.UNAUTHORIZED


class UnexpectedAuthResponse(FlowError):
    """Raised when a hop of the authorization chain does not redirect."""

    kind = "UnexpectedAuthResponse"


class ChallengeAcceptFailed(FlowError):
    """Raised when Hydra refuses a login or consent acceptance.

    Hydra state may already have advanced, so the attempt is never retried.
    """

    kind = "ChallengeAcceptFailed"


class RedirectBoundExceeded(FlowError):
    """Raised when the redirect chain does not yield a code within the hop cap."""

    kind = "RedirectBoundExceeded"


class AuthorizationRejected(FlowError):
    """Raised when Hydra lands on the callback URI without an authorization code."""

    kind = "AuthorizationRejected"


class TokenExchangeFailed(FlowError):
    """Raised when the token endpoint does not return an access token."""

    kind = "TokenExchangeFailed"


class UpstreamUnavailable(FlowError):
    """Raised when Kratos or Hydra answer a read-only call with an unusable response."""

    kind = "UpstreamUnavailable"
    status_code = HTTPStatus.BAD_GATEWAY


__all__ = [
    "AuthorizationRejected",
    "ChallengeAcceptFailed",
    "FlowError",
    "RedirectBoundExceeded",
    "TokenExchangeFailed",
    "Unauthenticated",
    "UnexpectedAuthResponse",
    "UpstreamUnavailable",
]
