"""
Domain models for a single silent authorization attempt.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class FlowStep(str, Enum):
    """States of the redirect-chain state machine."""

    INIT = "init"
    AUTHORIZING = "authorizing"
    LOGIN_PENDING = "login_pending"
    CONSENT_PENDING = "consent_pending"
    OPAQUE_HOP = "opaque_hop"
    CODE_FOUND = "code_found"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PkcePair:
    """PKCE verifier and its S256 challenge."""

    verifier: str
    challenge: str
    method: str = "S256"

    def __repr__(self) -> str:
        return f"PkcePair(challenge={self.challenge!r}, method={self.method!r})"


@dataclass(frozen=True)
class FlowState:
    """Anti-CSRF state correlating the authorization request with its result."""

    state: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Challenge:
    """A Hydra challenge token, as found in the URL and as sent to the admin API."""

    kind: Literal["login", "consent", "logout"]
    raw_token: str
    decoded_token: str


@dataclass(frozen=True)
class AuthorizationCode:
    value: str

    def __repr__(self) -> str:
        return "AuthorizationCode(<redacted>)"


class Identity(BaseModel):
    """Read-only projection of the Kratos session identity."""

    model_config = {"frozen": True}

    subject_id: str = Field(..., description="Kratos identity id, used as Hydra subject.")
    email: Optional[str] = None
    email_verified: bool = False

    def claims(self) -> dict[str, Any]:
        """Claims forwarded to Hydra as login context and session data."""
        return {"email": self.email, "email_verified": self.email_verified}


class TokenResult(BaseModel):
    """Token pair returned by the Hydra token endpoint."""

    access_token: str = Field(..., repr=False)
    refresh_token: Optional[str] = Field(None, repr=False)
    expires_in: int
    id_token: Optional[str] = Field(None, repr=False)
    scope: Optional[str] = None
    token_type: Optional[str] = None


class AdminResult(BaseModel):
    """Outcome of a Hydra admin call.

    A failed status may still carry a useful body (Hydra answers an
    already-handled challenge with 410 and a ``redirect_to``), so the payload
    is kept alongside the failure instead of being thrown away.
    """

    ok: bool
    status_code: int
    payload: dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    @property
    def redirect_to(self) -> Optional[str]:
        value = self.payload.get("redirect_to")
        return value if isinstance(value, str) and value else None


__all__ = [
    "AdminResult",
    "AuthorizationCode",
    "Challenge",
    "FlowState",
    "FlowStep",
    "Identity",
    "PkcePair",
    "TokenResult",
]
