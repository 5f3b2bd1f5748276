"""
PKCE verifier/challenge and state generation (RFC 7636, S256).
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from authbridge.models import FlowState, PkcePair

VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"
STATE_ALPHABET = string.ascii_letters + string.digits
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128
STATE_LENGTH = 32


def generate_code_verifier() -> str:
    length = MIN_VERIFIER_LENGTH + secrets.randbelow(
        MAX_VERIFIER_LENGTH - MIN_VERIFIER_LENGTH + 1
    )
    return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))


def derive_challenge(verifier: str) -> str:
    """BASE64URL(SHA256(ASCII(verifier))) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_state() -> str:
    return "".join(secrets.choice(STATE_ALPHABET) for _ in range(STATE_LENGTH))


def generate() -> tuple[PkcePair, FlowState]:
    """Create a fresh PKCE pair and flow state for one authorization attempt."""
    verifier = generate_code_verifier()
    return PkcePair(verifier=verifier, challenge=derive_challenge(verifier)), FlowState(
        state=generate_state()
    )


__all__ = [
    "derive_challenge",
    "generate",
    "generate_code_verifier",
    "generate_state",
]
