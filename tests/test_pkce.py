from __future__ import annotations

import base64
import hashlib
import re

from authbridge.services import pkce

VERIFIER_RE = re.compile(r"^[A-Za-z0-9\-._~]{43,128}$")
STATE_RE = re.compile(r"^[A-Za-z0-9]{32}$")


def test_generated_pairs_respect_rfc7636_bounds() -> None:
    lengths = set()
    for _ in range(300):
        pair, flow_state = pkce.generate()
        lengths.add(len(pair.verifier))

        assert VERIFIER_RE.match(pair.verifier)
        expected = (
            base64.urlsafe_b64encode(hashlib.sha256(pair.verifier.encode("ascii")).digest())
            .decode("ascii")
            .rstrip("=")
        )
        assert pair.challenge == expected
        assert "=" not in pair.challenge
        assert "+" not in pair.challenge and "/" not in pair.challenge
        assert pair.method == "S256"
        assert STATE_RE.match(flow_state.state)

    # Lengths are drawn from the whole range, not pinned to one value.
    assert len(lengths) > 1
    assert min(lengths) >= 43 and max(lengths) <= 128


def test_derive_challenge_matches_rfc7636_appendix_b() -> None:
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert pkce.derive_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_each_attempt_gets_fresh_values() -> None:
    first_pair, first_state = pkce.generate()
    second_pair, second_state = pkce.generate()

    assert first_pair.verifier != second_pair.verifier
    assert first_state.state != second_state.state


def test_pkce_pair_repr_hides_verifier() -> None:
    pair, _ = pkce.generate()
    assert pair.verifier not in repr(pair)
