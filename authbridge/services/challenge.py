"""Normalization of challenge tokens lifted from redirect URLs."""

from __future__ import annotations

import logging
import re
from urllib.parse import unquote

logger = logging.getLogger(__name__)

MAX_DECODE_PASSES = 5

# A '%' not followed by two hex digits.
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def decode_challenge(raw_token: str, max_passes: int = MAX_DECODE_PASSES) -> str:
    """Percent-decode ``raw_token`` until it stabilizes.

    Each hop that re-serializes a URL may escape the token again, so decoding
    continues while the value still contains ``%``, the last pass changed it,
    and fewer than ``max_passes`` passes ran. A value that cannot be decoded
    (a malformed ``%`` escape or bytes that are not UTF-8) stops the loop and
    is returned as is. ``unquote`` would silently keep malformed escapes, so
    they are rejected up front.
    """
    current = raw_token
    previous = None
    passes = 0
    while "%" in current and current != previous and passes < max_passes:
        if _MALFORMED_ESCAPE.search(current):
            logger.debug("Challenge decoding stopped at a malformed escape after %s passes", passes)
            return current
        previous = current
        try:
            current = unquote(current, errors="strict")
        except UnicodeDecodeError:
            logger.debug("Challenge decoding stopped after %s passes", passes)
            return previous
        passes += 1
    return current


__all__ = ["MAX_DECODE_PASSES", "decode_challenge"]
