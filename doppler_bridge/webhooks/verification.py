"""Doppler webhook signature verification.

Security contract:
- Doppler sends X-Doppler-Signature: sha256=<hex HMAC-SHA256 of the raw body>
- Comparison uses hmac.compare_digest() (constant-time, no timing attacks)
- A header without the sha256= prefix is rejected, never treated as an error
- Verification is opt-in: with no signing secret configured the handler
  does not call this module at all
"""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "x-doppler-signature"
SIGNATURE_PREFIX = "sha256="


def _hex_digest(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def compute_signature(secret: str, body: bytes) -> str:
    """Return the header value Doppler would send for ``body``."""
    return SIGNATURE_PREFIX + _hex_digest(secret, body)


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Verify a Doppler webhook signature.

    Args:
        secret: Shared signing secret configured in Doppler
        body: Raw (unparsed) request body bytes
        signature: Value of the X-Doppler-Signature header

    Returns:
        True if the signature matches the body
    """
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False

    expected = _hex_digest(secret, body)
    provided = signature[len(SIGNATURE_PREFIX):]

    # compare_digest only accepts ASCII str; non-ASCII input can't match a hex digest anyway
    if not provided.isascii():
        return False
    return hmac.compare_digest(expected, provided)
