"""Webhook signature verification — constant-time HMAC over the raw body.

Security contract:
- The HMAC is computed over the exact bytes received, before any JSON parsing
- Comparison uses hmac.compare_digest() after a length check (no timing leaks)
- Verification failure -> 401 immediately, no payload processing
- Missing secret -> every signature is accepted, with a WARNING on every call
  (insecure mode for local development; never silent)
- Never raises: any malformed input is a plain False
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

# Shopify sends the base64-encoded HMAC-SHA256 of the body in this header
SIGNATURE_HEADER = "x-shopify-hmac-sha256"

INSECURE_MODE_WARNING = (
    "SHOPIFY_WEBHOOK_SECRET is not set: accepting webhook WITHOUT signature verification"
)


def compute_signature(body: bytes, secret: str) -> str:
    """Return the base64-encoded HMAC-SHA256 of ``body`` under ``secret``."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_shopify(body: bytes, signature_header: str | None, secret: str | None) -> bool:
    """Verify a Shopify webhook HMAC-SHA256 signature.

    Args:
        body: Raw request body bytes, exactly as received
        signature_header: Value of the X-Shopify-Hmac-SHA256 header
        secret: Shared webhook secret, or None for insecure mode

    Returns:
        True if the signature is valid (or no secret is configured)
    """
    if not secret:
        logger.warning(INSECURE_MODE_WARNING)
        return True
    if not signature_header or not isinstance(signature_header, str):
        return False

    try:
        expected = compute_signature(body, secret).encode("ascii")
        received = signature_header.strip().encode("utf-8")
    except (TypeError, UnicodeError):
        logger.warning("Malformed webhook signature input", exc_info=True)
        return False

    if len(expected) != len(received):
        return False
    return hmac.compare_digest(expected, received)
