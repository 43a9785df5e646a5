"""Shopify webhook signature verification.

Shopify signs the raw request body with HMAC-SHA256 and sends the base64
digest in the X-Shopify-Hmac-Sha256 header. The digest must be computed over
the bytes exactly as received; parsing and re-serializing the JSON changes
them and breaks verification.
"""

import base64
import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Shopify-Hmac-Sha256"


def compute_signature(body: bytes, secret: str) -> str:
    """Base64 HMAC-SHA256 of body under secret."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_signature(body: bytes, signature_header: Optional[str], secret: str) -> bool:
    """
    Check signature_header against the digest of the raw body.

    Returns False when no secret is configured, so a misconfigured server
    never accepts a request. The comparison is hmac.compare_digest, which
    does not stop at the first differing byte.
    """
    if not secret:
        logger.warning("SHOPIFY_WEBHOOK_SECRET not set, rejecting webhook")
        return False
    if not signature_header:
        return False

    expected = compute_signature(body, secret).encode("utf-8")
    try:
        claimed = signature_header.strip().encode("ascii")
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(expected, claimed)
