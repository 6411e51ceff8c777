"""
Webhook Signatures
==================

HMAC-SHA256 signing shared by inbound verification and outbound
webhook delivery.
"""

import hashlib
import hmac
from typing import Optional, Union

BytesLike = Union[bytes, str]


def _as_bytes(value: BytesLike) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def sign_payload(body: BytesLike, secret: str) -> str:
    """Lowercase hex HMAC-SHA256 of `body` keyed by `secret`."""
    return hmac.new(_as_bytes(secret), _as_bytes(body), hashlib.sha256).hexdigest()


def verify_signature(body: BytesLike, signature: Optional[BytesLike], secret: str) -> bool:
    """
    Constant-time check of a hex signature.

    The header value must equal the lowercase hex digest exactly; any
    change to it, letter case included, fails. Returns False for a
    missing signature rather than raising.
    """
    if not signature:
        return False

    expected = sign_payload(body, secret)
    return hmac.compare_digest(_as_bytes(expected), _as_bytes(signature))


def tokens_match(provided: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison of a shared token; an unset token never matches."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(_as_bytes(provided), _as_bytes(expected))
