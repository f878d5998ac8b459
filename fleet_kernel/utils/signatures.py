"""
Webhook signature utilities.

Banks sign each notification with HMAC-SHA256 over the exact bytes of the
request body using a shared secret.  Verification MUST run on the raw body:
re-serialising parsed JSON changes whitespace and key order and would
reject genuine deliveries, or accept forged ones if a lenient parser sits
upstream.

Accepted header forms:
    <hex-digest>             CommBank style
    sha256=<hex-digest>      prefixed style
"""

import hashlib
import hmac
import string

SIGNATURE_SCHEME = "sha256"
_DIGEST_HEX_LENGTH = hashlib.sha256().digest_size * 2
_HEX_DIGITS = frozenset(string.hexdigits)


def _secret_bytes(secret: str | bytes) -> bytes:
    if isinstance(secret, bytes):
        return secret
    return secret.encode("utf-8")


def compute_signature(raw_body: bytes, secret: str | bytes) -> str:
    """
    Compute the hex HMAC-SHA256 of a raw request body.

    Deterministic: identical body and secret always give the same digest.
    """
    return hmac.new(_secret_bytes(secret), raw_body, hashlib.sha256).hexdigest()


def format_signature_header(raw_body: bytes, secret: str | bytes) -> str:
    """Signature in the prefixed ``sha256=<hex>`` header form."""
    return f"{SIGNATURE_SCHEME}={compute_signature(raw_body, secret)}"


def parse_signature_header(header: str | None) -> str | None:
    """
    Extract the lower-case hex digest from a signature header.

    Returns None for anything that is not a well-formed SHA-256 hex digest.
    """
    if not isinstance(header, str):
        return None
    value = header.strip()
    scheme, sep, digest = value.partition("=")
    if sep:
        if scheme.strip().lower() != SIGNATURE_SCHEME:
            return None
        value = digest.strip()
    if len(value) != _DIGEST_HEX_LENGTH or not set(value) <= _HEX_DIGITS:
        return None
    return value.lower()


def verify_signature(
    raw_body: bytes,
    provided_signature: str | None,
    secret: str | bytes,
) -> bool:
    """
    Check a webhook signature in constant time.

    Never raises: a missing, malformed or wrong signature, a non-bytes body
    or an empty secret all return False.
    """
    if not secret or not isinstance(raw_body, (bytes, bytearray)):
        return False
    provided = parse_signature_header(provided_signature)
    if provided is None:
        return False
    expected = compute_signature(bytes(raw_body), secret)
    return hmac.compare_digest(expected, provided)
