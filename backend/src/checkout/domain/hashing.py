"""
Cryptographic signing utilities for payment payloads.

The gateway requires every transaction to carry an integrity signature
so it can verify server-side that amount, currency and reference were not
tampered with, without the secret ever reaching the browser.

Design Decisions:
- SHA-256 as required by the gateway
- Inputs concatenated without separators, in the gateway's documented
  order: reference + amount_in_cents + currency + secret
- Deterministic: same inputs always give the same signature
"""

import hashlib
import hmac


def compute_integrity_signature(
    reference: str,
    amount_in_cents: int,
    currency: str,
    integrity_key: str,
) -> str:
    """
    Compute the integrity signature for a payment.

    Args:
        reference: Merchant reference sent with the payment
        amount_in_cents: Amount to charge, in cents
        currency: ISO currency code (e.g. "COP")
        integrity_key: Merchant integrity secret

    Returns:
        Hex-encoded SHA-256 digest (64 characters)

    Example:
        >>> compute_integrity_signature("TXN-1", 455000000, "COP", "secret")
        '3f0c...'
    """
    if not reference:
        raise ValueError("Cannot sign a payment without a reference")
    if not integrity_key:
        raise ValueError("Integrity key is not configured")

    concatenated = f"{reference}{amount_in_cents}{currency}{integrity_key}"
    return hashlib.sha256(concatenated.encode("utf-8")).hexdigest()


def verify_integrity_signature(
    signature: str,
    reference: str,
    amount_in_cents: int,
    currency: str,
    integrity_key: str,
) -> bool:
    """
    Verify a signature against the payment fields.

    Uses a constant-time comparison.
    """
    expected = compute_integrity_signature(reference, amount_in_cents, currency, integrity_key)
    return hmac.compare_digest(expected, signature)
