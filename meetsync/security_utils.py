"""
Token comparison and origin fingerprinting
"""

import hashlib
import hmac
from typing import Optional


def constant_time_compare(a: Optional[str], b: Optional[str]) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Empty or missing values never match.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def compute_hmac_sha256(secret: str, payload: str) -> str:
    """Compute HMAC-SHA256 of payload as hex"""
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def fingerprint_origin(origin: str, daily_salt: str) -> str:
    """
    One-way fingerprint of a client origin (IP address).
    The salt rotates daily, so the same origin cannot be correlated across days.
    """
    return compute_hmac_sha256(daily_salt, (origin or "unknown").strip().lower())
