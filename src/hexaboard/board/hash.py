from __future__ import annotations

import hashlib
import hmac


def digest_hex(text: str) -> str:
    """SHA-256 of UTF-8 text as 64 lowercase hex characters."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def digests_match(expected: str, candidate: str) -> bool:
    return hmac.compare_digest(expected, candidate)
