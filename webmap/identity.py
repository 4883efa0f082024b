"""Content-identity hashing for graph keys."""

from __future__ import annotations

import hashlib

IDENTITY_BITS = 64


def identity(base: str, absolute_url: str) -> int:
    """Map a ``(base, absolute_url)`` pair to a stable 64-bit key.

    The pair is length-prefixed before hashing so that moving characters
    between the two strings always changes the key. The result is stable
    across processes, not only within one run.
    """
    digest = hashlib.blake2b(digest_size=IDENTITY_BITS // 8)
    for part in (absolute_url, base):
        data = part.encode("utf-8", "surrogatepass")
        digest.update(len(data).to_bytes(8, "big"))
        digest.update(data)
    return int.from_bytes(digest.digest(), "big")


def format_identity(value: int) -> str:
    """Render an identity as fixed-width hex (safe for JSON consumers)."""
    return f"{value:016x}"


def parse_identity(text: str) -> int:
    """Inverse of :func:`format_identity`."""
    value = int(text, 16)
    if value < 0 or value.bit_length() > IDENTITY_BITS:
        raise ValueError(f"Not a {IDENTITY_BITS}-bit identity: {text!r}")
    return value
