"""PKCE (:rfc:`7636`) verifier and challenge generation.

The verifier is a random secret kept by the client between the authorize
redirect and the code exchange; the challenge is its S256 hash, sent with the
authorize request so the token endpoint can check the two belong together.
"""

from __future__ import annotations

import base64
import hashlib
import secrets


def generate_verifier(length: int = 64) -> str:
    """Return *length* random bytes rendered as lowercase hex pairs.

    The result is ``2 * length`` characters long and uses only ``[0-9a-f]``,
    which is inside the RFC 7636 unreserved set.

    Raises:
        ValueError: If *length* is less than 1.
    """
    if length < 1:
        raise ValueError(f"verifier length must be at least 1, got {length}")
    return "".join(f"{b:02x}" for b in secrets.token_bytes(length))


def derive_challenge(verifier: str) -> str:
    """Compute the S256 ``code_challenge`` for *verifier*.

    SHA-256 of the UTF-8 bytes, URL-safe base64 without ``=`` padding.
    """
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce_pair(length: int = 64) -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    verifier = generate_verifier(length)
    return verifier, derive_challenge(verifier)
