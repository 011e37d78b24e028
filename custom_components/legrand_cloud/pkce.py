"""PKCE helpers for the Azure AD B2C login."""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass


@dataclass(frozen=True)
class PkcePair:
    """A PKCE code verifier and its S256 challenge."""

    verifier: str
    challenge: str


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def code_challenge(verifier: str) -> str:
    """Return the S256 challenge for a code verifier.

    The identity provider hashes the verifier exactly as it is sent on the
    token request, so the digest is taken over its ASCII bytes.
    """
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_pkce() -> PkcePair:
    """Generate a fresh PKCE pair from 32 random bytes."""
    verifier = _b64url(secrets.token_bytes(32))
    return PkcePair(verifier=verifier, challenge=code_challenge(verifier))


def generate_state() -> str:
    """Generate an opaque OAuth2 state value."""
    return secrets.token_hex(16).upper()
