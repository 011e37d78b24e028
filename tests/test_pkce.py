"""Tests for the PKCE helpers."""

from __future__ import annotations

import re

from custom_components.legrand_cloud.pkce import (
    code_challenge,
    generate_pkce,
    generate_state,
)

_URLSAFE = re.compile(r"^[A-Za-z0-9_-]+$")


def test_code_challenge_known_vector() -> None:
    """The challenge matches the S256 example from RFC 7636."""
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_generate_pkce_shape() -> None:
    pair = generate_pkce()
    # 32 random bytes encode to 43 unpadded base64url characters
    assert len(pair.verifier) == 43
    assert len(pair.challenge) == 43
    assert _URLSAFE.match(pair.verifier)
    assert _URLSAFE.match(pair.challenge)
    assert "=" not in pair.verifier + pair.challenge
    assert pair.challenge == code_challenge(pair.verifier)


def test_generate_pkce_is_fresh_each_time() -> None:
    verifiers = {generate_pkce().verifier for _ in range(50)}
    assert len(verifiers) == 50


def test_generate_state() -> None:
    state = generate_state()
    assert re.fullmatch(r"[0-9A-F]{32}", state)
    assert state != generate_state()
