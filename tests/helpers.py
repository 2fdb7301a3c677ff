"""Shared test helper functions for accommodation service tests.

Plain functions (not fixtures), importable from conftest.py and test modules.
"""

from __future__ import annotations

import base64
import time
from unittest.mock import MagicMock

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa

TEST_ISSUER = "https://auth.example.com"
TEST_AUDIENCE = "accommodation-api"
TEST_JWKS_URL = "https://auth.example.com/.well-known/jwks.json"


def _generate_rsa_keypair():
    """Generate RSA key pair for test JWT signing."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return private_key, private_key.public_key()


def _b64_uint(n: int) -> str:
    length = (n.bit_length() + 7) // 8
    return base64.urlsafe_b64encode(n.to_bytes(length, "big")).rstrip(b"=").decode()


def _create_jwks(public_key, kid: str = "test-key-1") -> dict:
    """Create a JWKS document holding one RSA public key."""
    numbers = public_key.public_numbers()
    return {
        "keys": [
            {
                "kty": "RSA",
                "use": "sig",
                "alg": "RS256",
                "kid": kid,
                "n": _b64_uint(numbers.n),
                "e": _b64_uint(numbers.e),
            }
        ]
    }


def _create_token(
    private_key,
    kid: str = "test-key-1",
    sub: str = "user-123",
    iss: str = TEST_ISSUER,
    aud: str = TEST_AUDIENCE,
    exp: int | None = None,
    azp: str | None = None,
) -> str:
    """Create a signed RS256 JWT."""
    now = int(time.time())
    payload = {
        "sub": sub,
        "iss": iss,
        "aud": aud,
        "exp": exp if exp is not None else now + 3600,
        "iat": now,
    }
    if azp:
        payload["azp"] = azp
    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": kid})


def mock_txn(mock_txn_fn: MagicMock, cursor: MagicMock | None = None) -> MagicMock:
    """Wire a patched ``txn`` so ``with txn() as cur`` yields ``cursor``."""
    cursor = cursor or MagicMock()
    mock_txn_fn.return_value.__enter__.return_value = cursor
    mock_txn_fn.return_value.__exit__.return_value = False
    return cursor
