"""OIDC bearer-token authentication for portal administrators.

Provides:
- verify_token(): validates an RS256 JWT against the issuer's JWKS
- get_current_user(): FastAPI dependency resolving the portal user

Authentication mechanics are the identity provider's business; this module
only turns a valid token into a ``CurrentUser`` row from ``users``.
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from typing import Any

import jwt
import requests
from fastapi import Depends, HTTPException, Request

_JWKS_TTL_SECONDS = 600


@dataclass
class CurrentUser:
    """Authenticated portal user."""

    id: str
    external_subject: str
    staff_id: str | None
    email: str | None
    name: str | None


@dataclass(frozen=True)
class OidcSettings:
    issuer: str | None
    audience: str | None
    jwks_url: str | None
    authorized_parties: tuple[str, ...] = ()

    @property
    def configured(self) -> bool:
        return bool(self.issuer and self.audience and self.jwks_url)


def load_settings() -> OidcSettings:
    """Read OIDC settings from the environment (at call time)."""
    parties = os.environ.get("OIDC_AUTHORIZED_PARTIES", "")
    return OidcSettings(
        issuer=os.environ.get("OIDC_ISSUER"),
        audience=os.environ.get("OIDC_AUDIENCE"),
        jwks_url=os.environ.get("OIDC_JWKS_URL"),
        authorized_parties=tuple(p.strip() for p in parties.split(",") if p.strip()),
    )


class _JwksCache:
    """Process-wide JWKS cache keyed by URL, refreshed after a TTL or on demand."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def get(self, url: str, *, refresh: bool = False) -> dict[str, Any]:
        with self._lock:
            now = time.time()
            cached = self._entries.get(url)
            if cached is not None and not refresh and now - cached[0] < _JWKS_TTL_SECONDS:
                return cached[1]
            try:
                resp = requests.get(url, timeout=10)
                resp.raise_for_status()
            except requests.RequestException:
                raise HTTPException(status_code=503, detail="Auth temporarily unavailable")
            jwks = resp.json()
            self._entries[url] = (now, jwks)
            return jwks

    def find_key(self, url: str, kid: str, *, refresh: bool = False) -> dict[str, Any] | None:
        for key in self.get(url, refresh=refresh).get("keys", []):
            if key.get("kid") == kid:
                return key
        return None


jwks_cache = _JwksCache()


def _invalid(detail: str = "Invalid token") -> HTTPException:
    return HTTPException(status_code=401, detail=detail)


def _decode(token: str, jwk: dict[str, Any], settings: OidcSettings) -> dict[str, Any]:
    try:
        public_key = jwt.algorithms.RSAAlgorithm.from_jwk(jwk)
    except (ValueError, TypeError, KeyError):
        raise _invalid()
    return jwt.decode(
        token,
        public_key,
        algorithms=["RS256"],
        issuer=settings.issuer,
        audience=settings.audience,
        options={"require": ["exp", "iss", "aud", "sub"]},
    )


def verify_token(token: str) -> str:
    """Verify a JWT and return its subject claim.

    A missing key id or a bad signature triggers one JWKS refresh, to follow
    key rotation at the provider.

    Raises:
        HTTPException: 401 for any invalid token, 503 if JWKS is unreachable.
    """
    settings = load_settings()
    if not settings.configured:
        raise _invalid("OIDC not configured")

    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except jwt.exceptions.DecodeError:
        raise _invalid()
    if not kid:
        raise _invalid()

    jwk = jwks_cache.find_key(settings.jwks_url, kid)
    if jwk is None:
        jwk = jwks_cache.find_key(settings.jwks_url, kid, refresh=True)
    if jwk is None:
        raise _invalid()

    try:
        try:
            payload = _decode(token, jwk, settings)
        except jwt.InvalidSignatureError:
            jwk = jwks_cache.find_key(settings.jwks_url, kid, refresh=True)
            if jwk is None:
                raise _invalid()
            payload = _decode(token, jwk, settings)
    except jwt.ExpiredSignatureError:
        raise _invalid("Token expired")
    except jwt.InvalidTokenError:
        raise _invalid()

    if settings.authorized_parties and "azp" in payload:
        if payload["azp"] not in settings.authorized_parties:
            raise _invalid()

    sub = payload.get("sub")
    if not sub:
        raise _invalid()
    return sub


def _bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization")
    if not header:
        raise _invalid("Missing authorization header")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token or " " in token.strip():
        raise _invalid("Invalid authorization header")
    return token.strip()


def _load_user(external_subject: str) -> CurrentUser | None:
    from accommodation.infra.db import txn

    with txn() as cur:
        cur.execute(
            """
            SELECT id, external_subject, staff_id, email, name
            FROM users
            WHERE external_subject = %s
            """,
            (external_subject,),
        )
        row = cur.fetchone()
    if row is None:
        return None
    return CurrentUser(
        id=str(row[0]),
        external_subject=row[1],
        staff_id=row[2],
        email=row[3],
        name=row[4],
    )


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: the authenticated portal user.

    Raises:
        HTTPException: 401 if the token is missing or invalid, 403 if the
            subject has no portal user.
    """
    sub = verify_token(_bearer_token(request))
    user = _load_user(sub)
    if user is None:
        raise HTTPException(status_code=403, detail="User not found")
    return user


CurrentUserDep = Depends(get_current_user)
