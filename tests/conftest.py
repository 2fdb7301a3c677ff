"""Shared pytest fixtures for accommodation service tests."""
import sys
sys.dont_write_bytecode = True

from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from accommodation.api.auth import CurrentUser  # noqa: E402
from helpers import (  # noqa: E402
    TEST_AUDIENCE,
    TEST_ISSUER,
    TEST_JWKS_URL,
    _create_jwks,
    _create_token,
    _generate_rsa_keypair,
)


@pytest.fixture(autouse=True)
def _reset_oidc_jwks_cache():
    """Reset the process-wide JWKS cache between tests.

    A JWKS cached by one test would not match the keys generated by the next.
    """
    import accommodation.api.auth as auth_module

    auth_module.jwks_cache.clear()
    yield
    auth_module.jwks_cache.clear()


@pytest.fixture(scope="session")
def rsa_keypair():
    return _generate_rsa_keypair()


@pytest.fixture
def jwks(rsa_keypair):
    _, public_key = rsa_keypair
    return _create_jwks(public_key)


@pytest.fixture
def oidc_env(monkeypatch):
    monkeypatch.setenv("OIDC_ISSUER", TEST_ISSUER)
    monkeypatch.setenv("OIDC_AUDIENCE", TEST_AUDIENCE)
    monkeypatch.setenv("OIDC_JWKS_URL", TEST_JWKS_URL)
    monkeypatch.delenv("OIDC_AUTHORIZED_PARTIES", raising=False)


@pytest.fixture
def mock_jwks_fetch(jwks):
    """Serve the test JWKS instead of calling the identity provider."""
    with patch("accommodation.api.auth.requests.get") as mock_get:
        mock_get.return_value.json.return_value = jwks
        mock_get.return_value.raise_for_status.return_value = None
        yield mock_get


@pytest.fixture
def admin_user():
    return CurrentUser(
        id="user-admin",
        external_subject="user-123",
        staff_id="ST-001",
        email="admin@example.com",
        name="Accommodation Admin",
    )


@pytest.fixture
def auth_headers(rsa_keypair):
    private_key, _ = rsa_keypair
    return {"Authorization": f"Bearer {_create_token(private_key)}"}


@pytest.fixture
def admin_client(oidc_env, mock_jwks_fetch, admin_user):
    """TestClient whose caller is authenticated and holds every capability."""
    from accommodation.api.factory import create_app

    with patch("accommodation.api.auth._load_user", return_value=admin_user), \
         patch("accommodation.api.rbac.user_has_permission", return_value=True):
        yield TestClient(create_app(role="public"))
