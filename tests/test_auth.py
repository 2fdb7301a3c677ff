"""Tests for OIDC JWT authentication."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest
import requests
from fastapi import HTTPException
from fastapi.testclient import TestClient

from accommodation.api.auth import load_settings, verify_token
from accommodation.api.factory import create_app
from helpers import _create_jwks, _create_token, _generate_rsa_keypair


class TestVerifyToken:
    def test_valid_token_returns_subject(self, oidc_env, rsa_keypair, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        assert verify_token(_create_token(private_key, sub="user-42")) == "user-42"

    def test_jwks_cached_between_calls(self, oidc_env, rsa_keypair, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        verify_token(_create_token(private_key))
        verify_token(_create_token(private_key))
        assert mock_jwks_fetch.call_count == 1

    def test_expired(self, oidc_env, rsa_keypair, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        token = _create_token(private_key, exp=int(time.time()) - 60)
        with pytest.raises(HTTPException) as exc_info:
            verify_token(token)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token expired"

    @pytest.mark.parametrize(
        "overrides",
        [{"aud": "another-api"}, {"iss": "https://evil.example.com"}],
    )
    def test_wrong_claims(self, oidc_env, rsa_keypair, mock_jwks_fetch, overrides):
        private_key, _ = rsa_keypair
        with pytest.raises(HTTPException) as exc_info:
            verify_token(_create_token(private_key, **overrides))
        assert exc_info.value.status_code == 401

    def test_unknown_kid_refreshes_once(self, oidc_env, rsa_keypair, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        with pytest.raises(HTTPException):
            verify_token(_create_token(private_key, kid="rotated"))
        assert mock_jwks_fetch.call_count == 2

    def test_rotated_key_found_after_refresh(self, oidc_env, rsa_keypair, jwks):
        private_key, _ = rsa_keypair
        other_private, other_public = _generate_rsa_keypair()
        stale = _create_jwks(other_public, kid="test-key-1")
        with patch("accommodation.api.auth.requests.get") as mock_get:
            mock_get.return_value.json.side_effect = [stale, jwks]
            assert verify_token(_create_token(private_key)) == "user-123"
        assert mock_get.call_count == 2

    def test_signed_with_other_key(self, oidc_env, mock_jwks_fetch):
        other_private, _ = _generate_rsa_keypair()
        with pytest.raises(HTTPException) as exc_info:
            verify_token(_create_token(other_private))
        assert exc_info.value.status_code == 401

    def test_garbage_token(self, oidc_env, mock_jwks_fetch):
        with pytest.raises(HTTPException) as exc_info:
            verify_token("not-a-jwt")
        assert exc_info.value.status_code == 401

    def test_not_configured(self, monkeypatch):
        for var in ("OIDC_ISSUER", "OIDC_AUDIENCE", "OIDC_JWKS_URL"):
            monkeypatch.delenv(var, raising=False)
        with pytest.raises(HTTPException) as exc_info:
            verify_token("anything")
        assert exc_info.value.detail == "OIDC not configured"

    def test_jwks_unreachable(self, oidc_env, rsa_keypair):
        private_key, _ = rsa_keypair
        with patch("accommodation.api.auth.requests.get", side_effect=requests.ConnectionError):
            with pytest.raises(HTTPException) as exc_info:
                verify_token(_create_token(private_key))
        assert exc_info.value.status_code == 503

    def test_authorized_parties(self, oidc_env, monkeypatch, rsa_keypair, mock_jwks_fetch):
        monkeypatch.setenv("OIDC_AUTHORIZED_PARTIES", "https://portal.example.com, https://admin.example.com")
        private_key, _ = rsa_keypair

        assert verify_token(_create_token(private_key, azp="https://admin.example.com"))
        with pytest.raises(HTTPException):
            verify_token(_create_token(private_key, azp="https://elsewhere.example.com"))


def test_load_settings_splits_parties(monkeypatch):
    monkeypatch.setenv("OIDC_AUTHORIZED_PARTIES", " a , ,b")
    assert load_settings().authorized_parties == ("a", "b")


class TestCurrentUserDependency:
    """Exercised through a directory endpoint that only needs a user."""

    def _client(self):
        return TestClient(create_app(role="public"))

    def test_missing_header(self, oidc_env):
        response = self._client().get("/accommodation/rooms")
        assert response.status_code == 401

    def test_malformed_header(self, oidc_env):
        response = self._client().get("/accommodation/rooms", headers={"Authorization": "Token abc"})
        assert response.status_code == 401

    def test_unknown_user(self, oidc_env, mock_jwks_fetch, auth_headers):
        with patch("accommodation.api.auth._load_user", return_value=None):
            response = self._client().get("/accommodation/rooms", headers=auth_headers)
        assert response.status_code == 403

    def test_user_loaded_by_subject(self, oidc_env, mock_jwks_fetch, auth_headers, admin_user):
        with patch("accommodation.api.auth._load_user", return_value=admin_user) as mock_load, \
             patch("accommodation.api.routes.directory.txn"), \
             patch("accommodation.api.routes.directory.list_rooms", return_value=[]):
            response = self._client().get("/accommodation/rooms", headers=auth_headers)
        assert response.status_code == 200
        mock_load.assert_called_once_with("user-123")
