"""Tests for capability checks."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from accommodation.api.auth import CurrentUser
from accommodation.api.rbac import (
    APPROVE_REQUESTS,
    MANAGE_BOOKINGS,
    PermissionContext,
    require_permission,
    user_has_permission,
)
from helpers import mock_txn


def _app() -> FastAPI:
    app = FastAPI()

    @app.get("/manage")
    def manage(ctx: PermissionContext = Depends(require_permission(MANAGE_BOOKINGS))):
        return {"user": ctx.user.id, "actor": ctx.actor, "permission": ctx.permission}

    return app


class TestRequirePermission:
    def test_granted(self, oidc_env, mock_jwks_fetch, admin_user, auth_headers):
        with patch("accommodation.api.auth._load_user", return_value=admin_user), \
             patch("accommodation.api.rbac.user_has_permission", return_value=True) as mock_check:
            response = TestClient(_app()).get("/manage", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {
            "user": "user-admin",
            "actor": "Accommodation Admin",
            "permission": MANAGE_BOOKINGS,
        }
        mock_check.assert_called_once_with("user-admin", MANAGE_BOOKINGS)

    def test_denied(self, oidc_env, mock_jwks_fetch, admin_user, auth_headers):
        with patch("accommodation.api.auth._load_user", return_value=admin_user), \
             patch("accommodation.api.rbac.user_has_permission", return_value=False):
            response = TestClient(_app()).get("/manage", headers=auth_headers)
        assert response.status_code == 403

    def test_unknown_permission(self):
        with pytest.raises(ValueError):
            require_permission("delete_everything")


class TestUserHasPermission:
    @patch("accommodation.infra.db.txn")
    def test_role_grants(self, mock_txn_fn):
        cur = mock_txn(mock_txn_fn)
        cur.fetchone.return_value = (1,)

        assert user_has_permission("u1", APPROVE_REQUESTS) is True
        _, params = cur.execute.call_args.args
        assert params == ("u1", APPROVE_REQUESTS)

    @patch("accommodation.infra.db.txn")
    def test_no_role(self, mock_txn_fn):
        cur = mock_txn(mock_txn_fn)
        cur.fetchone.return_value = None
        assert user_has_permission("u1", MANAGE_BOOKINGS) is False


def test_actor_falls_back_to_email_then_id():
    user = CurrentUser(id="u1", external_subject="s", staff_id=None, email="a@example.com", name=None)
    assert PermissionContext(user=user, permission=MANAGE_BOOKINGS).actor == "a@example.com"
    user.email = None
    assert PermissionContext(user=user, permission=MANAGE_BOOKINGS).actor == "u1"
