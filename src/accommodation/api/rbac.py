"""Capability checks for accommodation administration.

Provides:
- user_has_permission(): DB lookup through user_roles -> role_permissions
- require_permission(): FastAPI dependency for capability-gated endpoints

Permissions used by this service:
- manage_accommodation_bookings: create / edit / cancel / block bookings
- approve_accommodation_requests: assign accommodation to a travel request
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, HTTPException

from accommodation.api.auth import CurrentUser, get_current_user

MANAGE_BOOKINGS = "manage_accommodation_bookings"
APPROVE_REQUESTS = "approve_accommodation_requests"

KNOWN_PERMISSIONS = frozenset({MANAGE_BOOKINGS, APPROVE_REQUESTS})


@dataclass
class PermissionContext:
    """Context returned by require_permission."""

    user: CurrentUser
    permission: str

    @property
    def actor(self) -> str:
        """Name recorded in audit notes."""
        return self.user.name or self.user.email or self.user.id


def user_has_permission(user_id: str, permission: str) -> bool:
    """Check whether any of the user's roles grants ``permission``."""
    from accommodation.infra.db import txn

    with txn() as cur:
        cur.execute(
            """
            SELECT 1
            FROM user_roles ur
            JOIN role_permissions rp ON rp.role_id = ur.role_id
            WHERE ur.user_id = %s AND rp.permission = %s
            LIMIT 1
            """,
            (user_id, permission),
        )
        return cur.fetchone() is not None


def require_permission(permission: str) -> Callable[..., PermissionContext]:
    """Create a dependency that requires a capability.

    Usage:
        @router.post("/bookings")
        def endpoint(ctx: PermissionContext = Depends(require_permission(MANAGE_BOOKINGS))):
            ...
    """
    if permission not in KNOWN_PERMISSIONS:
        raise ValueError(f"Invalid permission: {permission}")

    def dependency(user: CurrentUser = Depends(get_current_user)) -> PermissionContext:
        if not user_has_permission(user.id, permission):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return PermissionContext(user=user, permission=permission)

    return dependency
