"""Worker/internal routes (APP_ROLE=worker)."""

from fastapi import APIRouter

router = APIRouter()


def _pending_outbox_events() -> int:
    from accommodation.infra.db import txn

    with txn() as cur:
        cur.execute("SELECT count(*) FROM outbox_events WHERE dispatched_at IS NULL")
        return cur.fetchone()[0]


@router.get("/tasks/health")
def tasks_health() -> dict:
    """Notification dispatcher health: number of undelivered outbox events."""
    return {"status": "ok", "subsystem": "tasks", "pendingEvents": _pending_outbox_events()}


@router.get("/internal/health")
def internal_health() -> dict:
    """Internal subsystem health check."""
    return {"status": "ok", "subsystem": "internal"}
