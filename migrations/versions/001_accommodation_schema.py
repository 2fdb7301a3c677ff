"""Accommodation schema: directory, bookings, reference tables, outbox (SQL-only).

Revision ID: 001_accommodation_schema
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "001_accommodation_schema"
down_revision = None
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parents[1] / "sql" / "001_accommodation_schema.sql"


def upgrade() -> None:
    # Raw driver execution: the file holds several statements.
    op.get_bind().exec_driver_sql(_SQL_FILE.read_text(encoding="utf-8"))


def downgrade() -> None:
    raise NotImplementedError("Downgrade not supported")
