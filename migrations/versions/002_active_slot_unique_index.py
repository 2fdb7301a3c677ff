"""Partial unique index: one active booking per room and date (SQL-only).

Revision ID: 002_active_slot_unique_index
Revises: 001_accommodation_schema
Create Date: 2026-10-19
"""

from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "002_active_slot_unique_index"
down_revision = "001_accommodation_schema"
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parents[1] / "sql" / "002_active_slot_unique_index.sql"


def upgrade() -> None:
    # Raw driver execution: the file holds several statements.
    op.get_bind().exec_driver_sql(_SQL_FILE.read_text(encoding="utf-8"))


def downgrade() -> None:
    raise NotImplementedError("Downgrade not supported")
