"""Read-only directory of staff houses and rooms.

Provides:
- GET /accommodation/staff-houses?location=
- GET /accommodation/rooms?staffHouseId=
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from accommodation.api.auth import CurrentUser, get_current_user
from accommodation.infra.db import txn
from accommodation.infra.repositories.directory_repository import (
    LOCATIONS,
    list_rooms,
    list_staff_houses,
)

router = APIRouter(prefix="/accommodation", tags=["directory"])


@router.get("/staff-houses")
def get_staff_houses(
    location: str | None = Query(None),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    if location is not None and location not in LOCATIONS:
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_input", "fields": {"location": f"unknown location: {location}"}},
        )
    with txn() as cur:
        houses = list_staff_houses(cur, location=location)
    return {"staffHouses": houses}


@router.get("/rooms")
def get_rooms(
    staff_house_id: str | None = Query(None, alias="staffHouseId"),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    with txn() as cur:
        rooms = list_rooms(cur, staff_house_id=staff_house_id)
    return {"rooms": rooms}
