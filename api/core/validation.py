"""
Input checks shared by every feature package.

These run before any SQL is issued: a request that fails here has no side
effect on the store.
"""

from __future__ import annotations

import re

from fastapi import HTTPException, Path, status

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_uuid(value: object) -> bool:
    return isinstance(value, str) and UUID_RE.match(value) is not None


def is_valid_email(value: object) -> bool:
    return isinstance(value, str) and EMAIL_RE.match(value) is not None


def require_uuid(value: object, field: str = "id") -> str:
    if not is_valid_uuid(value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid UUID", "field": field},
        )
    return str(value)


def check_coordinates(lat: float | None, lng: float | None) -> None:
    if lat is not None and not -90 <= lat <= 90:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid latitude")
    if lng is not None and not -180 <= lng <= 180:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid longitude")


def check_email(email: str | None) -> None:
    if email is not None and not is_valid_email(email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email")


async def institution_id_path(institution_id: str = Path(...)) -> str:
    return require_uuid(institution_id, "institution_id")


async def item_id_path(item_id: str = Path(...)) -> str:
    return require_uuid(item_id, "item_id")
