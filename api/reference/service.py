"""
Reference-data business logic: required fields, parent ids and the
mapping of constraint violations to 400/409 responses.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from fastapi import HTTPException, status

from core.errors import integrity_errors
from core.validation import require_uuid

from . import repository, schemas
from .kinds import ID_FIELDS, ReferenceKind

logger = logging.getLogger(__name__)


def _not_found(kind: ReferenceKind) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind.label} not found")


def _select_fields(kind: ReferenceKind, values: dict[str, Any]) -> dict[str, Any]:
    selected = {k: v for k, v in values.items() if k in kind.fields}
    for field in ID_FIELDS.intersection(selected):
        if selected[field] is not None:
            require_uuid(selected[field], field)
    return selected


async def list_entries(kind: ReferenceKind, *, parent_id: str | None = None) -> list[dict[str, Any]]:
    if parent_id:
        require_uuid(parent_id, kind.parent or "parent_id")
    return await repository.list_rows(kind, parent_id=parent_id)


async def get_entry(kind: ReferenceKind, row_id: str) -> dict[str, Any]:
    row = await repository.get_row(kind, row_id)
    if row is None:
        raise _not_found(kind)
    return row


async def create_entry(kind: ReferenceKind, payload: schemas.ReferenceCreate) -> dict[str, Any]:
    values = _select_fields(kind, payload.model_dump(exclude_unset=True))
    missing = [f for f in kind.required if not values.get(f)]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Required fields missing", "missing": missing},
        )

    with integrity_errors(unique_detail=f"{kind.label} already exists"):
        row = await repository.insert_row(kind, str(uuid4()), values)
    logger.info("reference_created kind=%s id=%s", kind.name, row["id"])
    return row


async def update_entry(kind: ReferenceKind, row_id: str, payload: schemas.ReferenceUpdate) -> dict[str, Any]:
    values = _select_fields(kind, payload.model_dump(exclude_unset=True))
    if not values:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "No valid fields", "allowed": list(kind.fields)},
        )

    if kind.referenced_by and kind.parent in values:
        await _check_reparent(kind, row_id, values[kind.parent])

    with integrity_errors(unique_detail=f"{kind.label} already exists"):
        row = await repository.update_row(kind, row_id, values)
    if row is None:
        raise _not_found(kind)
    return row


async def _check_reparent(kind: ReferenceKind, row_id: str, new_parent: Any) -> None:
    """
    Institutions copy the parent of the entry they point at (a subtype's
    category), so the parent cannot move while any institution uses it.
    """
    current = await repository.get_row(kind, row_id)
    if current is None:
        raise _not_found(kind)
    if str(current[kind.parent]).lower() == str(new_parent).lower():
        return
    if await repository.is_referenced(kind, row_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{kind.label} is in use; {kind.parent} cannot change",
        )


async def delete_entry(kind: ReferenceKind, row_id: str) -> dict[str, Any]:
    with integrity_errors(
        foreign_key_status=status.HTTP_409_CONFLICT,
        foreign_key_detail=f"{kind.label} is still referenced",
    ):
        row = await repository.delete_row(kind, row_id)
    if row is None:
        raise _not_found(kind)
    logger.info("reference_deleted kind=%s id=%s", kind.name, row_id)
    return {"message": f"{kind.label} deleted", "deleted_id": row_id}
