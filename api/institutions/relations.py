"""
Generic CRUD for the one-to-many tables owned by an institution.

Each child table is described once by a `RelationKind`; `build_router`
stamps out list/get/create/update/delete endpoints from that description.
Every statement is scoped by both the child id and the owning institution
id, so a child row is never reachable through another institution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping
from uuid import uuid4

from fastapi import APIRouter, Body, Depends, HTTPException, status

from core import db
from core.errors import integrity_errors
from core.query import insert_sql, update_sql
from core.validation import institution_id_path, is_valid_uuid, item_id_path

logger = logging.getLogger(__name__)

DAY_NAMES = {
    1: "Lundi",
    2: "Mardi",
    3: "Mercredi",
    4: "Jeudi",
    5: "Vendredi",
    6: "Samedi",
    7: "Dimanche",
}


def _uuid(value: Any) -> str:
    if not is_valid_uuid(value):
        raise ValueError("must be a UUID")
    return str(value)


def _integer(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValueError("must be an integer")


def _decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("must be a number")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError("must be a number") from exc


def _day_of_week(value: Any) -> int:
    day = _integer(value)
    if day not in DAY_NAMES:
        raise ValueError("must be between 1 (Monday) and 7 (Sunday)")
    return day


def _time_of_day(value: Any) -> time:
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise ValueError("must be a time (HH:MM)")
    return time.fromisoformat(value.strip())


@dataclass(frozen=True)
class RelationKind:
    name: str
    table: str
    label: str
    fields: tuple[str, ...]
    required: tuple[str, ...]
    order_by: str = "created_at, id"
    coerce: Mapping[str, Callable[[Any], Any]] = field(default_factory=dict)
    week_view: bool = False

    def list_sql(self) -> str:
        return f"SELECT * FROM {self.table} WHERE institution_id = $1 ORDER BY {self.order_by}"

    def missing_fields(self, payload: Mapping[str, Any]) -> list[str]:
        # Presence, not truthiness: an explicit empty value counts as supplied.
        return [f for f in self.required if f not in payload]

    def clean(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """
        Keep known fields only, converting values where the column needs it.
        """
        values: dict[str, Any] = {}
        for name in self.fields:
            if name not in payload:
                continue
            value = payload[name]
            converter = self.coerce.get(name)
            if converter is not None and value is not None:
                try:
                    value = converter(value)
                except ValueError as exc:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail={"error": f"Invalid {name}", "details": str(exc)},
                    ) from exc
            values[name] = value
        return values


RELATIONS: tuple[RelationKind, ...] = (
    RelationKind(
        name="contacts",
        table="contact",
        label="Contact",
        fields=("contact_type_id", "value"),
        required=("contact_type_id", "value"),
        coerce={"contact_type_id": _uuid},
    ),
    RelationKind(
        name="staff",
        table="institution_staff",
        label="Staff",
        fields=("staff_type_id", "quantity"),
        required=("staff_type_id", "quantity"),
        order_by="quantity DESC",
        coerce={"staff_type_id": _uuid, "quantity": _integer},
    ),
    RelationKind(
        name="utilities",
        table="institution_utility",
        label="Utility",
        fields=("utility_type_id", "availability"),
        required=("utility_type_id", "availability"),
        coerce={"utility_type_id": _uuid},
    ),
    RelationKind(
        name="services",
        table="service",
        label="Service",
        fields=("service_code", "name", "description"),
        required=("service_code", "name"),
    ),
    RelationKind(
        name="photos",
        table="photo",
        label="Photo",
        fields=("url", "caption", "credit"),
        required=("url",),
    ),
    RelationKind(
        name="opening_hours",
        table="opening_hour",
        label="Opening hour",
        fields=("day_of_week", "open_time", "close_time"),
        required=("day_of_week", "open_time", "close_time"),
        coerce={"day_of_week": _day_of_week, "open_time": _time_of_day, "close_time": _time_of_day},
        week_view=True,
    ),
    RelationKind(
        name="education_fees",
        table="education_fee",
        label="Education fee",
        fields=("level", "amount", "currency", "description"),
        required=("level", "amount"),
        order_by="level, amount",
        coerce={"amount": _decimal},
    ),
    RelationKind(
        name="ratios",
        table="institution_ratio",
        label="Ratio",
        fields=("ratio_type", "value", "year"),
        required=("ratio_type", "value"),
        order_by="year DESC, ratio_type",
        coerce={"value": _decimal, "year": _integer},
    ),
)

RELATIONS_BY_NAME = {kind.name: kind for kind in RELATIONS}

# Child tables emptied before an institution row is deleted.
CHILD_TABLES = tuple(kind.table for kind in RELATIONS)


async def _institution_exists(institution_id: str) -> bool:
    row = await db.fetch_one("SELECT id FROM institution WHERE id = $1", institution_id)
    return row is not None


def _not_found(kind: RelationKind) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind.label} not found")


async def list_items(kind: RelationKind, institution_id: str) -> list[dict[str, Any]]:
    return await db.fetch_all(kind.list_sql(), institution_id)


async def get_item(kind: RelationKind, institution_id: str, item_id: str) -> dict[str, Any]:
    row = await db.fetch_one(
        f"SELECT * FROM {kind.table} WHERE id = $1 AND institution_id = $2",
        item_id,
        institution_id,
    )
    if row is None:
        raise _not_found(kind)
    return row


async def create_item(kind: RelationKind, institution_id: str, payload: Mapping[str, Any]) -> dict[str, Any]:
    missing = kind.missing_fields(payload)
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": f"Missing fields for {kind.name}", "missing": missing},
        )
    values = kind.clean(payload)

    if not await _institution_exists(institution_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Institution not found")

    columns = ["id", "institution_id", *values.keys()]
    with integrity_errors(unique_detail=f"{kind.label} already exists for this institution"):
        row = await db.fetch_one(
            insert_sql(kind.table, columns),
            str(uuid4()),
            institution_id,
            *values.values(),
        )
    if row is None:
        raise RuntimeError(f"Failed to insert into {kind.table}.")
    logger.info("relation_created kind=%s institution_id=%s id=%s", kind.name, institution_id, row["id"])
    return row


async def update_item(
    kind: RelationKind,
    institution_id: str,
    item_id: str,
    payload: Mapping[str, Any],
) -> dict[str, Any]:
    values = kind.clean(payload)
    if not values:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "No valid fields", "allowed": list(kind.fields)},
        )

    with integrity_errors(unique_detail=f"{kind.label} already exists for this institution"):
        row = await db.fetch_one(
            update_sql(kind.table, list(values.keys()), ["id", "institution_id"]),
            *values.values(),
            item_id,
            institution_id,
        )
    if row is None:
        raise _not_found(kind)
    return row


async def delete_item(kind: RelationKind, institution_id: str, item_id: str) -> dict[str, Any]:
    row = await db.fetch_one(
        f"DELETE FROM {kind.table} WHERE id = $1 AND institution_id = $2 RETURNING id",
        item_id,
        institution_id,
    )
    if row is None:
        raise _not_found(kind)
    logger.info("relation_deleted kind=%s institution_id=%s id=%s", kind.name, institution_id, item_id)
    return {"message": f"{kind.label} deleted", "deleted_id": item_id}


async def week_view(kind: RelationKind, institution_id: str) -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        f"SELECT * FROM {kind.table} WHERE institution_id = $1 ORDER BY day_of_week, open_time",
        institution_id,
    )
    return [{**row, "day_name": DAY_NAMES.get(row.get("day_of_week"))} for row in rows]


def build_router(kind: RelationKind) -> APIRouter:
    """
    Endpoints for one child table under /institutions/{institution_id}/<name>.
    """
    router = APIRouter()
    base = f"/institutions/{{institution_id}}/{kind.name}"

    @router.get(base)
    async def list_relation(institution_id: str = Depends(institution_id_path)) -> list[dict]:
        return await list_items(kind, institution_id)

    if kind.week_view:

        @router.get(f"{base}/week")
        async def list_relation_week(institution_id: str = Depends(institution_id_path)) -> list[dict]:
            return await week_view(kind, institution_id)

    @router.get(f"{base}/{{item_id}}")
    async def get_relation(
        institution_id: str = Depends(institution_id_path),
        item_id: str = Depends(item_id_path),
    ) -> dict:
        return await get_item(kind, institution_id, item_id)

    @router.post(base, status_code=status.HTTP_201_CREATED)
    async def create_relation(
        payload: dict[str, Any] = Body(...),
        institution_id: str = Depends(institution_id_path),
    ) -> dict:
        return await create_item(kind, institution_id, payload)

    @router.put(f"{base}/{{item_id}}")
    async def update_relation(
        payload: dict[str, Any] = Body(...),
        institution_id: str = Depends(institution_id_path),
        item_id: str = Depends(item_id_path),
    ) -> dict:
        return await update_item(kind, institution_id, item_id, payload)

    @router.delete(f"{base}/{{item_id}}")
    async def delete_relation(
        institution_id: str = Depends(institution_id_path),
        item_id: str = Depends(item_id_path),
    ) -> dict:
        return await delete_item(kind, institution_id, item_id)

    return router
