"""
Reference-data persistence (raw SQL).
"""

from __future__ import annotations

from typing import Any, Mapping

from core import db
from core.query import insert_sql, update_sql

from .kinds import ReferenceKind


async def list_rows(kind: ReferenceKind, *, parent_id: str | None = None) -> list[dict[str, Any]]:
    if kind.parent and parent_id:
        return await db.fetch_all(
            f"SELECT * FROM {kind.table} WHERE {kind.parent} = $1 ORDER BY {kind.order_by}",
            parent_id,
        )
    return await db.fetch_all(f"SELECT * FROM {kind.table} ORDER BY {kind.order_by}")


async def get_row(kind: ReferenceKind, row_id: str) -> dict[str, Any] | None:
    return await db.fetch_one(f"SELECT * FROM {kind.table} WHERE id = $1", row_id)


async def insert_row(kind: ReferenceKind, row_id: str, values: Mapping[str, Any]) -> dict[str, Any]:
    row = await db.fetch_one(
        insert_sql(kind.table, ["id", *values.keys()]),
        row_id,
        *values.values(),
    )
    if row is None:
        raise RuntimeError(f"Failed to insert into {kind.table}.")
    return row


async def update_row(kind: ReferenceKind, row_id: str, values: Mapping[str, Any]) -> dict[str, Any] | None:
    return await db.fetch_one(
        update_sql(kind.table, list(values.keys()), ["id"]),
        *values.values(),
        row_id,
    )


async def delete_row(kind: ReferenceKind, row_id: str) -> dict[str, Any] | None:
    return await db.fetch_one(f"DELETE FROM {kind.table} WHERE id = $1 RETURNING id", row_id)


async def is_referenced(kind: ReferenceKind, row_id: str) -> bool:
    if not kind.referenced_by:
        return False
    row = await db.fetch_one(
        f"SELECT 1 AS used FROM institution WHERE {kind.referenced_by} = $1 LIMIT 1",
        row_id,
    )
    return row is not None
