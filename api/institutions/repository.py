"""
Institution persistence.
This module is where institution-related SQL lives.
"""

from __future__ import annotations

from typing import Any, Mapping

from core import db
from core.query import FilterQuery, insert_sql, update_sql

from .relations import CHILD_TABLES

EARTH_RADIUS_KM = 6371
NEARBY_LIMIT = 50

_LABEL_JOINS = """
FROM institution i
LEFT JOIN institution_category cat ON cat.id = i.category_id
LEFT JOIN institution_subtype sub ON sub.id = i.subtype_id
LEFT JOIN region r ON r.id = i.region_id
LEFT JOIN district d ON d.id = i.district_id
LEFT JOIN commune cm ON cm.id = i.commune_id
LEFT JOIN street s ON s.id = i.street_id
"""

_LABEL_COLUMNS = """
  cat.code AS category_code,
  cat.label AS category_label,
  sub.code AS subtype_code,
  sub.label AS subtype_label,
  r.name AS region_name,
  d.name AS district_name,
  cm.name AS commune_name,
  s.name AS street_name
"""


async def list_institutions(
    filters: FilterQuery,
    *,
    order_by: str,
    limit: int,
    offset: int,
) -> list[dict[str, Any]]:
    sql, params = filters.compile(
        "SELECT i.* FROM institution i",
        order_by=order_by,
        limit=limit,
        offset=offset,
    )
    return await db.fetch_all(sql, *params)


async def list_institutions_full(
    filters: FilterQuery,
    *,
    order_by: str,
    limit: int,
    offset: int,
) -> list[dict[str, Any]]:
    """
    Institutions with reference labels and nested contacts/services/fees.

    Related rows are aggregated in correlated sub-queries, so each
    institution appears exactly once regardless of how many children it has.
    """
    select_sql = f"""
        SELECT
          i.*,
          {_LABEL_COLUMNS},
          COALESCE((
            SELECT json_agg(json_build_object(
              'id', c.id,
              'contact_type_id', c.contact_type_id,
              'contact_type', ct.label,
              'value', c.value
            ) ORDER BY c.created_at, c.id)
            FROM contact c
            LEFT JOIN contact_type ct ON ct.id = c.contact_type_id
            WHERE c.institution_id = i.id
          ), '[]'::json) AS contacts,
          COALESCE((
            SELECT json_agg(sv ORDER BY sv.created_at, sv.id)
            FROM service sv
            WHERE sv.institution_id = i.id
          ), '[]'::json) AS services,
          COALESCE((
            SELECT json_agg(ef ORDER BY ef.level, ef.amount)
            FROM education_fee ef
            WHERE ef.institution_id = i.id
          ), '[]'::json) AS education_fees
        {_LABEL_JOINS}
    """
    sql, params = filters.compile(select_sql, order_by=order_by, limit=limit, offset=offset)
    return await db.fetch_all(sql, *params)


async def get_institution(institution_id: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        f"""
        SELECT
          i.*,
          {_LABEL_COLUMNS}
        {_LABEL_JOINS}
        WHERE i.id = $1
        """,
        institution_id,
    )


async def get_institution_row(institution_id: str) -> dict[str, Any] | None:
    return await db.fetch_one("SELECT * FROM institution WHERE id = $1", institution_id)


async def institution_exists(institution_id: str) -> bool:
    row = await db.fetch_one("SELECT id FROM institution WHERE id = $1", institution_id)
    return row is not None


async def subtype_category_id(subtype_id: str) -> Any | None:
    row = await db.fetch_one("SELECT category_id FROM institution_subtype WHERE id = $1", subtype_id)
    return row["category_id"] if row is not None else None


async def list_contacts(institution_id: str) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT c.*, ct.code AS contact_code, ct.label AS contact_label
        FROM contact c
        LEFT JOIN contact_type ct ON ct.id = c.contact_type_id
        WHERE c.institution_id = $1
        ORDER BY c.created_at, c.id
        """,
        institution_id,
    )


async def list_staff(institution_id: str) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT s.*, st.code AS staff_code, st.label AS staff_label
        FROM institution_staff s
        JOIN staff_type st ON s.staff_type_id = st.id
        WHERE s.institution_id = $1
        ORDER BY s.quantity DESC
        """,
        institution_id,
    )


async def list_utilities(institution_id: str) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT u.*, ut.code AS utility_code, ut.label AS utility_label
        FROM institution_utility u
        JOIN utility_type ut ON u.utility_type_id = ut.id
        WHERE u.institution_id = $1
        ORDER BY u.created_at, u.id
        """,
        institution_id,
    )


async def list_services(institution_id: str) -> list[dict[str, Any]]:
    return await db.fetch_all(
        "SELECT * FROM service WHERE institution_id = $1 ORDER BY created_at, id",
        institution_id,
    )


async def list_photos(institution_id: str) -> list[dict[str, Any]]:
    return await db.fetch_all(
        "SELECT * FROM photo WHERE institution_id = $1 ORDER BY created_at, id",
        institution_id,
    )


async def list_opening_hours(institution_id: str) -> list[dict[str, Any]]:
    return await db.fetch_all(
        "SELECT * FROM opening_hour WHERE institution_id = $1 ORDER BY day_of_week",
        institution_id,
    )


async def list_education_fees(institution_id: str) -> list[dict[str, Any]]:
    return await db.fetch_all(
        "SELECT * FROM education_fee WHERE institution_id = $1 ORDER BY level, amount",
        institution_id,
    )


async def list_ratios(institution_id: str) -> list[dict[str, Any]]:
    return await db.fetch_all(
        "SELECT * FROM institution_ratio WHERE institution_id = $1 ORDER BY year DESC, ratio_type",
        institution_id,
    )


async def insert_institution(institution_id: str, values: Mapping[str, Any]) -> dict[str, Any]:
    sql = insert_sql(
        "institution",
        ["id", *values.keys()],
        server_values={"created_at": "NOW()", "updated_at": "NOW()"},
    )
    row = await db.fetch_one(sql, institution_id, *values.values())
    if row is None:
        raise RuntimeError("Failed to insert institution.")
    return row


async def update_institution(institution_id: str, values: Mapping[str, Any]) -> dict[str, Any] | None:
    sql = update_sql(
        "institution",
        list(values.keys()),
        ["id"],
        extra_assignments=["updated_at = NOW()"],
    )
    return await db.fetch_one(sql, *values.values(), institution_id)


async def delete_institution_cascade(institution_id: str) -> None:
    """
    Delete every child row, then the institution, in one transaction.

    Any failure rolls back all deletes already issued.
    """
    async with db.transaction() as conn:
        for table in CHILD_TABLES:
            await conn.execute(f"DELETE FROM {table} WHERE institution_id = $1", institution_id)
        await conn.execute("DELETE FROM institution WHERE id = $1", institution_id)


async def count_institutions() -> int:
    row = await db.fetch_one("SELECT COUNT(*)::int AS total FROM institution")
    return int(row["total"]) if row is not None else 0


async def count_by_category() -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT cat.code, cat.label, COUNT(i.id)::int AS count
        FROM institution_category cat
        LEFT JOIN institution i ON i.category_id = cat.id
        GROUP BY cat.id, cat.code, cat.label
        ORDER BY count DESC, cat.label
        """
    )


async def count_by_region() -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT r.code, r.name, COUNT(i.id)::int AS count
        FROM region r
        LEFT JOIN institution i ON i.region_id = r.id
        GROUP BY r.id, r.code, r.name
        ORDER BY count DESC, r.name
        """
    )


async def count_by_status() -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT status, COUNT(*)::int AS count
        FROM institution
        GROUP BY status
        ORDER BY count DESC
        """
    )


async def average_capacity() -> float:
    row = await db.fetch_one(
        """
        SELECT COALESCE(AVG(capacity), 0)::float AS average_capacity
        FROM institution
        WHERE capacity IS NOT NULL
        """
    )
    return float(row["average_capacity"]) if row is not None else 0.0


async def find_nearby(*, lat: float, lng: float, radius_km: float) -> list[dict[str, Any]]:
    """
    Institutions strictly closer than `radius_km` (haversine), nearest first.
    """
    return await db.fetch_all(
        f"""
        SELECT *
        FROM (
          SELECT
            i.*,
            cat.label AS category_label,
            {EARTH_RADIUS_KM} * 2 * ASIN(LEAST(1.0, SQRT(
              POWER(SIN(RADIANS(i.lat - $1) / 2), 2)
              + COS(RADIANS($1)) * COS(RADIANS(i.lat))
                * POWER(SIN(RADIANS(i.lng - $2) / 2), 2)
            ))) AS distance
          FROM institution i
          LEFT JOIN institution_category cat ON cat.id = i.category_id
          WHERE i.lat IS NOT NULL
            AND i.lng IS NOT NULL
        ) AS nearby
        WHERE distance < $3
        ORDER BY distance
        LIMIT {NEARBY_LIMIT}
        """,
        lat,
        lng,
        radius_km,
    )
