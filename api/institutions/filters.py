"""
Query-string filters for institution listings.

The evaluation order below fixes placeholder numbering; keep it stable.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException, status

from core.query import FilterQuery

# Public sort keys -> SQL expressions (institution table aliased as `i`).
SORT_COLUMNS: dict[str, str] = {
    "name": "i.name",
    "label": "i.label",
    "established": "i.established",
    "capacity": "i.capacity",
    "status": "i.status",
    "created_at": "i.created_at",
    "updated_at": "i.updated_at",
    "last_renovation": "i.last_renovation",
    "building_condition": "i.building_condition",
}

DEFAULT_SORT = "name"
DEFAULT_LIMIT = 100
MAX_LIMIT = 1000


@dataclass(frozen=True)
class InstitutionFilters:
    category: str | None = None
    subtype: str | None = None
    region: str | None = None
    district: str | None = None
    commune: str | None = None
    street: str | None = None
    name: str | None = None
    status: str | None = None
    min_capacity: int | None = None
    max_capacity: int | None = None


def build_filter_query(filters: InstitutionFilters) -> FilterQuery:
    query = FilterQuery()
    if filters.category:
        query.add("i.category_id", "=", filters.category, lookup="(SELECT id FROM institution_category WHERE code = {})")
    if filters.subtype:
        query.add("i.subtype_id", "=", filters.subtype, lookup="(SELECT id FROM institution_subtype WHERE code = {})")
    if filters.region:
        query.add("i.region_id", "=", filters.region, lookup="(SELECT id FROM region WHERE code = {})")
    if filters.district:
        query.add("i.district_id", "=", filters.district, lookup="(SELECT id FROM district WHERE code = {})")
    if filters.commune:
        query.add("i.commune_id", "=", filters.commune, lookup="(SELECT id FROM commune WHERE code = {})")
    if filters.street:
        query.add("i.street_id", "=", filters.street, lookup="(SELECT id FROM street WHERE name = {})")
    if filters.name:
        query.add("LOWER(i.name)", "LIKE", f"%{filters.name.lower()}%")
    if filters.status:
        query.add("i.status", "=", filters.status)
    if filters.min_capacity is not None:
        query.add("i.capacity", ">=", int(filters.min_capacity))
    if filters.max_capacity is not None:
        query.add("i.capacity", "<=", int(filters.max_capacity))
    return query


def order_clause(sort: str | None) -> str:
    """
    Translate `sort` (optionally prefixed with `-` for descending) into an
    ORDER BY expression, rejecting anything outside SORT_COLUMNS.
    """
    key = (sort or DEFAULT_SORT).strip() or DEFAULT_SORT
    direction = "ASC"
    if key.startswith("-"):
        key, direction = key[1:], "DESC"

    column = SORT_COLUMNS.get(key)
    if column is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid sort field", "allowed": sorted(SORT_COLUMNS)},
        )
    return f"{column} {direction}, i.id ASC"
