"""
Institution business logic.

Scope:
- listing with filters, sort allow-list and pagination
- detail view (institution + eight child collections fetched concurrently)
- create/update with coordinate, email and category/subtype checks
- transactional delete
- statistics and nearby search
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping
from uuid import uuid4

from fastapi import HTTPException, status

from core.errors import integrity_errors
from core.validation import check_coordinates, check_email, require_uuid

from . import repository, schemas
from .filters import InstitutionFilters, build_filter_query, order_clause

logger = logging.getLogger(__name__)

DUPLICATE_NAME = "Institution name already exists"


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Institution not found")


def _check_fields(values: Mapping[str, Any]) -> None:
    for field in schemas.REFERENCE_ID_FIELDS:
        if values.get(field) is not None:
            require_uuid(values[field], field)
    check_coordinates(values.get("lat"), values.get("lng"))
    check_email(values.get("email_principal"))


async def _check_subtype_category(category_id: str | None, subtype_id: str | None) -> None:
    """
    The subtype must be one of the category's subtypes.
    """
    if category_id is None or subtype_id is None:
        return
    owner = await repository.subtype_category_id(subtype_id)
    if owner is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid foreign key")
    if str(owner).lower() != str(category_id).lower():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Subtype does not belong to category",
        )


async def list_institutions(
    filters: InstitutionFilters,
    *,
    sort: str | None,
    limit: int,
    offset: int,
    full: bool = False,
) -> dict[str, Any]:
    query = build_filter_query(filters)
    order_by = order_clause(sort)
    fetch = repository.list_institutions_full if full else repository.list_institutions
    rows = await fetch(query, order_by=order_by, limit=limit, offset=offset)
    # `count` is the size of this page, not the number of matching rows.
    return {"data": rows, "count": len(rows), "limit": limit, "offset": offset}


async def get_institution(institution_id: str) -> dict[str, Any]:
    institution = await repository.get_institution(institution_id)
    if institution is None:
        raise _not_found()

    # Fail fast: the first failing query fails the request.
    (
        contacts,
        staff,
        utilities,
        services,
        photos,
        opening_hours,
        education_fees,
        ratios,
    ) = await asyncio.gather(
        repository.list_contacts(institution_id),
        repository.list_staff(institution_id),
        repository.list_utilities(institution_id),
        repository.list_services(institution_id),
        repository.list_photos(institution_id),
        repository.list_opening_hours(institution_id),
        repository.list_education_fees(institution_id),
        repository.list_ratios(institution_id),
    )
    return {
        "institution": institution,
        "contacts": contacts,
        "staff": staff,
        "utilities": utilities,
        "services": services,
        "photos": photos,
        "opening_hours": opening_hours,
        "education_fees": education_fees,
        "ratios": ratios,
    }


async def create_institution(payload: schemas.InstitutionCreate) -> dict[str, Any]:
    values = payload.model_dump()
    if not values.get("name") or not values.get("category_id") or not values.get("subtype_id"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Required fields missing", "required": ["name", "category_id", "subtype_id"]},
        )
    _check_fields(values)
    await _check_subtype_category(values["category_id"], values["subtype_id"])

    with integrity_errors(unique_detail=DUPLICATE_NAME):
        row = await repository.insert_institution(str(uuid4()), values)
    logger.info("institution_created id=%s name=%s", row["id"], row.get("name"))
    return {"message": "Institution created", "data": row}


async def update_institution(institution_id: str, payload: schemas.InstitutionUpdate) -> dict[str, Any]:
    values = payload.model_dump(exclude_unset=True)
    if not values:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "No valid fields", "allowed": list(schemas.EDITABLE_FIELDS)},
        )
    _check_fields(values)

    if "category_id" in values or "subtype_id" in values:
        current = await repository.get_institution_row(institution_id)
        if current is None:
            raise _not_found()
        await _check_subtype_category(
            values.get("category_id", current.get("category_id")),
            values.get("subtype_id", current.get("subtype_id")),
        )

    with integrity_errors(unique_detail=DUPLICATE_NAME):
        row = await repository.update_institution(institution_id, values)
    if row is None:
        raise _not_found()
    logger.info("institution_updated id=%s fields=%s", institution_id, ",".join(values))
    return {"message": "Updated successfully", "data": row}


async def delete_institution(institution_id: str) -> dict[str, Any]:
    if not await repository.institution_exists(institution_id):
        raise _not_found()
    await repository.delete_institution_cascade(institution_id)
    logger.info("institution_deleted id=%s", institution_id)
    return {"message": "Institution deleted", "deleted_id": institution_id}


async def statistics() -> dict[str, Any]:
    # Independent reads; no snapshot consistency across them.
    total, by_category, by_region, by_status, avg_capacity = await asyncio.gather(
        repository.count_institutions(),
        repository.count_by_category(),
        repository.count_by_region(),
        repository.count_by_status(),
        repository.average_capacity(),
    )
    return {
        "total": total,
        "by_category": by_category,
        "by_region": by_region,
        "by_status": by_status,
        "average_capacity": round(avg_capacity, 2),
    }


async def nearby(*, lat: float, lng: float, radius_km: float) -> dict[str, Any]:
    check_coordinates(lat, lng)
    rows = await repository.find_nearby(lat=lat, lng=lng, radius_km=radius_km)
    return {
        "data": rows,
        "count": len(rows),
        "center": {"lat": lat, "lng": lng},
        "radius": radius_km,
    }
