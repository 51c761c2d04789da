"""
Institution API endpoints.

Literal paths (`/full`, `/stats`, `/nearby`) are declared before
`/institutions/{institution_id}` so they are matched first.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from core.validation import institution_id_path

from . import schemas, service
from .filters import DEFAULT_LIMIT, DEFAULT_SORT, MAX_LIMIT, InstitutionFilters
from .relations import RELATIONS, build_router

router = APIRouter()


def institution_filters(
    category: str | None = Query(default=None),
    subtype: str | None = Query(default=None),
    region: str | None = Query(default=None),
    district: str | None = Query(default=None),
    commune: str | None = Query(default=None),
    street: str | None = Query(default=None),
    name: str | None = Query(default=None, max_length=255),
    status_filter: str | None = Query(default=None, alias="status"),
    min_capacity: int | None = Query(default=None, ge=0),
    max_capacity: int | None = Query(default=None, ge=0),
) -> InstitutionFilters:
    return InstitutionFilters(
        category=category,
        subtype=subtype,
        region=region,
        district=district,
        commune=commune,
        street=street,
        name=name,
        status=status_filter,
        min_capacity=min_capacity,
        max_capacity=max_capacity,
    )


@router.get("/institutions")
async def list_institutions(
    filters: InstitutionFilters = Depends(institution_filters),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    offset: int = Query(0, ge=0),
    sort: str = Query(DEFAULT_SORT, max_length=64),
) -> dict:
    """
    List institutions matching the optional filters.

    `count` is the number of rows in this page.
    """
    return await service.list_institutions(filters, sort=sort, limit=limit, offset=offset)


@router.get("/institutions/full")
async def list_institutions_full(
    filters: InstitutionFilters = Depends(institution_filters),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    offset: int = Query(0, ge=0),
    sort: str = Query(DEFAULT_SORT, max_length=64),
) -> dict:
    """
    Same filters as the plain listing, with reference labels and nested
    contacts, services and education fees per institution.
    """
    return await service.list_institutions(filters, sort=sort, limit=limit, offset=offset, full=True)


@router.get("/institutions/stats")
async def get_statistics() -> dict:
    return await service.statistics()


@router.get("/institutions/nearby")
async def get_nearby(
    lat: float = Query(...),
    lng: float = Query(...),
    radius: float = Query(10.0, gt=0),
) -> dict:
    return await service.nearby(lat=lat, lng=lng, radius_km=radius)


@router.get("/institutions/{institution_id}")
async def get_institution(institution_id: str = Depends(institution_id_path)) -> dict:
    return await service.get_institution(institution_id)


@router.post("/institutions", status_code=status.HTTP_201_CREATED)
async def create_institution(payload: schemas.InstitutionCreate) -> dict:
    return await service.create_institution(payload)


@router.put("/institutions/{institution_id}")
async def update_institution(
    payload: schemas.InstitutionUpdate,
    institution_id: str = Depends(institution_id_path),
) -> dict:
    return await service.update_institution(institution_id, payload)


@router.delete("/institutions/{institution_id}")
async def delete_institution(institution_id: str = Depends(institution_id_path)) -> dict:
    return await service.delete_institution(institution_id)


relations_router = APIRouter()
for _kind in RELATIONS:
    relations_router.include_router(build_router(_kind), tags=[_kind.name])
