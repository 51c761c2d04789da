"""
Reference-data and geography endpoints.

Taxonomy lives under /institutions/<kind>, geography under
/institutions/geo/<kind>. Both routers must be mounted before the
/institutions/{institution_id} routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from core.validation import item_id_path

from . import schemas, service
from .kinds import GEOGRAPHY, TAXONOMY, ReferenceKind


def _add_routes(router: APIRouter, kind: ReferenceKind, prefix: str) -> None:
    base = f"{prefix}/{kind.name}"

    @router.get(base)
    async def list_reference(
        parent_id: str | None = Query(default=None, alias=kind.parent or "parent_id"),
    ) -> list[dict]:
        return await service.list_entries(kind, parent_id=parent_id if kind.parent else None)

    @router.post(base, status_code=status.HTTP_201_CREATED)
    async def create_reference(payload: schemas.ReferenceCreate) -> dict:
        return await service.create_entry(kind, payload)

    if not kind.mutable:
        return

    @router.get(f"{base}/{{item_id}}")
    async def get_reference(item_id: str = Depends(item_id_path)) -> dict:
        return await service.get_entry(kind, item_id)

    @router.put(f"{base}/{{item_id}}")
    async def update_reference(
        payload: schemas.ReferenceUpdate,
        item_id: str = Depends(item_id_path),
    ) -> dict:
        return await service.update_entry(kind, item_id, payload)

    @router.delete(f"{base}/{{item_id}}")
    async def delete_reference(item_id: str = Depends(item_id_path)) -> dict:
        return await service.delete_entry(kind, item_id)


router = APIRouter()
for _kind in TAXONOMY:
    _add_routes(router, _kind, "/institutions")

geo_router = APIRouter()
for _kind in GEOGRAPHY:
    _add_routes(geo_router, _kind, "/institutions/geo")
