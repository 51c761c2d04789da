"""
Pydantic schemas for institution endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class InstitutionFields(BaseModel):
    # Unknown keys are dropped: the declared fields are the editable whitelist.
    model_config = ConfigDict(extra="ignore")

    category_id: str | None = None
    subtype_id: str | None = None
    name: str | None = Field(default=None, max_length=255)
    label: str | None = None
    description: str | None = None
    lat: float | None = None
    lng: float | None = None
    region_id: str | None = None
    district_id: str | None = None
    commune_id: str | None = None
    street_id: str | None = None
    established: int | None = None
    capacity: int | None = Field(default=None, ge=0)
    last_renovation: int | None = None
    accreditation: str | None = None
    phone_principal: str | None = None
    email_principal: str | None = None
    website: str | None = None
    status: str | None = None
    building_condition: str | None = None


class InstitutionCreate(InstitutionFields):
    """
    `name`, `category_id` and `subtype_id` are required; they are checked in
    the service so the error message matches the other required-field errors.
    """


class InstitutionUpdate(InstitutionFields):
    """
    Partial update: only keys present in the request body are applied.
    """


EDITABLE_FIELDS: tuple[str, ...] = tuple(InstitutionFields.model_fields)

REFERENCE_ID_FIELDS: tuple[str, ...] = (
    "category_id",
    "subtype_id",
    "region_id",
    "district_id",
    "commune_id",
    "street_id",
)
