"""
Pydantic schemas for reference-data and geography endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ReferenceFields(BaseModel):
    """
    Union of the columns of every reference table; each kind keeps only
    the subset it declares.
    """

    model_config = ConfigDict(extra="ignore")

    code: str | None = Field(default=None, max_length=64)
    label: str | None = Field(default=None, max_length=255)
    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    category_id: str | None = None
    region_id: str | None = None
    district_id: str | None = None
    commune_id: str | None = None


class ReferenceCreate(ReferenceFields):
    pass


class ReferenceUpdate(ReferenceFields):
    pass
