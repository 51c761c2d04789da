"""
Reference tables: institution taxonomy and the geographic hierarchy.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ReferenceKind:
    name: str
    table: str
    label: str
    fields: tuple[str, ...]
    required: tuple[str, ...]
    parent: str | None = None
    order_by: str = "code"
    mutable: bool = False
    # Institution column pointing at this kind; its parent is frozen while referenced.
    referenced_by: str | None = None


CATEGORIES = ReferenceKind(
    name="categories",
    table="institution_category",
    label="Category",
    fields=("code", "label", "description"),
    required=("code", "label"),
    mutable=True,
)
SUBTYPES = ReferenceKind(
    name="subtypes",
    table="institution_subtype",
    label="Subtype",
    fields=("category_id", "code", "label", "description"),
    required=("category_id", "code", "label"),
    parent="category_id",
    mutable=True,
    referenced_by="subtype_id",
)
CONTACT_TYPES = ReferenceKind(
    name="contact-types",
    table="contact_type",
    label="Contact type",
    fields=("code", "label"),
    required=("code", "label"),
)
STAFF_TYPES = ReferenceKind(
    name="staff-types",
    table="staff_type",
    label="Staff type",
    fields=("code", "label"),
    required=("code", "label"),
)
UTILITY_TYPES = ReferenceKind(
    name="utility-types",
    table="utility_type",
    label="Utility type",
    fields=("code", "label"),
    required=("code", "label"),
)

REGIONS = ReferenceKind(
    name="regions",
    table="region",
    label="Region",
    fields=("code", "name"),
    required=("code", "name"),
    order_by="name",
)
DISTRICTS = ReferenceKind(
    name="districts",
    table="district",
    label="District",
    fields=("region_id", "code", "name"),
    required=("region_id", "code", "name"),
    parent="region_id",
    order_by="name",
)
COMMUNES = ReferenceKind(
    name="communes",
    table="commune",
    label="Commune",
    fields=("district_id", "code", "name"),
    required=("district_id", "code", "name"),
    parent="district_id",
    order_by="name",
)
STREETS = ReferenceKind(
    name="streets",
    table="street",
    label="Street",
    fields=("commune_id", "code", "name"),
    required=("commune_id", "name"),
    parent="commune_id",
    order_by="name",
)

TAXONOMY = (CATEGORIES, SUBTYPES, CONTACT_TYPES, STAFF_TYPES, UTILITY_TYPES)
GEOGRAPHY = (REGIONS, DISTRICTS, COMMUNES, STREETS)

ID_FIELDS = frozenset({"category_id", "region_id", "district_id", "commune_id"})
