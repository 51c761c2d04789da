import re

import pytest
from fastapi import HTTPException

from core.query import FilterQuery, insert_sql, update_sql
from institutions.filters import InstitutionFilters, build_filter_query, order_clause


def _placeholders(sql):
    return [int(n) for n in re.findall(r"\$(\d+)", sql)]


def test_empty_filter_emits_no_where_and_binds_pagination_last():
    sql, params = FilterQuery().compile("SELECT * FROM institution i", order_by="i.name ASC", limit=100, offset=0)

    assert "WHERE" not in sql
    assert sql.endswith("ORDER BY i.name ASC\nLIMIT $1\nOFFSET $2")
    assert params == [100, 0]


def test_predicates_are_numbered_in_insertion_order():
    query = (
        FilterQuery()
        .add("i.status", "=", "ouvert")
        .add("i.region_id", "=", "analamanga", lookup="(SELECT id FROM region WHERE code = {})")
        .add("i.capacity", ">=", 50)
    )
    sql, params = query.compile("SELECT i.* FROM institution i", limit="10", offset="20")

    assert (
        "WHERE i.status = $1 AND i.region_id = (SELECT id FROM region WHERE code = $2) AND i.capacity >= $3"
        in sql
    )
    assert params == ["ouvert", "analamanga", 50, 10, 20]
    assert _placeholders(sql) == [1, 2, 3, 4, 5]


def test_every_filter_in_declared_order():
    filters = InstitutionFilters(
        category="education",
        subtype="EPP",
        region="analamanga",
        district="tana-1",
        commune="antsiranana",
        street="Rue Rainandriamampandry",
        name="LyCee",
        status="ouvert",
        min_capacity=10,
        max_capacity=500,
    )
    query = build_filter_query(filters)
    where = query.where_clause()

    columns = [p.column for p in query.predicates]
    assert columns == [
        "i.category_id",
        "i.subtype_id",
        "i.region_id",
        "i.district_id",
        "i.commune_id",
        "i.street_id",
        "LOWER(i.name)",
        "i.status",
        "i.capacity",
        "i.capacity",
    ]
    assert query.params == [
        "education",
        "EPP",
        "analamanga",
        "tana-1",
        "antsiranana",
        "Rue Rainandriamampandry",
        "%lycee%",
        "ouvert",
        10,
        500,
    ]
    assert _placeholders(where) == list(range(1, 11))
    assert "(SELECT id FROM institution_category WHERE code = $1)" in where
    assert "(SELECT id FROM street WHERE name = $6)" in where
    assert "LOWER(i.name) LIKE $7" in where
    assert "i.capacity >= $9 AND i.capacity <= $10" in where


def test_blank_filters_are_skipped_and_numbering_stays_contiguous():
    query = build_filter_query(InstitutionFilters(category="", region="analamanga", name="", status="ferme"))

    assert query.params == ["analamanga", "ferme"]
    assert _placeholders(query.where_clause()) == [1, 2]


def test_zero_capacity_bounds_are_applied():
    query = build_filter_query(InstitutionFilters(min_capacity=0, max_capacity=0))
    assert query.params == [0, 0]


def test_exact_capacity_uses_inclusive_range():
    query = build_filter_query(InstitutionFilters(min_capacity=50, max_capacity=50))
    assert query.where_clause() == "WHERE i.capacity >= $1 AND i.capacity <= $2"
    assert query.params == [50, 50]


@pytest.mark.parametrize(
    "sort,expected",
    [
        (None, "i.name ASC, i.id ASC"),
        ("name", "i.name ASC, i.id ASC"),
        ("established", "i.established ASC, i.id ASC"),
        ("-capacity", "i.capacity DESC, i.id ASC"),
    ],
)
def test_order_clause_allow_list(sort, expected):
    assert order_clause(sort) == expected


@pytest.mark.parametrize("sort", ["name; DROP TABLE institution", "id", "-", "random()", "lat"])
def test_order_clause_rejects_unknown_columns(sort):
    with pytest.raises(HTTPException) as exc_info:
        order_clause(sort)
    assert exc_info.value.status_code == 400
    assert exc_info.value.detail["error"] == "Invalid sort field"


def test_insert_sql_with_server_values():
    sql = insert_sql("institution", ["id", "name"], server_values={"created_at": "NOW()"})
    assert sql == "INSERT INTO institution (id, name, created_at) VALUES ($1, $2, NOW()) RETURNING *"


def test_update_sql_numbers_keys_after_assignments():
    sql = update_sql("contact", ["value"], ["id", "institution_id"])
    assert sql == "UPDATE contact SET value = $1 WHERE id = $2 AND institution_id = $3 RETURNING *"


def test_update_sql_extra_assignments():
    sql = update_sql("institution", ["status", "capacity"], ["id"], extra_assignments=["updated_at = NOW()"])
    assert sql == (
        "UPDATE institution SET status = $1, capacity = $2, updated_at = NOW() WHERE id = $3 RETURNING *"
    )
