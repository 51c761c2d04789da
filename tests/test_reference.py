import asyncpg
import pytest

from conftest import CATEGORY_ID, SUBTYPE_ID, new_id

API = "/api/v1/institutions"


def test_list_categories_ordered_by_code(client, fake_db):
    fake_db.on("FROM institution_category", [{"id": CATEGORY_ID, "code": "education", "label": "Éducation"}])

    response = client.get(f"{API}/categories")

    assert response.status_code == 200
    assert response.json()[0]["code"] == "education"
    sql, args = fake_db.sql_for("FROM institution_category")[0]
    assert sql == "SELECT * FROM institution_category ORDER BY code"
    assert args == ()


def test_subtypes_filtered_by_parent_category(client, fake_db):
    response = client.get(f"{API}/subtypes", params={"category_id": CATEGORY_ID})

    assert response.status_code == 200
    sql, args = fake_db.sql_for("FROM institution_subtype")[0]
    assert sql == "SELECT * FROM institution_subtype WHERE category_id = $1 ORDER BY code"
    assert args == (CATEGORY_ID,)


def test_parent_filter_must_be_a_uuid(client, fake_db):
    response = client.get(f"{API}/geo/districts", params={"region_id": "analamanga"})

    assert response.status_code == 400
    assert fake_db.calls == []


def test_streets_filtered_by_commune_ordered_by_name(client, fake_db):
    commune_id = new_id()

    response = client.get(f"{API}/geo/streets", params={"commune_id": commune_id})

    assert response.status_code == 200
    sql, args = fake_db.sql_for("FROM street")[0]
    assert sql == "SELECT * FROM street WHERE commune_id = $1 ORDER BY name"
    assert args == (commune_id,)


def test_create_category(client, fake_db):
    fake_db.on("INSERT INTO institution_category", lambda sql, args: {"id": args[0], "code": args[1], "label": args[2]})

    response = client.post(f"{API}/categories", json={"code": "sante", "label": "Santé", "name": "ignored"})

    assert response.status_code == 201
    assert response.json()["code"] == "sante"
    sql, _ = fake_db.sql_for("INSERT INTO institution_category")[0]
    assert sql == "INSERT INTO institution_category (id, code, label) VALUES ($1, $2, $3) RETURNING *"


@pytest.mark.parametrize(
    "path,payload,missing",
    [
        ("categories", {"code": "sante"}, ["label"]),
        ("subtypes", {"code": "CSB", "label": "Centre de santé de base"}, ["category_id"]),
        ("geo/regions", {"code": "", "name": "Analamanga"}, ["code"]),
        ("geo/streets", {"name": "Rue Pasteur"}, ["commune_id"]),
    ],
)
def test_create_requires_natural_key_fields(client, fake_db, path, payload, missing):
    response = client.post(f"{API}/{path}", json=payload)

    assert response.status_code == 400
    assert response.json() == {"error": "Required fields missing", "missing": missing}
    assert fake_db.calls == []


def test_duplicate_code_is_409(client, fake_db):
    fake_db.on("INSERT INTO contact_type", asyncpg.UniqueViolationError("duplicate key"))

    response = client.post(f"{API}/contact-types", json={"code": "tel", "label": "Téléphone"})

    assert response.status_code == 409
    assert response.json() == {"error": "Contact type already exists"}


def test_unknown_parent_is_400(client, fake_db):
    fake_db.on("INSERT INTO district", asyncpg.ForeignKeyViolationError("fk"))

    response = client.post(
        f"{API}/geo/districts",
        json={"region_id": new_id(), "code": "tana-1", "name": "Antananarivo I"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid foreign key"}


def test_deleting_referenced_subtype_is_409(client, fake_db):
    fake_db.on("DELETE FROM institution_subtype", asyncpg.ForeignKeyViolationError("still referenced"))

    response = client.delete(f"{API}/subtypes/{new_id()}")

    assert response.status_code == 409
    assert response.json() == {"error": "Subtype is still referenced"}


def test_delete_unknown_category_is_404(client, fake_db):
    response = client.delete(f"{API}/categories/{new_id()}")

    assert response.status_code == 404
    assert response.json() == {"error": "Category not found"}


def test_update_category_partial(client, fake_db):
    row_id = new_id()
    fake_db.on("UPDATE institution_category", lambda sql, args: {"id": row_id, "code": "education", "label": args[0]})

    response = client.put(f"{API}/categories/{row_id}", json={"label": "Enseignement"})

    assert response.status_code == 200
    assert response.json()["label"] == "Enseignement"
    sql, args = fake_db.sql_for("UPDATE institution_category")[0]
    assert sql == "UPDATE institution_category SET label = $1 WHERE id = $2 RETURNING *"
    assert args == ("Enseignement", row_id)


def test_only_categories_and_subtypes_are_mutable(client, fake_db):
    assert client.delete(f"{API}/staff-types/{new_id()}").status_code in (404, 405)
    assert client.put(f"{API}/geo/regions/{new_id()}", json={"name": "x"}).status_code in (404, 405)
    assert fake_db.calls == []


def _stored_subtype(sql, args):
    return {"id": SUBTYPE_ID, "category_id": CATEGORY_ID, "code": "CSB", "label": "Centre de santé de base"}


def test_moving_a_used_subtype_to_another_category_is_409(client, fake_db):
    fake_db.on("FROM institution_subtype WHERE id", _stored_subtype)
    fake_db.on("FROM institution WHERE subtype_id", {"used": 1})

    response = client.put(f"{API}/subtypes/{SUBTYPE_ID}", json={"category_id": new_id()})

    assert response.status_code == 409
    assert response.json() == {"error": "Subtype is in use; category_id cannot change"}
    assert fake_db.sql_for("UPDATE institution_subtype") == []


def test_moving_an_unused_subtype_is_allowed(client, fake_db):
    other_category = new_id()
    fake_db.on("FROM institution_subtype WHERE id", _stored_subtype)
    fake_db.on("UPDATE institution_subtype", lambda sql, args: {"id": SUBTYPE_ID, "category_id": args[0]})

    response = client.put(f"{API}/subtypes/{SUBTYPE_ID}", json={"category_id": other_category})

    assert response.status_code == 200
    assert response.json()["category_id"] == other_category
    sql, args = fake_db.sql_for("FROM institution WHERE subtype_id")[0]
    assert args == (SUBTYPE_ID,)


def test_subtype_update_keeping_its_category_skips_usage_check(client, fake_db):
    fake_db.on("FROM institution_subtype WHERE id", _stored_subtype)
    fake_db.on("UPDATE institution_subtype", lambda sql, args: {"id": SUBTYPE_ID, "label": args[0]})

    response = client.put(
        f"{API}/subtypes/{SUBTYPE_ID}",
        json={"category_id": CATEGORY_ID.upper(), "label": "CSB niveau 2"},
    )

    assert response.status_code == 200
    assert fake_db.sql_for("FROM institution WHERE subtype_id") == []


def test_reparenting_unknown_subtype_is_404(client, fake_db):
    response = client.put(f"{API}/subtypes/{new_id()}", json={"category_id": CATEGORY_ID})

    assert response.status_code == 404
    assert response.json() == {"error": "Subtype not found"}
