from __future__ import annotations

from datetime import datetime, timedelta, timezone

from divein.services.opportunity_store import OpportunityStore

NEW_OPPORTUNITY = {
    "title": "Stagiu de vară în IT",
    "description": "Program de 8 săptămâni pentru liceeni",
    "category": "Stagii",
    "location": "Buzău",
    "external_link": "https://firma.ro/stagiu",
}


def _create(client, headers, **overrides):
    payload = dict(NEW_OPPORTUNITY)
    payload.update(overrides)
    r = client.post("/opportunities", json=payload, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def _public_ids(client, **params):
    r = client.get("/opportunities", params=params)
    assert r.status_code == 200
    return [o["id"] for o in r.json()["data"]]


def test_listing_is_public_and_starts_empty(client):
    r = client.get("/opportunities")
    assert r.status_code == 200
    assert r.json() == {"success": True, "data": [], "count": 0, "total": 0}


def test_categories_endpoint(client):
    r = client.get("/opportunities/categories")
    assert r.json()["data"][0] == "toate"


def test_create_requires_login(client):
    r = client.post("/opportunities", json=NEW_OPPORTUNITY)
    assert r.status_code == 401


def test_create_validates_fields(client, register_org, collections):
    _, headers = register_org()
    r = client.post("/opportunities", json={**NEW_OPPORTUNITY, "title": "   "}, headers=headers)
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert r.json()["field"] == "title"
    assert "must not be empty" in r.json()["error"]

    r = client.post("/opportunities", json={**NEW_OPPORTUNITY, "external_link": "nu-e-link"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["field"] == "external_link"
    assert collections["opportunities"].docs == []


def test_active_then_inactive_lifecycle(client, register_org):
    user_id, headers = register_org()
    created = _create(client, headers)
    assert created["status"] == "active"
    assert created["author_id"] == user_id

    assert _public_ids(client) == [created["id"]]
    assert _public_ids(client, q="STAGIU", category="Stagii") == [created["id"]]
    assert _public_ids(client, q="stagiu", category="ONG") == []

    r = client.patch(f"/opportunities/{created['id']}/status", json={"status": "inactive"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "inactive"
    assert _public_ids(client) == []
    assert client.get(f"/opportunities/{created['id']}").status_code == 404
    # the author still sees it
    assert client.get(f"/opportunities/{created['id']}", headers=headers).status_code == 200

    r = client.patch(f"/opportunities/{created['id']}/status", json={"status": "active"}, headers=headers)
    assert r.status_code == 200
    assert _public_ids(client) == [created["id"]]


def test_expired_opportunities_are_hidden(client, register_org):
    _, headers = register_org()
    past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    future = (datetime.now(timezone.utc) + timedelta(days=7)).isoformat()
    expired = _create(client, headers, title="Expirată", expires_at=past)
    open_one = _create(client, headers, title="Deschisă", expires_at=future)

    assert _public_ids(client) == [open_one["id"]]
    r = client.post(
        f"/opportunities/{expired['id']}/applications",
        json={"first_name": "Ana", "last_name": "Pop", "email": "ana@example.ro"},
    )
    assert r.status_code == 404


def test_edit_by_owner_keeps_author(client, register_org):
    user_id, headers = register_org()
    created = _create(client, headers)

    r = client.put(
        f"/opportunities/{created['id']}",
        json={"title": "Stagiu actualizat", "location": None, "author_id": "altcineva"},
        headers=headers,
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["title"] == "Stagiu actualizat"
    assert data["location"] is None
    assert data["author_id"] == user_id
    assert data["description"] == NEW_OPPORTUNITY["description"]


def test_edit_cannot_clear_required_fields(client, register_org, collections):
    _, headers = register_org()
    created = _create(client, headers)

    for field in ("title", "description", "category", "external_link"):
        r = client.put(f"/opportunities/{created['id']}", json={field: None}, headers=headers)
        assert r.status_code == 400, field
        assert r.json()["field"] == field

    stored = collections["opportunities"].docs[0]
    assert stored["title"] == NEW_OPPORTUNITY["title"]
    assert stored["external_link"] == NEW_OPPORTUNITY["external_link"]
    assert _public_ids(client) == [created["id"]]
    assert client.get("/dashboard", headers=headers).status_code == 200


def test_apply_with_null_field_uses_the_error_envelope(client, register_org):
    _, headers = register_org()
    created = _create(client, headers)
    r = client.post(
        f"/opportunities/{created['id']}/applications",
        json={"first_name": None, "last_name": "Pop", "email": "ana@example.ro"},
    )
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert r.json()["field"] == "first_name"


def test_foreign_delete_is_refused_before_reaching_the_store(client, register_org, opportunity_store, monkeypatch):
    _, owner_headers = register_org(email="owner@example.ro")
    _, other_headers = register_org(email="other@example.ro", organization_name="Alt ONG")
    created = _create(client, owner_headers)

    delete_calls = []

    async def spy_delete(self, opportunity_id, author_id):
        delete_calls.append((opportunity_id, author_id))

    monkeypatch.setattr(OpportunityStore, "delete", spy_delete)

    r = client.delete(f"/opportunities/{created['id']}", headers=other_headers)
    assert r.status_code == 403
    assert r.json()["success"] is False
    assert delete_calls == []

    r = client.put(f"/opportunities/{created['id']}", json={"title": "Furat"}, headers=other_headers)
    assert r.status_code == 403
    r = client.patch(f"/opportunities/{created['id']}/status", json={"status": "inactive"}, headers=other_headers)
    assert r.status_code == 403
    assert _public_ids(client) == [created["id"]]


def test_owner_delete_removes_record(client, register_org, collections):
    _, headers = register_org()
    created = _create(client, headers)

    r = client.delete(f"/opportunities/{created['id']}", headers=headers)
    assert r.status_code == 200
    assert collections["opportunities"].docs == []
    assert client.delete(f"/opportunities/{created['id']}", headers=headers).status_code == 404


def test_apply_flow(client, register_org, collections):
    _, owner_headers = register_org(email="owner@example.ro")
    _, other_headers = register_org(email="other@example.ro", organization_name="Alt ONG")
    created = _create(client, owner_headers)

    applicant = {"first_name": "Ana", "last_name": "Popescu", "email": "ana@example.ro"}
    first = client.post(f"/opportunities/{created['id']}/applications", json=applicant)
    second = client.post(
        f"/opportunities/{created['id']}/applications",
        json={**applicant, "email": "ion@example.ro", "social_link": "https://linkedin.com/in/ion"},
    )
    assert first.status_code == 201 and second.status_code == 201
    assert first.json()["data"]["redirect_url"] == NEW_OPPORTUNITY["external_link"]
    assert first.json()["data"]["status"] == "pending"

    docs = collections["applications"].docs
    assert len(docs) == 2
    assert docs[0]["applicant_id"] != docs[1]["applicant_id"]
    assert {d["status"] for d in docs} == {"pending"}

    # only the author sees them
    r = client.get(f"/opportunities/{created['id']}/applications", headers=owner_headers)
    assert r.status_code == 200
    assert r.json()["count"] == 2
    assert client.get(f"/opportunities/{created['id']}/applications", headers=other_headers).status_code == 403
    assert client.get(f"/opportunities/{created['id']}/applications").status_code == 401


def test_apply_validation_reports_the_field(client, register_org, collections):
    _, headers = register_org()
    created = _create(client, headers)

    r = client.post(
        f"/opportunities/{created['id']}/applications",
        json={"first_name": "", "last_name": "Pop", "email": "ana@example.ro"},
    )
    assert r.status_code == 400
    assert r.json()["field"] == "first_name"

    r = client.post(
        f"/opportunities/{created['id']}/applications",
        json={"first_name": "Ana", "last_name": "Pop", "email": "ana"},
    )
    assert r.status_code == 400
    assert r.json()["field"] == "email"
    assert collections["applications"].docs == []


def test_apply_to_unknown_opportunity(client):
    r = client.post(
        "/opportunities/nu-exista/applications",
        json={"first_name": "Ana", "last_name": "Pop", "email": "ana@example.ro"},
    )
    assert r.status_code == 404
    assert r.json()["error"] == "Oportunitatea nu a fost găsită"


def test_dashboard_groups_applications(client, register_org):
    _, headers = register_org()
    first = _create(client, headers, title="Prima")
    second = _create(client, headers, title="A doua")
    client.patch(f"/opportunities/{second['id']}/status", json={"status": "inactive"}, headers=headers)
    client.post(
        f"/opportunities/{first['id']}/applications",
        json={"first_name": "Ana", "last_name": "Pop", "email": "ana@example.ro"},
    )

    assert client.get("/dashboard").status_code == 401
    r = client.get("/dashboard", headers=headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["organization"]["organization_name"] == "Asociația Tinerilor Buzău"
    assert data["stats"] == {
        "total_opportunities": 2,
        "active_opportunities": 1,
        "inactive_opportunities": 1,
        "total_applications": 1,
    }
    counts = {o["id"]: o["application_count"] for o in data["opportunities"]}
    assert counts == {first["id"]: 1, second["id"]: 0}
