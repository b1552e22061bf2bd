"""
Survey template tests - tree creation, validation, versioning and deletion
"""
import copy

import pytest
from httpx import AsyncClient, ASGITransport

from app.main import app


@pytest.mark.asyncio
async def test_create_template_tree(client, quality_template):
    assert quality_template["version"] == 1
    assert quality_template["is_active"] is True
    assert quality_template["parent_id"] is None
    assert [c["name"] for c in quality_template["categories"]] == ["Housekeeping", "Front Desk"]

    housekeeping, front_desk = quality_template["categories"]
    assert housekeeping["weight"] == 2.0
    assert [s["name"] for s in housekeeping["subcategories"]] == ["Lobby", "Rooms"]
    assert [q["text"] for q in housekeeping["subcategories"][0]["questions"]] == [
        "Lobby floors clean",
        "Lobby smells fresh",
    ]
    # Simple categories get one unnamed subcategory
    assert len(front_desk["subcategories"]) == 1
    assert front_desk["subcategories"][0]["name"] == ""
    assert front_desk["subcategories"][0]["questions"][0]["scale_min"] == 1
    assert front_desk["subcategories"][0]["questions"][0]["scale_max"] == 10


@pytest.mark.asyncio
async def test_list_templates_with_counts(client, admin_headers, quality_template):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/api/v1/templates/", headers=admin_headers)

    assert response.status_code == 200
    rows = response.json()
    assert len(rows) == 1
    assert rows[0]["category_count"] == 2
    assert rows[0]["question_count"] == 4


@pytest.mark.asyncio
@pytest.mark.parametrize("mutate", [
    lambda p: p["categories"][0]["subcategories"][0]["questions"][0].update(scale_min=5, scale_max=5),
    lambda p: p["categories"][0].update(weight=-1),
    lambda p: p.update(categories=[]),
    lambda p: p["categories"][1].update(questions=[]),
    lambda p: p["categories"][0]["subcategories"][1].update(questions=[]),
])
async def test_invalid_tree_is_rejected(client, admin_headers, template_payload, mutate):
    payload = copy.deepcopy(template_payload)
    mutate(payload)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/api/v1/templates/", json=payload, headers=admin_headers)
        listing = await ac.get("/api/v1/templates/", headers=admin_headers)

    assert response.status_code == 400
    assert listing.json() == []


@pytest.mark.asyncio
async def test_only_admin_writes_templates(client, manager_headers, template_payload):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post("/api/v1/templates/", json=template_payload, headers=manager_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unused_template_is_edited_in_place(client, admin_headers, quality_template, template_payload):
    new_tree = copy.deepcopy(template_payload)["categories"][:1]

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.patch(
            f"/api/v1/templates/{quality_template['id']}",
            json={"name": "Quality Audit 2025", "categories": new_tree},
            headers=admin_headers,
        )

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == quality_template["id"]
    assert data["version"] == 1
    assert data["name"] == "Quality Audit 2025"
    assert [c["name"] for c in data["categories"]] == ["Housekeeping"]


@pytest.mark.asyncio
async def test_rejected_tree_keeps_template(client, admin_headers, quality_template):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.patch(
            f"/api/v1/templates/{quality_template['id']}",
            json={"name": "Renamed", "categories": []},
            headers=admin_headers,
        )
        stored = await ac.get(f"/api/v1/templates/{quality_template['id']}", headers=admin_headers)

    assert response.status_code == 400
    data = stored.json()
    assert data["name"] == "Quality Audit"
    assert [c["name"] for c in data["categories"]] == ["Housekeeping", "Front Desk"]
    assert [s["name"] for s in data["categories"][0]["subcategories"]] == ["Lobby", "Rooms"]


@pytest.mark.asyncio
async def test_template_with_submissions_is_versioned(client, admin_headers, manager_headers, lodge,
                                                      quality_template, question_ids, template_payload):
    new_tree = copy.deepcopy(template_payload)["categories"]
    new_tree[1]["questions"].append({"text": "Luggage assistance offered", "sort_order": 2})

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        submitted = await ac.post(
            "/api/v1/surveys/",
            json={
                "template_id": quality_template["id"],
                "property_id": lodge.id,
                "visit_date": "2025-03-01",
                "status": "draft",
                "responses": [{"question_id": question_ids["Beds made to standard"], "score": 8}],
            },
            headers=manager_headers,
        )
        assert submitted.status_code == 201

        response = await ac.patch(
            f"/api/v1/templates/{quality_template['id']}",
            json={"categories": new_tree},
            headers=admin_headers,
        )
        old = await ac.get(f"/api/v1/templates/{quality_template['id']}", headers=admin_headers)
        old_submission = await ac.get(f"/api/v1/surveys/{submitted.json()['id']}", headers=manager_headers)
        active = await ac.get("/api/v1/templates/", params={"active_only": True}, headers=admin_headers)

    assert response.status_code == 200
    new = response.json()
    assert new["id"] != quality_template["id"]
    assert new["version"] == 2
    assert new["parent_id"] == quality_template["id"]
    assert new["name"] == "Quality Audit"
    assert new["survey_type"] == "internal"
    assert len(new["categories"][1]["subcategories"][0]["questions"]) == 2

    # History is immutable
    assert old.json()["is_active"] is False
    assert len(old.json()["categories"][1]["subcategories"][0]["questions"]) == 1
    assert old_submission.json()["template_id"] == quality_template["id"]
    assert [t["id"] for t in active.json()] == [new["id"]]


@pytest.mark.asyncio
async def test_soft_delete_deactivates(client, admin_headers, quality_template):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.delete(f"/api/v1/templates/{quality_template['id']}", headers=admin_headers)
        fetched = await ac.get(f"/api/v1/templates/{quality_template['id']}", headers=admin_headers)

    assert response.status_code == 204
    assert fetched.status_code == 200
    assert fetched.json()["is_active"] is False


@pytest.mark.asyncio
async def test_hard_delete_removes_history_and_unlinks_versions(client, admin_headers, manager_headers, lodge,
                                                                quality_template, question_ids, template_payload):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        await ac.post(
            "/api/v1/surveys/",
            json={
                "template_id": quality_template["id"],
                "property_id": lodge.id,
                "visit_date": "2025-03-01",
                "status": "submitted",
                "responses": [
                    {
                        "question_id": question_ids["Lobby floors clean"],
                        "score": 2,
                        "issue_description": "Muddy entrance",
                    },
                    {"question_id": question_ids["Beds made to standard"], "score": 9},
                    {"question_id": question_ids["Guest greeted within 30 seconds"], "score": 9},
                ],
            },
            headers=manager_headers,
        )
        version_two = await ac.patch(
            f"/api/v1/templates/{quality_template['id']}",
            json={"categories": template_payload["categories"]},
            headers=admin_headers,
        )

        response = await ac.delete(
            f"/api/v1/templates/{quality_template['id']}",
            params={"hard": True},
            headers=admin_headers,
        )
        gone = await ac.get(f"/api/v1/templates/{quality_template['id']}", headers=admin_headers)
        child = await ac.get(f"/api/v1/templates/{version_two.json()['id']}", headers=admin_headers)
        submissions = await ac.get("/api/v1/surveys/", headers=admin_headers)
        tasks = await ac.get("/api/v1/tasks/", headers=admin_headers)

    assert response.status_code == 204
    assert gone.status_code == 404
    assert child.status_code == 200
    assert child.json()["parent_id"] is None
    assert submissions.json() == []
    assert tasks.json() == []


@pytest.mark.asyncio
async def test_other_organization_cannot_see_template(client, db_session, other_organization, quality_template):
    from app.models.user import User, UserRole
    from app.services.auth_service import auth_service

    outsider = User(
        email="admin@mountain.test",
        full_name="Other Admin",
        role=UserRole.ADMIN,
        organization_id=other_organization.id,
        is_active=True,
    )
    db_session.add(outsider)
    await db_session.commit()
    headers = {"Authorization": f"Bearer {auth_service.create_user_token(outsider)}"}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get(f"/api/v1/templates/{quality_template['id']}", headers=headers)

    assert response.status_code == 404
