"""
Survey submission tests

Covers the submission lifecycle (draft -> submitted -> reviewed), response
validation against the template, score trees and task derivation on submit.
"""
import pytest
from httpx import AsyncClient, ASGITransport

from app.main import app


def full_responses(question_ids, floors=3, floors_issue="Sand tracked across the lobby"):
    return [
        {"question_id": question_ids["Lobby floors clean"], "score": floors, "issue_description": floors_issue},
        {"question_id": question_ids["Beds made to standard"], "score": 10},
        {
            "question_id": question_ids["Guest greeted within 30 seconds"],
            "score": 7,
            "issue_description": "Queue at check-in",
        },
    ]


def submission_payload(quality_template, lodge, question_ids, status="submitted", visit_date="2025-01-10", **kwargs):
    return {
        "template_id": quality_template["id"],
        "property_id": lodge.id,
        "visit_date": visit_date,
        "status": status,
        "responses": kwargs.get("responses", full_responses(question_ids)),
    }


@pytest.mark.asyncio
async def test_submit_directly_scores_and_derives_task(client, manager_headers, admin_headers, lodge, manager_user,
                                                       quality_template, question_ids):
    """Only the score <= 6 response with an issue raises a task"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(quality_template, lodge, question_ids),
            headers=manager_headers,
        )
        assert response.status_code == 201, response.text
        data = response.json()

        tasks = await ac.get("/api/v1/tasks/", headers=admin_headers)

    assert data["status"] == "submitted"
    assert data["submitted_at"] is not None
    assert data["slug"] == "quality-audit-ssl-2025-01-10"

    score = data["score"]
    assert score["scale"] == 10
    assert score["has_data"] is True
    # Housekeeping: mean(Lobby 2.22, Rooms 10) = 6.11 (weight 2); Front Desk 6.67 (weight 1)
    assert score["overall"] == pytest.approx(6.296, abs=0.001)
    assert score["band"] == "fair"
    housekeeping, front_desk = score["categories"]
    assert housekeeping["name"] == "Housekeeping"
    assert housekeeping["average"] == pytest.approx(6.111, abs=0.001)
    assert front_desk["subcategories"][0]["name"] == ""
    assert front_desk["subcategories"][0]["is_ungrouped"] is True
    lobby = housekeeping["subcategories"][0]
    assert lobby["is_ungrouped"] is False
    assert lobby["answered_count"] == 1
    assert lobby["question_count"] == 2

    assert tasks.status_code == 200
    task_list = tasks.json()
    assert len(task_list) == 1
    assert task_list[0]["title"] == "Lobby floors clean"
    assert task_list[0]["description"] == "Sand tracked across the lobby"
    assert task_list[0]["assigned_to"] == manager_user.id
    assert task_list[0]["is_repeat_issue"] is False
    assert task_list[0]["status"] == "open"


@pytest.mark.asyncio
async def test_repeat_issue_flag_after_closed_task(client, manager_headers, admin_headers, lodge,
                                                   quality_template, question_ids):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        first = await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(quality_template, lodge, question_ids),
            headers=manager_headers,
        )
        assert first.status_code == 201

        # Still open: a second report is not a repeat yet
        second = await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(quality_template, lodge, question_ids, visit_date="2025-01-11"),
            headers=manager_headers,
        )
        assert second.status_code == 201

        tasks = (await ac.get("/api/v1/tasks/", headers=admin_headers)).json()
        assert [t["is_repeat_issue"] for t in tasks] == [False, False]

        closed = await ac.patch(
            f"/api/v1/tasks/{tasks[-1]['id']}",
            json={"status": "closed", "closing_notes": "Mats replaced"},
            headers=admin_headers,
        )
        assert closed.status_code == 200

        third = await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(quality_template, lodge, question_ids, visit_date="2025-02-01"),
            headers=manager_headers,
        )
        assert third.status_code == 201

        repeats = await ac.get("/api/v1/tasks/", params={"is_repeat_issue": True}, headers=admin_headers)

    repeat_tasks = repeats.json()
    assert len(repeat_tasks) == 1
    assert repeat_tasks[0]["submission_id"] == third.json()["id"]


@pytest.mark.asyncio
async def test_slug_gets_suffix_on_collision(client, manager_headers, lodge, quality_template, question_ids):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        slugs = []
        for _ in range(3):
            response = await ac.post(
                "/api/v1/surveys/",
                json=submission_payload(quality_template, lodge, question_ids, status="draft", responses=[]),
                headers=manager_headers,
            )
            assert response.status_code == 201
            slugs.append(response.json()["slug"])

    assert slugs == [
        "quality-audit-ssl-2025-01-10",
        "quality-audit-ssl-2025-01-10-2",
        "quality-audit-ssl-2025-01-10-3",
    ]


@pytest.mark.asyncio
async def test_draft_edit_then_submit(client, staff_headers, manager_headers, admin_headers, lodge,
                                      quality_template, question_ids):
    partial = [{"question_id": question_ids["Beds made to standard"], "score": 9}]
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        created = await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(quality_template, lodge, question_ids, status="draft", responses=partial),
            headers=staff_headers,
        )
        assert created.status_code == 201
        submission_id = created.json()["id"]
        assert created.json()["status"] == "draft"

        # Required questions still missing
        incomplete = await ac.post(f"/api/v1/surveys/{submission_id}/submit", headers=staff_headers)
        assert incomplete.status_code == 400

        # Only the submitter edits a draft
        foreign_edit = await ac.patch(
            f"/api/v1/surveys/{submission_id}",
            json={"notes": "Looks fine"},
            headers=manager_headers,
        )
        assert foreign_edit.status_code == 403

        edited = await ac.patch(
            f"/api/v1/surveys/{submission_id}",
            json={"notes": "Evening visit", "responses": full_responses(question_ids)},
            headers=staff_headers,
        )
        assert edited.status_code == 200
        assert edited.json()["notes"] == "Evening visit"
        assert len(edited.json()["responses"]) == 3

        submitted = await ac.post(f"/api/v1/surveys/{submission_id}/submit", headers=staff_headers)
        assert submitted.status_code == 200
        assert submitted.json()["status"] == "submitted"

        again = await ac.post(f"/api/v1/surveys/{submission_id}/submit", headers=staff_headers)
        assert again.status_code == 400

        locked = await ac.patch(
            f"/api/v1/surveys/{submission_id}",
            json={"notes": "Too late"},
            headers=staff_headers,
        )
        assert locked.status_code == 400

        tasks = await ac.get("/api/v1/tasks/", headers=admin_headers)

    assert len(tasks.json()) == 1


@pytest.mark.asyncio
async def test_review_transition(client, manager_headers, staff_headers, lodge, quality_template, question_ids):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        draft = await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(quality_template, lodge, question_ids, status="draft"),
            headers=staff_headers,
        )
        submission_id = draft.json()["id"]

        too_early = await ac.post(f"/api/v1/surveys/{submission_id}/review", headers=manager_headers)
        assert too_early.status_code == 400

        await ac.post(f"/api/v1/surveys/{submission_id}/submit", headers=staff_headers)

        staff_review = await ac.post(f"/api/v1/surveys/{submission_id}/review", headers=staff_headers)
        assert staff_review.status_code == 403

        reviewed = await ac.post(f"/api/v1/surveys/{submission_id}/review", headers=manager_headers)

    assert reviewed.status_code == 200
    assert reviewed.json()["status"] == "reviewed"
    assert reviewed.json()["reviewed_at"] is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_response", [
    {"question_id": 999999, "score": 5},
    {"question_id": "Beds made to standard", "score": 11},
    {"question_id": "Beds made to standard", "score": 0},
])
async def test_invalid_responses_are_rejected(client, manager_headers, lodge, quality_template, question_ids,
                                              bad_response):
    if isinstance(bad_response["question_id"], str):
        bad_response = {**bad_response, "question_id": question_ids[bad_response["question_id"]]}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(quality_template, lodge, question_ids, status="draft", responses=[bad_response]),
            headers=manager_headers,
        )
        listing = await ac.get("/api/v1/surveys/", headers=manager_headers)

    assert response.status_code == 400
    assert listing.json() == []


@pytest.mark.asyncio
async def test_duplicate_question_is_rejected(client, manager_headers, lodge, quality_template, question_ids):
    beds = question_ids["Beds made to standard"]
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(
                quality_template, lodge, question_ids, status="draft",
                responses=[{"question_id": beds, "score": 5}, {"question_id": beds, "score": 6}],
            ),
            headers=manager_headers,
        )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_filters_and_scope(client, admin_headers, manager_headers, lodge, other_lodge,
                                      quality_template, question_ids):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(quality_template, lodge, question_ids, visit_date="2025-01-05"),
            headers=manager_headers,
        )
        await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(quality_template, lodge, question_ids, status="draft", visit_date="2025-02-05"),
            headers=manager_headers,
        )
        await ac.post(
            "/api/v1/surveys/",
            json={**submission_payload(quality_template, lodge, question_ids), "property_id": other_lodge.id},
            headers=admin_headers,
        )

        admin_all = await ac.get("/api/v1/surveys/", headers=admin_headers)
        manager_all = await ac.get("/api/v1/surveys/", headers=manager_headers)
        drafts = await ac.get("/api/v1/surveys/", params={"status": "draft"}, headers=manager_headers)
        january = await ac.get(
            "/api/v1/surveys/",
            params={"date_from": "2025-01-01", "date_to": "2025-01-31"},
            headers=manager_headers,
        )

    assert len(admin_all.json()) == 3
    assert len(manager_all.json()) == 2
    assert [s["visit_date"] for s in drafts.json()] == ["2025-02-05"]
    assert [s["visit_date"] for s in january.json()] == ["2025-01-05"]


@pytest.mark.asyncio
async def test_manager_cannot_submit_for_unassigned_property(client, manager_headers, other_lodge,
                                                             quality_template, question_ids):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(quality_template, other_lodge, question_ids),
            headers=manager_headers,
        )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_submission_permissions(client, admin_headers, staff_headers, lodge,
                                             quality_template, question_ids):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        draft = await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(quality_template, lodge, question_ids, status="draft"),
            headers=staff_headers,
        )
        final = await ac.post(
            "/api/v1/surveys/",
            json=submission_payload(quality_template, lodge, question_ids),
            headers=staff_headers,
        )

        own_draft = await ac.delete(f"/api/v1/surveys/{draft.json()['id']}", headers=staff_headers)
        own_final = await ac.delete(f"/api/v1/surveys/{final.json()['id']}", headers=staff_headers)
        admin_final = await ac.delete(f"/api/v1/surveys/{final.json()['id']}", headers=admin_headers)
        gone = await ac.get(f"/api/v1/surveys/{final.json()['id']}", headers=admin_headers)
        tasks = await ac.get("/api/v1/tasks/", headers=admin_headers)

    assert own_draft.status_code == 204
    assert own_final.status_code == 403
    assert admin_final.status_code == 204
    assert gone.status_code == 404
    assert tasks.json() == []
