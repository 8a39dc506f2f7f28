import httpx
import pytest

from attendance_api.auth import create_access_token
from attendance_api.main import app
from attendance_api.services.embedding import EmbeddingClient

START_BODY = {
    "subject": "Mathematics",
    "section": "A",
    "session_type": "lecture",
    "hours": ["1", "2"],
}


@pytest.fixture
async def roster(add_student):
    return {
        "alice": await add_student("Alice", "R-001", [1.0, 0.0, 0.0]),
        "bob": await add_student("Bob", "R-002", [0.0, 1.0, 0.0]),
        "carol": await add_student("Carol", "R-003", None),
    }


async def start_session(client, headers, body=START_BODY):
    return await client.post("/attendance/sessions", json=body, headers=headers)


async def test_start_session_requires_authentication(client):
    response = await start_session(client, {})
    assert response.status_code == 401
    assert response.json()["outcome"] == "unauthenticated"


async def test_invalid_token_is_rejected(client):
    response = await start_session(client, {"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["outcome"] == "unauthenticated"


async def test_start_session_validates_body(client, auth_headers):
    response = await start_session(client, auth_headers, {**START_BODY, "hours": []})
    assert response.status_code == 400
    assert response.json()["outcome"] == "validation_error"


async def test_malformed_body_does_not_start_the_cooldown(client, auth_headers, roster):
    invalid = await start_session(client, auth_headers, {**START_BODY, "hours": []})
    assert invalid.status_code == 400

    assert (await start_session(client, auth_headers)).status_code == 201


async def test_start_session_without_students_gives_hint(client, auth_headers):
    response = await start_session(client, auth_headers)
    assert response.status_code == 404
    body = response.json()
    assert body["outcome"] == "not_found"
    assert "register students" in body["hint"]


async def test_start_session_then_repeat_returns_same_session(
    client, auth_headers, roster, timer
):
    created = await start_session(client, auth_headers)
    assert created.status_code == 201
    created_body = created.json()
    assert created_body["outcome"] == "created"
    assert created_body["total_students"] == 3
    assert [s["has_face_descriptor"] for s in created_body["students"]] == [
        True,
        True,
        False,
    ]

    timer.advance(6)
    repeated = await start_session(client, auth_headers)
    assert repeated.status_code == 200
    repeated_body = repeated.json()
    assert repeated_body["outcome"] == "already_exists"
    assert repeated_body["session_id"] == created_body["session_id"]
    assert repeated_body["total_students"] == 3
    assert [s["is_present"] for s in repeated_body["students"]] == [False] * 3


async def test_start_session_is_rate_limited(client, auth_headers, roster, timer):
    assert (await start_session(client, auth_headers)).status_code == 201

    timer.advance(2)
    throttled = await start_session(client, auth_headers)
    assert throttled.status_code == 429
    assert throttled.json()["outcome"] == "rate_limited"
    assert throttled.json()["retry_after"] == 3
    assert throttled.headers["Retry-After"] == "3"

    timer.advance(3)
    assert (await start_session(client, auth_headers)).status_code == 200


async def test_mark_attendance_end_to_end(client, auth_headers, roster):
    session_id = (await start_session(client, auth_headers)).json()["session_id"]

    response = await client.post(
        "/attendance/mark",
        json={"session_id": session_id, "face_descriptor": [0.9, 0.1, 0.0]},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["outcome"] == "marked"
    assert body["student"]["id"] == roster["alice"]
    assert body["student"]["confidence"] == pytest.approx(0.994, abs=1e-3)
    assert body["attendance"] == {"present": 1, "absent": 2, "total": 3}

    again = await client.post(
        "/attendance/mark",
        json={"session_id": session_id, "face_descriptor": [1.0, 0.05, 0.0]},
        headers=auth_headers,
    )
    assert again.status_code == 200
    assert again.json()["outcome"] == "already_marked"
    assert again.json()["attendance"] == {"present": 1, "absent": 2, "total": 3}


async def test_mark_without_match_is_a_negative_outcome(client, auth_headers, roster):
    session_id = (await start_session(client, auth_headers)).json()["session_id"]

    response = await client.post(
        "/attendance/mark",
        json={"session_id": session_id, "face_descriptor": [0.0, 0.0, 1.0]},
        headers=auth_headers,
    )

    assert response.status_code == 404
    assert response.json()["outcome"] == "no_match"


async def test_mark_requires_face_data(client, auth_headers, roster):
    session_id = (await start_session(client, auth_headers)).json()["session_id"]

    response = await client.post(
        "/attendance/mark", json={"session_id": session_id}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["outcome"] == "validation_error"


async def test_missing_face_data_is_rejected_before_session_lookup(client, auth_headers):
    response = await client.post(
        "/attendance/mark", json={"session_id": 4242}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["outcome"] == "validation_error"


async def test_mark_unknown_session(client, auth_headers):
    response = await client.post(
        "/attendance/mark",
        json={"session_id": 4242, "face_descriptor": [1.0, 0.0, 0.0]},
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert response.json()["outcome"] == "not_found"


async def test_other_faculty_cannot_mark_or_read(client, auth_headers, roster):
    session_id = (await start_session(client, auth_headers)).json()["session_id"]
    intruder = {"Authorization": f"Bearer {create_access_token(2)}"}

    mark = await client.post(
        "/attendance/mark",
        json={"session_id": session_id, "face_descriptor": [1.0, 0.0, 0.0]},
        headers=intruder,
    )
    read = await client.get(f"/attendance/sessions/{session_id}", headers=intruder)

    assert mark.status_code == 403
    assert mark.json()["outcome"] == "unauthorized"
    assert read.status_code == 403


async def test_late_enrollment_through_the_api(client, auth_headers, roster, add_student):
    session_id = (await start_session(client, auth_headers)).json()["session_id"]
    dave = await add_student("Dave", "R-004", [0.0, 0.0, 1.0])

    response = await client.post(
        "/attendance/mark",
        json={"session_id": session_id, "face_descriptor": [0.0, 0.1, 0.9]},
        headers=auth_headers,
    )

    body = response.json()
    assert response.status_code == 200
    assert body["outcome"] == "marked"
    assert body["added_to_session"] is True
    assert body["student"]["id"] == dave
    assert body["attendance"] == {"present": 1, "absent": 3, "total": 4}


async def test_mark_from_image_uses_embedding_service(client, auth_headers, roster):
    def handler(request):
        return httpx.Response(200, json={"faces": [{"embedding": [0.05, 1.0, 0.0]}]})

    app.state.embedding_client = EmbeddingClient(
        "http://embedder.local/detect", transport=httpx.MockTransport(handler)
    )
    session_id = (await start_session(client, auth_headers)).json()["session_id"]

    response = await client.post(
        "/attendance/mark",
        json={"session_id": session_id, "face_image_base64": "aGVsbG8="},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["student"]["id"] == roster["bob"]


async def test_mark_from_image_without_face(client, auth_headers, roster):
    app.state.embedding_client = EmbeddingClient(
        "http://embedder.local/detect",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"faces": []})),
    )
    session_id = (await start_session(client, auth_headers)).json()["session_id"]

    response = await client.post(
        "/attendance/mark",
        json={"session_id": session_id, "face_image_base64": "aGVsbG8="},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["outcome"] == "no_face_detected"


async def test_session_detail_lists_present_and_absent(client, auth_headers, roster):
    session_id = (await start_session(client, auth_headers)).json()["session_id"]
    await client.post(
        "/attendance/mark",
        json={"session_id": session_id, "face_descriptor": [0.0, 1.0, 0.0]},
        headers=auth_headers,
    )

    response = await client.get(f"/attendance/sessions/{session_id}", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    session = body["session"]
    assert session["present_students"] == 1
    assert session["attendance_percentage"] == 33
    assert session["hours"] == ["1", "2"]
    assert [s["id"] for s in session["present_students_list"]] == [roster["bob"]]
    assert session["present_students_list"][0]["marked_via"] == "Face Detection"
    assert [s["id"] for s in session["absent_students_list"]] == [
        roster["alice"],
        roster["carol"],
    ]
    assert len(body["records"]) == 3


async def test_reports_filter_by_subject(client, auth_headers, roster, add_student):
    await add_student("Eve", "R-005", [1.0, 1.0, 0.0], subject="Physics")
    await start_session(client, auth_headers)
    await start_session(client, auth_headers, {**START_BODY, "subject": "Physics"})

    all_sessions = await client.get("/attendance/reports", headers=auth_headers)
    physics = await client.get(
        "/attendance/reports", params={"subject": "Physics"}, headers=auth_headers
    )

    assert len(all_sessions.json()["sessions"]) == 2
    assert [s["subject"] for s in physics.json()["sessions"]] == ["Physics"]


async def test_reports_are_scoped_to_the_caller(client, auth_headers, roster):
    await start_session(client, auth_headers)
    other = {"Authorization": f"Bearer {create_access_token(2)}"}

    response = await client.get("/attendance/reports", headers=other)

    assert response.status_code == 200
    assert response.json()["sessions"] == []


async def test_register_student_and_list_roster(client, auth_headers):
    response = await client.post(
        "/students/register",
        json={
            "name": "Frank",
            "roll_number": "R-010",
            "face_descriptor": [0.2, 0.3, 0.4],
            "enrollments": [{"subject": "Mathematics", "section": "A"}],
        },
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["has_face_descriptor"] is True

    duplicate = await client.post(
        "/students/register",
        json={"name": "Frank Again", "roll_number": "R-010"},
        headers=auth_headers,
    )
    assert duplicate.status_code == 400

    listed = await client.get(
        "/students/", params={"subject": "Mathematics", "section": "A"}, headers=auth_headers
    )
    assert [s["roll_number"] for s in listed.json()] == ["R-010"]


async def test_enroll_existing_student(client, auth_headers, add_student):
    student_id = await add_student("Grace", "R-011", [1.0, 0.0], section="B")

    response = await client.post(
        f"/students/{student_id}/enrollments",
        json={"subject": "Mathematics", "section": "A"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    sections = {e["section"] for e in response.json()["enrollments"]}
    assert sections == {"A", "B"}


async def test_health_probe(client):
    response = await client.get("/health/")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
