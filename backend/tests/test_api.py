from __future__ import annotations

from core.security import create_access_token


def _setup_school(client, headers, *, math_hours=4):
    r = client.put(
        "/api/school-settings/",
        json={"grade1_classes": 4, "daily_periods": 6, "saturday_periods": 4},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["data"]["total_weekly_slots"] == 34

    r = client.post(
        "/api/subjects/",
        json={"name": "math", "grades": [1], "weekly_hours": {"1": math_hours}},
        headers=headers,
    )
    assert r.status_code == 200
    math_id = r.json()["data"]["id"]

    r = client.post(
        "/api/teachers/",
        json={"name": "Alice", "grades": [1], "subject_ids": [math_id]},
        headers=headers,
    )
    assert r.status_code == 200

    r = client.post("/api/classrooms/", json={"name": "Room 101"}, headers=headers)
    assert r.status_code == 200
    return math_id


def test_requests_without_token_are_rejected(client):
    r = client.get("/api/teachers/")
    assert r.status_code == 401
    assert r.json()["code"] == "NOT_AUTHENTICATED"


def test_non_admin_token_is_forbidden(client):
    token = create_access_token(user_id="u-2", username="viewer", role="VIEWER")
    r = client.get("/api/teachers/", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 403
    assert r.json()["code"] == "NOT_AUTHORIZED"


def test_garbage_token_is_invalid(client):
    r = client.get("/api/teachers/", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.json()["code"] == "INVALID_TOKEN"


def test_cookie_token_is_accepted(client):
    token = create_access_token(user_id="u-1", username="admin", role="ADMIN")
    r = client.get("/api/classrooms/", headers={"Cookie": f"access_token={token}"})
    assert r.status_code == 200
    assert r.json() == {"success": True, "data": []}


def test_school_settings_default_when_unset(client, admin_headers):
    r = client.get("/api/school-settings/", headers=admin_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["grade1_classes"] == 4
    assert data["daily_periods"] == 6
    assert data["saturday_periods"] == 0
    assert data["total_weekly_slots"] == 30


def test_generate_and_fetch_timetable(client, admin_headers):
    _setup_school(client, admin_headers)

    r = client.post("/api/timetables/generate", json={"grade": 1, "class_section": "A"}, headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    data = body["data"]
    assert data["assigned_slots"] == 4
    assert data["total_slots"] == 34
    assert data["assignment_rate"] == 11.76
    assert [s["day_name"] for s in data["slots"]] == ["Monday"] * 4

    r = client.get(f"/api/timetables/{data['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert len(r.json()["data"]["slots"]) == 4


def test_generate_rejects_bad_grade_and_section(client, admin_headers):
    _setup_school(client, admin_headers)

    r = client.post("/api/timetables/generate", json={"grade": 0, "class_section": "A"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"
    assert r.json()["success"] is False

    r = client.post("/api/timetables/generate", json={"grade": 1, "class_section": "1"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"

    r = client.get("/api/timetables/?grade=1", headers=admin_headers)
    assert r.json()["data"]["total"] == 0


def test_infeasible_generation_returns_conflict(client, admin_headers):
    _setup_school(client, admin_headers, math_hours=20)
    r = client.post("/api/subjects/", json={"name": "english", "weekly_hours": {"1": 20}}, headers=admin_headers)
    assert r.status_code == 200

    r = client.post("/api/timetables/generate", json={"grade": 1, "class_section": "A"}, headers=admin_headers)
    assert r.status_code == 409
    body = r.json()
    assert body["code"] == "INFEASIBLE"
    assert body["details"]["grade"] == 1
    assert body["details"]["unmet_hours"] > 0


def test_list_timetables_pagination(client, admin_headers):
    _setup_school(client, admin_headers)
    for _ in range(5):
        r = client.post("/api/timetables/generate", json={"grade": 1, "class_section": "A"}, headers=admin_headers)
        assert r.status_code == 200

    r = client.get("/api/timetables/?grade=1&limit=20", headers=admin_headers)
    data = r.json()["data"]
    assert data["total"] == 5
    assert data["total_pages"] == 1
    assert len(data["items"]) == 5

    r = client.get("/api/timetables/?grade=1&limit=2&page=3", headers=admin_headers)
    data = r.json()["data"]
    assert data["total"] == 5
    assert data["total_pages"] == 3
    assert len(data["items"]) == 1


def test_generate_all_for_grade(client, admin_headers):
    _setup_school(client, admin_headers)
    r = client.post("/api/timetables/generate-all", json={"grade": 1}, headers=admin_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["requested"] == 4
    assert [t["class_section"] for t in data["generated"]] == ["A", "B", "C", "D"]
    assert data["failed"] == []


def test_unknown_timetable_is_404(client, admin_headers):
    r = client.get("/api/timetables/00000000-0000-0000-0000-00000000abcd", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["code"] == "TIMETABLE_NOT_FOUND"


def test_teacher_preferred_slot_cannot_be_unavailable(client, admin_headers):
    r = client.post(
        "/api/teachers/",
        json={
            "name": "Bob",
            "preferred_slots": [{"day": 0, "periods": [1]}],
            "unavailable_slots": [{"day": 0, "periods": [1, 2]}],
        },
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_teacher_preferred_slot_cannot_hit_mandatory_restriction(client, admin_headers):
    r = client.post(
        "/api/teachers/",
        json={
            "name": "Bob",
            "preferred_slots": [{"day": 2, "periods": [3]}],
            "assignment_restrictions": [{"day": 2, "periods": [3, 4], "level": "MANDATORY"}],
        },
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"

    # A RECOMMENDED restriction only discourages the slot.
    r = client.post(
        "/api/teachers/",
        json={
            "name": "Bob",
            "preferred_slots": [{"day": 2, "periods": [3]}],
            "assignment_restrictions": [{"day": 2, "periods": [3, 4], "level": "RECOMMENDED"}],
        },
        headers=admin_headers,
    )
    assert r.status_code == 200
    teacher_id = r.json()["data"]["id"]

    r = client.patch(
        f"/api/teachers/{teacher_id}",
        json={"assignment_restrictions": [{"day": 2, "periods": [3], "level": "MANDATORY"}]},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.json()["code"] == "PREFERRED_SLOT_UNAVAILABLE"

    r = client.get("/api/teachers/", headers=admin_headers)
    assert r.json()["data"][0]["assignment_restrictions"][0]["level"] == "RECOMMENDED"


def test_teacher_with_unknown_subject_is_rejected(client, admin_headers):
    r = client.post(
        "/api/teachers/",
        json={"name": "Bob", "subject_ids": ["00000000-0000-0000-0000-000000000999"]},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.json()["code"] == "SUBJECT_NOT_FOUND"


def test_subject_crud_round_trip(client, admin_headers):
    r = client.post("/api/subjects/", json={"name": "art", "weekly_hours": {"2": 2}}, headers=admin_headers)
    subject_id = r.json()["data"]["id"]

    r = client.patch(f"/api/subjects/{subject_id}", json={"weekly_hours": {"2": 3}}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["weekly_hours"] == {"2": 3}

    r = client.delete(f"/api/subjects/{subject_id}", headers=admin_headers)
    assert r.status_code == 200
    r = client.get("/api/subjects/", headers=admin_headers)
    assert r.json()["data"] == []


def test_duplicate_classroom_name_conflicts(client, admin_headers):
    assert client.post("/api/classrooms/", json={"name": "Lab"}, headers=admin_headers).status_code == 200
    r = client.post("/api/classrooms/", json={"name": "Lab"}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["code"] == "CLASSROOM_NAME_ALREADY_EXISTS"


def test_health_needs_no_token(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"app": "ok", "database": "ok"}


def test_validate_saved_timetable(client, admin_headers):
    _setup_school(client, admin_headers)
    r = client.post("/api/timetables/generate", json={"grade": 1, "class_section": "A"}, headers=admin_headers)
    data = r.json()["data"]
    assert data["statistics"]["constraint_violations"] == 0
    assert data["statistics"]["quality_score"] == data["assignment_rate"]

    r = client.post(f"/api/timetables/{data['id']}/validate", headers=admin_headers)
    assert r.status_code == 200
    report = r.json()["data"]
    assert report["is_valid"] is True
    assert report["violations"] == []
    assert "teacher_conflict" in report["checked_constraints"]

    r = client.post("/api/timetables/00000000-0000-0000-0000-00000000abcd/validate", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["code"] == "TIMETABLE_NOT_FOUND"


def test_generation_conditions_round_trip(client, admin_headers):
    r = client.get("/api/conditions/", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["id"] == "default"
    assert r.json()["data"]["conditions"] == ""

    r = client.put("/api/conditions/", json={"conditions": "  No PE after lunch  "}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["conditions"] == "No PE after lunch"

    _setup_school(client, admin_headers)
    r = client.post("/api/timetables/generate", json={"grade": 1, "class_section": "A"}, headers=admin_headers)
    assert r.json()["data"]["statistics"]["conditions"] == "No PE after lunch"


def test_conditions_require_admin(client):
    r = client.put("/api/conditions/", json={"conditions": "x"})
    assert r.status_code == 401
