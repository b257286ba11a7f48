import json

import pytest

import config.testing
from school_attendance.main import create_app

MARK_PATH = "/schools/s-1/attendance/mark"
LEAVE_PATH = "/schools/s-1/attendance/admin/leave-management"


def _write_session(path, user):
    path.write_text(json.dumps({"token": "tok-123", "user": json.dumps(user)}), encoding="utf-8")


@pytest.fixture
def server(fake_http, make_snapshot, clock):
    state = {"snapshot": make_snapshot()}

    def mark(_params, body):
        if body["type"] == "CHECK_IN":
            state["snapshot"] = make_snapshot(check_in=clock.now, status="PRESENT")
            return 200, {"success": True, "message": "Checked in successfully", "isLate": False}
        return 200, {"success": False, "message": "Check-out window is closed"}

    fake_http.route("GET", MARK_PATH, lambda _params, _body: (200, state["snapshot"]))
    fake_http.route("POST", MARK_PATH, mark)
    fake_http.route("GET", LEAVE_PATH, (200, {"leaves": []}))
    fake_http.route("PUT", LEAVE_PATH, (200, {"success": True}))
    return fake_http


@pytest.fixture
def make_client(tmp_path, monkeypatch, server):
    apps = []

    def _make(user):
        session_file = tmp_path / "session.json"
        _write_session(session_file, user)
        monkeypatch.setattr(config.testing, "SESSION_FILE", str(session_file))
        app = create_app(settings_module="config.testing", http=server)
        apps.append(app)
        return app.test_client()

    yield _make
    for app in apps:
        app.extensions["school_attendance"].screen.unmount()


def test_view_and_check_in(make_client, server):
    client = make_client({"id": "u-1", "schoolId": "s-1"})

    response = client.get("/attendance")
    assert response.status_code == 200
    view = response.get_json()["view"]
    assert view["phase"] == "NOT_MARKED"
    assert view["actions"]["check_in"]["available"]

    response = client.post("/attendance/check-in")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["success"]
    assert payload["alerts"][0]["title"] == "Checked In"
    assert payload["view"]["phase"] == "CHECKED_IN"

    body = [c for c in server.calls if c["method"] == "POST"][0]["json"]
    assert body["type"] == "CHECK_IN"
    assert body["location"]["latitude"] == 10.7769
    assert body["deviceInfo"]["appVersion"] == "1.0.0-test"


def test_closed_check_out_is_conflict(make_client):
    client = make_client({"id": "u-1", "schoolId": "s-1"})

    response = client.post("/attendance/check-out")

    assert response.status_code == 409
    assert response.get_json()["alerts"][0]["title"] == "Cannot Check Out"


def test_leave_validation_then_submit(make_client, server):
    client = make_client({"id": "u-1", "schoolId": "s-1"})

    response = client.post(
        "/attendance/leave",
        json={"fields": {"start_date": "2025-03-12", "end_date": "2025-03-12", "reason": ""}},
    )
    assert response.status_code == 400
    payload = response.get_json()
    assert payload["alerts"][0]["title"] == "Validation Error"
    assert payload["view"]["leave_form"]["values"]["start_date"] == "2025-03-12"
    assert not any(c["method"] == "PUT" for c in server.calls)

    response = client.post("/attendance/leave", json={"fields": {"reason": "Taking my child to hospital"}})
    assert response.status_code == 200
    assert response.get_json()["alerts"][0]["title"] == "Success"
    put = [c for c in server.calls if c["method"] == "PUT"][0]
    assert put["json"]["totalDays"] == 1


def test_leave_form_can_be_filled_without_submitting(make_client):
    client = make_client({"id": "u-1", "schoolId": "s-1"})

    client.post("/attendance/leave/open")
    response = client.post("/attendance/leave", json={"fields": {"reason": "Wedding"}, "submit": False})
    assert response.status_code == 200
    assert response.get_json()["view"]["leave_form"]["values"]["reason"] == "Wedding"

    response = client.post("/attendance/leave/close")
    assert not response.get_json()["view"]["leave_form"]["open"]


def test_app_state_transitions(make_client, server):
    client = make_client({"id": "u-1", "schoolId": "s-1"})
    client.get("/attendance")
    before = len([c for c in server.calls if c["method"] == "GET" and c["path"] == MARK_PATH])

    assert client.post("/attendance/app-state", json={"state": "background"}).status_code == 200
    assert client.post("/attendance/app-state", json={"state": "active"}).status_code == 200

    after = len([c for c in server.calls if c["method"] == "GET" and c["path"] == MARK_PATH])
    assert after == before + 1


def test_missing_school_blocks_everything(make_client, server):
    client = make_client({"id": "u-1"})

    view = client.get("/attendance").get_json()["view"]
    assert view["blocked"]

    response = client.post("/attendance/check-in")
    assert response.status_code == 401
    assert server.calls == []


def test_unparseable_status_payload_is_reported_not_raised(make_client, server):
    client = make_client({"id": "u-1", "schoolId": "s-1"})
    client.get("/attendance")
    server.route("GET", MARK_PATH, (200, {"attendance": {"checkInTime": "not-a-date"}, "isWorkingDay": True}))

    response = client.post("/attendance/refresh")

    assert response.status_code == 502
    payload = response.get_json()
    assert payload["alerts"][0]["title"] == "Error"
    assert "Unexpected attendance payload" in payload["alerts"][0]["message"]
    assert payload["view"]["phase"] == "NOT_MARKED"


def test_non_text_leave_reason_is_a_validation_error(make_client, server):
    client = make_client({"id": "u-1", "schoolId": "s-1"})

    response = client.post(
        "/attendance/leave",
        json={"fields": {"start_date": "2025-03-12", "end_date": "2025-03-12", "reason": 12345678901}},
    )

    assert response.status_code == 400
    payload = response.get_json()
    assert payload["alerts"][0]["title"] == "Validation Error"
    assert "reason" in payload["view"]["leave_form"]["errors"]
    assert not any(c["method"] == "PUT" for c in server.calls)


def test_non_text_leave_date_is_a_validation_error(make_client, server):
    client = make_client({"id": "u-1", "schoolId": "s-1"})

    response = client.post("/attendance/leave", json={"fields": {"start_date": 20250312}})

    assert response.status_code == 400
    assert "start_date" in response.get_json()["view"]["leave_form"]["errors"]
