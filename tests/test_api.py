"""Tests for the HTTP API."""

import pytest
from sqlalchemy.exc import OperationalError

from campus.core.database import get_db
from campus.main import app
from campus.models.domain import GeoPoint
from campus.modules.attendance.service import AttendanceService

from helpers import descriptor, north_of

ANCHOR = GeoPoint(6.5244, 3.3792)


def faces(offset=0.0):
    return [descriptor(offset + i * 0.01).tolist() for i in range(3)]


@pytest.fixture
def alice_id(client):
    response = client.post("/api/users", json={
        "name": "Alice",
        "email": "alice@uni.edu",
        "student_id": "S001",
        "department": "Physics",
        "descriptors": faces(),
    })
    assert response.status_code == 200
    return response.json()["user"]["id"]


@pytest.fixture
def class_code(client, alice_id):
    response = client.post("/api/classes", json={
        "name": "Physics 101",
        "code": "phy101",
        "latitude": ANCHOR.latitude,
        "longitude": ANCHOR.longitude,
        "attendance_radius": 30,
    })
    assert response.status_code == 200

    response = client.post("/api/classes/enroll", json={"code": "PHY101", "user_id": alice_id})
    assert response.status_code == 200
    return "PHY101"


def recognize(client, code, probe, point):
    return client.post("/api/attendance/recognize", json={
        "class_code": code,
        "descriptor": list(probe),
        "latitude": point.latitude,
        "longitude": point.longitude,
        "accuracy": 8.0,
    })


class TestService:

    def test_root(self, client):
        assert client.get("/").json()["status"] == "running"

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["cooldown_backend"] == "memory"

    def test_health_reports_unreachable_database(self, client):
        class BrokenSession:
            def execute(self, *args, **kwargs):
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        app.dependency_overrides[get_db] = lambda: BrokenSession()
        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["database"] == "unreachable"


class TestDirectoryApi:

    def test_register_requires_three_faces(self, client):
        response = client.post("/api/users", json={
            "name": "Bob", "email": "bob@uni.edu", "student_id": "S002", "descriptors": faces()[:2],
        })
        assert response.status_code == 400

    def test_duplicate_user(self, client, alice_id):
        response = client.post("/api/users", json={
            "name": "Alice", "email": "alice@uni.edu", "student_id": "S001", "descriptors": faces(),
        })
        assert response.status_code == 409

    def test_list_users(self, client, alice_id):
        data = client.get("/api/users").json()
        assert data["total"] == 1
        assert data["users"][0]["name"] == "Alice"
        assert "descriptors" not in data["users"][0]

    def test_get_class(self, client, class_code):
        data = client.get("/api/classes/phy101").json()
        assert data["code"] == "PHY101"
        assert data["attendance_radius"] == 30

    def test_unknown_class(self, client):
        assert client.get("/api/classes/NOPE").status_code == 404

    def test_invalid_class_location(self, client):
        response = client.post("/api/classes", json={
            "name": "Bad", "code": "BAD", "latitude": 91.0, "longitude": 0.0,
        })
        assert response.status_code == 400

    def test_enroll_twice(self, client, alice_id, class_code):
        response = client.post("/api/classes/enroll", json={"code": class_code, "user_id": alice_id})
        assert response.status_code == 400

    def test_zero_radius_kept(self, client):
        response = client.post("/api/classes", json={
            "name": "Lab", "code": "LAB0", "latitude": 0.0, "longitude": 0.0, "attendance_radius": 0,
        })
        assert response.status_code == 200
        assert response.json()["class"]["attendance_radius"] == 0

    def test_negative_radius_rejected(self, client):
        response = client.post("/api/classes", json={
            "name": "Lab", "code": "LAB1", "latitude": 0.0, "longitude": 0.0, "attendance_radius": -5,
        })
        assert response.status_code == 400

    def test_get_update_delete_user(self, client, alice_id):
        assert client.get(f"/api/users/{alice_id}").json()["name"] == "Alice"

        response = client.put(f"/api/users/{alice_id}", json={"department": "Maths"})
        assert response.status_code == 200
        assert response.json()["user"]["department"] == "Maths"

        assert client.delete(f"/api/users/{alice_id}").status_code == 200
        assert client.get(f"/api/users/{alice_id}").status_code == 404
        assert client.get("/api/users").json()["total"] == 0

    def test_update_user_email_taken(self, client, alice_id):
        client.post("/api/users", json={
            "name": "Bob", "email": "bob@uni.edu", "student_id": "S002", "descriptors": faces(0.5),
        })
        response = client.put(f"/api/users/{alice_id}", json={"email": "bob@uni.edu"})
        assert response.status_code == 409

    def test_unknown_user(self, client):
        assert client.get("/api/users/999").status_code == 404
        assert client.delete("/api/users/999").status_code == 404

    def test_enrolled_classes(self, client, alice_id, class_code):
        data = client.get(f"/api/users/{alice_id}/classes").json()
        assert data["total"] == 1
        assert data["classes"][0]["code"] == class_code

    def test_list_classes(self, client, class_code):
        data = client.get("/api/classes").json()
        assert data["total"] == 1
        assert data["classes"][0]["code"] == class_code
        assert data["classes"][0]["students"] == 1

    def test_update_class_location(self, client, class_code):
        moved = north_of(ANCHOR, 500)
        response = client.put(f"/api/classes/{class_code}/location", json={
            "latitude": moved.latitude, "longitude": moved.longitude, "attendance_radius": 50,
        })
        assert response.status_code == 200

        data = client.get(f"/api/classes/{class_code}").json()
        assert data["latitude"] == pytest.approx(moved.latitude)
        assert data["attendance_radius"] == 50

        response = client.put(f"/api/classes/{class_code}/location", json={"latitude": 95.0, "longitude": 0.0})
        assert response.status_code == 400

    def test_delete_class(self, client, alice_id, class_code):
        recognize(client, class_code, descriptor(0.2), ANCHOR)

        assert client.delete(f"/api/classes/{class_code}").status_code == 200
        assert client.get(f"/api/classes/{class_code}").status_code == 404
        assert client.get("/api/attendance/records").json() == []
        assert client.get(f"/api/users/{alice_id}/classes").json()["total"] == 0


class TestRecognize:

    def test_accepted_then_time_out(self, client, class_code, cooldown):
        first = recognize(client, class_code, descriptor(0.2), north_of(ANCHOR, 25))
        assert first.status_code == 200
        data = first.json()
        assert data["outcome"] == "accepted"
        assert data["name"] == "Alice"
        assert data["distance"] == 25
        assert data["status"] == "Time in recorded"

        cooldown.clear()
        second = recognize(client, class_code, descriptor(0.2), north_of(ANCHOR, 25)).json()
        assert second["status"] == "Time out recorded"
        assert second["record_id"] == data["record_id"]

    def test_rejected_location(self, client, class_code):
        data = recognize(client, class_code, descriptor(0.2), north_of(ANCHOR, 45)).json()

        assert data["outcome"] == "rejected-location"
        assert data["distance"] == 45
        assert data["radius"] == 30
        assert data["record_id"] is None

    def test_rejected_cooldown(self, client, class_code):
        recognize(client, class_code, descriptor(0.2), ANCHOR)
        data = recognize(client, class_code, descriptor(0.2), ANCHOR).json()

        assert data["outcome"] == "rejected-cooldown"
        assert 0 < data["remaining_seconds"] <= 30

    def test_rejected_face(self, client, class_code):
        data = recognize(client, class_code, descriptor(0.95), ANCHOR).json()

        assert data["outcome"] == "rejected-face"
        assert data["user_id"] is None

    def test_bad_descriptor(self, client, class_code):
        response = recognize(client, class_code, [0.1] * 10, ANCHOR)
        assert response.status_code == 400

    def test_bad_location(self, client, class_code):
        response = recognize(client, class_code, descriptor(0.2), GeoPoint(0.0, 200.0))
        assert response.status_code == 400

    def test_unknown_class(self, client, alice_id):
        response = recognize(client, "NOPE", descriptor(0.2), ANCHOR)
        assert response.status_code == 404

    def test_only_enrolled_students_matched(self, client, class_code):
        client.post("/api/users", json={
            "name": "Bob", "email": "bob@uni.edu", "student_id": "S002", "descriptors": faces(0.9),
        })
        data = recognize(client, class_code, descriptor(0.9), ANCHOR).json()

        # Bob is not enrolled, so the probe is compared to Alice only
        assert data["outcome"] == "rejected-face"


class TestManualMark:

    def test_manual_mark(self, client, alice_id, class_code):
        response = client.post("/api/attendance/mark", json={
            "class_code": class_code, "user_id": alice_id,
            "latitude": ANCHOR.latitude, "longitude": ANCHOR.longitude,
        })
        data = response.json()

        assert data["outcome"] == "accepted"
        assert data["confidence"] is None
        assert data["status"] == "Time in recorded"

    def test_not_enrolled(self, client, class_code):
        bob = client.post("/api/users", json={
            "name": "Bob", "email": "bob@uni.edu", "student_id": "S002", "descriptors": faces(0.5),
        }).json()["user"]["id"]

        response = client.post("/api/attendance/mark", json={
            "class_code": class_code, "user_id": bob,
            "latitude": ANCHOR.latitude, "longitude": ANCHOR.longitude,
        })
        assert response.status_code == 404


class TestValidateLocation:

    def test_inside_and_outside(self, client, class_code):
        inside = north_of(ANCHOR, 10)
        outside = north_of(ANCHOR, 80)

        data = client.post("/api/attendance/validate-location", json={
            "class_code": class_code, "latitude": inside.latitude, "longitude": inside.longitude,
        }).json()
        assert data["is_within_radius"] is True
        assert data["distance"] == 10

        data = client.post("/api/attendance/validate-location", json={
            "class_code": class_code, "latitude": outside.latitude, "longitude": outside.longitude,
        }).json()
        assert data["is_within_radius"] is False
        assert data["distance"] == 80


class TestRecords:

    def test_records_listed(self, client, alice_id, class_code):
        recognize(client, class_code, descriptor(0.2), ANCHOR)

        records = client.get("/api/attendance/records").json()
        assert len(records) == 1
        assert records[0]["user_id"] == alice_id
        assert records[0]["location_verified"] is True

        assert client.get("/api/attendance/records", params={"user_id": 999}).json() == []

    def test_records_filtered_by_class(self, client, alice_id, class_code):
        recognize(client, class_code, descriptor(0.2), ANCHOR)
        class_id = client.get(f"/api/classes/{class_code}").json()["id"]

        records = client.get("/api/attendance/records", params={"class_id": class_id}).json()
        assert [r["class_id"] for r in records] == [class_id]
        assert client.get("/api/attendance/records", params={"class_id": class_id + 1}).json() == []


class TestFailedRecording:
    """An accepted mark that cannot be stored must not hold the cooldown."""

    @pytest.fixture(autouse=True)
    def failing_record(self, monkeypatch):
        def record(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(AttendanceService, "record", record)

    def test_recognize_releases_cooldown(self, client, alice_id, class_code, cooldown):
        response = recognize(client, class_code, descriptor(0.2), ANCHOR)

        assert response.status_code == 500
        assert cooldown.remaining(str(alice_id)) == 0.0

    def test_manual_mark_releases_cooldown(self, client, alice_id, class_code, cooldown):
        response = client.post("/api/attendance/mark", json={
            "class_code": class_code, "user_id": alice_id,
            "latitude": ANCHOR.latitude, "longitude": ANCHOR.longitude,
        })

        assert response.status_code == 500
        assert cooldown.remaining(str(alice_id)) == 0.0
