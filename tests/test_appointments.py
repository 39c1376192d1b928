from datetime import datetime, timedelta, timezone

import pytest


def _future(days=2, hour=10):
    return (datetime.utcnow() + timedelta(days=days)).replace(hour=hour, minute=0, second=0, microsecond=0)


@pytest.fixture
def booking(client, doctor, patient):
    """A request sent by the patient."""
    response = client.post("/api/v1/appointments", json={
        "doctor_id": doctor["id"],
        "start_at": _future().isoformat(),
        "mode": "video",
        "reason": "Chest pain",
        "symptoms": "Shortness of breath"
    }, headers=patient["headers"])
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateAppointment:

    def test_patient_request(self, client, doctor, booking):
        assert booking["status"] == "requested"
        assert booking["doctor"]["id"] == doctor["id"]
        assert booking["doctor"]["specialty"] == "Cardiology"
        assert booking["doctor"]["clinic_name"] == "Heart Clinic"
        assert booking["patient"]["full_name"] == "Luis Perez"

    def test_default_duration(self, booking):
        start = datetime.fromisoformat(booking["start_at"])
        end = datetime.fromisoformat(booking["end_at"])
        assert end - start == timedelta(minutes=60)

    def test_doctor_books_confirmed(self, client, doctor, patient):
        response = client.post("/api/v1/appointments", json={
            "patient_id": patient["id"],
            "start_at": _future(hour=14).isoformat(),
            "end_at": _future(hour=14).replace(minute=30).isoformat(),
            "reason": "Follow-up"
        }, headers=doctor["headers"])
        assert response.status_code == 201
        assert response.json()["status"] == "confirmed"
        assert response.json()["created_by"] == doctor["id"]

    def test_counterpart_notified(self, client, doctor, booking):
        notifications = client.get("/api/v1/notifications/unread", headers=doctor["headers"]).json()
        assert len(notifications) == 1
        assert notifications[0]["type"] == "appointment"
        assert notifications[0]["link"] == f"/dashboard/consultas/{booking['id']}"

    def test_end_before_start_rejected(self, client, doctor, patient):
        start = _future()
        response = client.post("/api/v1/appointments", json={
            "doctor_id": doctor["id"],
            "start_at": start.isoformat(),
            "end_at": (start - timedelta(minutes=30)).isoformat(),
            "reason": "Check-up"
        }, headers=patient["headers"])
        assert response.status_code == 422

    def test_mixed_timezone_inputs(self, client, doctor, patient):
        start = _future(hour=11)
        response = client.post("/api/v1/appointments", json={
            "doctor_id": doctor["id"],
            "start_at": (start + timedelta(hours=2)).replace(tzinfo=timezone(timedelta(hours=2))).isoformat(),
            "end_at": (start + timedelta(minutes=30)).isoformat(),
            "reason": "Check-up"
        }, headers=patient["headers"])
        assert response.status_code == 201, response.text

        data = response.json()
        assert datetime.fromisoformat(data["start_at"]) == start
        assert datetime.fromisoformat(data["end_at"]) == start + timedelta(minutes=30)

    def test_past_start_rejected(self, client, doctor, patient):
        response = client.post("/api/v1/appointments", json={
            "doctor_id": doctor["id"],
            "start_at": (datetime.utcnow() - timedelta(days=1)).isoformat(),
            "reason": "Check-up"
        }, headers=patient["headers"])
        assert response.status_code == 400

    def test_overlap_rejected(self, client, doctor, make_patient, booking):
        other = make_patient(email="second@example.com", full_name="Eva Gil")
        start = datetime.fromisoformat(booking["start_at"]) + timedelta(minutes=30)

        response = client.post("/api/v1/appointments", json={
            "doctor_id": doctor["id"],
            "start_at": start.isoformat(),
            "reason": "Check-up"
        }, headers=other["headers"])
        assert response.status_code == 409

    def test_back_to_back_allowed(self, client, doctor, make_patient, booking):
        other = make_patient(email="second@example.com", full_name="Eva Gil")

        response = client.post("/api/v1/appointments", json={
            "doctor_id": doctor["id"],
            "start_at": booking["end_at"],
            "reason": "Check-up"
        }, headers=other["headers"])
        assert response.status_code == 201

    def test_reason_required(self, client, doctor, patient):
        response = client.post("/api/v1/appointments", json={
            "doctor_id": doctor["id"],
            "start_at": _future().isoformat()
        }, headers=patient["headers"])
        assert response.status_code == 422

    def test_unknown_doctor(self, client, patient):
        response = client.post("/api/v1/appointments", json={
            "doctor_id": 9999,
            "start_at": _future().isoformat(),
            "reason": "Check-up"
        }, headers=patient["headers"])
        assert response.status_code == 404


class TestListAppointments:

    def test_upcoming_for_both_sides(self, client, doctor, patient, booking):
        for headers in (doctor["headers"], patient["headers"]):
            upcoming = client.get("/api/v1/appointments/upcoming", headers=headers).json()
            assert [a["id"] for a in upcoming] == [booking["id"]]

    def test_upcoming_sorted_ascending(self, client, doctor, patient, booking):
        earlier = client.post("/api/v1/appointments", json={
            "doctor_id": doctor["id"],
            "start_at": _future(days=1).isoformat(),
            "reason": "Earlier"
        }, headers=patient["headers"]).json()

        upcoming = client.get("/api/v1/appointments/upcoming", headers=patient["headers"]).json()
        assert [a["id"] for a in upcoming] == [earlier["id"], booking["id"]]

    def test_cancelled_moves_to_past(self, client, patient, booking):
        response = client.post(f"/api/v1/appointments/{booking['id']}/cancel", headers=patient["headers"])
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        assert client.get("/api/v1/appointments/upcoming", headers=patient["headers"]).json() == []
        past = client.get("/api/v1/appointments/past", headers=patient["headers"]).json()
        assert [a["id"] for a in past] == [booking["id"]]

    def test_outsider_cannot_read(self, client, make_patient, booking):
        outsider = make_patient(email="outsider@example.com", full_name="Nadie")
        response = client.get(f"/api/v1/appointments/{booking['id']}", headers=outsider["headers"])
        assert response.status_code == 404

    def test_days_in_month(self, client, patient, booking):
        start = datetime.fromisoformat(booking["start_at"])
        response = client.get(
            "/api/v1/appointments/days",
            params={"year": start.year, "month": start.month},
            headers=patient["headers"]
        )
        assert response.status_code == 200
        assert response.json()["days"] == [start.date().isoformat()]

    def test_doctor_day(self, client, doctor, patient, booking):
        response = client.get(
            f"/api/v1/appointments/doctor/{doctor['id']}",
            params={"date": booking["start_at"][:10]},
            headers=patient["headers"]
        )
        assert [a["id"] for a in response.json()] == [booking["id"]]


class TestAppointmentStatus:

    def test_doctor_confirms(self, client, doctor, patient, booking):
        response = client.patch(
            f"/api/v1/appointments/{booking['id']}/status",
            json={"status": "confirmed"},
            headers=doctor["headers"]
        )
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

        notifications = client.get("/api/v1/notifications/unread", headers=patient["headers"]).json()
        assert notifications[0]["title"] == "Appointment confirmed"

    def test_patient_cannot_confirm(self, client, patient, booking):
        response = client.patch(
            f"/api/v1/appointments/{booking['id']}/status",
            json={"status": "confirmed"},
            headers=patient["headers"]
        )
        assert response.status_code == 403

    def test_terminal_status_is_final(self, client, doctor, booking):
        client.patch(
            f"/api/v1/appointments/{booking['id']}/status",
            json={"status": "rejected"},
            headers=doctor["headers"]
        )
        response = client.patch(
            f"/api/v1/appointments/{booking['id']}/status",
            json={"status": "confirmed"},
            headers=doctor["headers"]
        )
        assert response.status_code == 400

    def test_cannot_return_to_requested(self, client, doctor, booking):
        response = client.patch(
            f"/api/v1/appointments/{booking['id']}/status",
            json={"status": "requested"},
            headers=doctor["headers"]
        )
        assert response.status_code == 400

    def test_reschedule(self, client, doctor, booking):
        new_start = _future(days=4, hour=9)
        response = client.patch(
            f"/api/v1/appointments/{booking['id']}",
            json={"start_at": new_start.isoformat(), "notes": "Moved"},
            headers=doctor["headers"]
        )
        assert response.status_code == 200

        data = response.json()
        assert datetime.fromisoformat(data["start_at"]) == new_start
        # Duration is kept
        assert datetime.fromisoformat(data["end_at"]) == new_start + timedelta(minutes=60)
        assert data["notes"] == "Moved"

    def test_cancelled_cannot_be_edited(self, client, patient, booking):
        client.post(f"/api/v1/appointments/{booking['id']}/cancel", headers=patient["headers"])
        response = client.patch(
            f"/api/v1/appointments/{booking['id']}",
            json={"notes": "Too late"},
            headers=patient["headers"]
        )
        assert response.status_code == 400

    def test_reschedule_with_utc_offset(self, client, doctor, booking):
        new_start = _future(days=5, hour=15)
        response = client.patch(
            f"/api/v1/appointments/{booking['id']}",
            json={"start_at": new_start.replace(tzinfo=timezone.utc).isoformat()},
            headers=doctor["headers"]
        )
        assert response.status_code == 200
        assert datetime.fromisoformat(response.json()["start_at"]) == new_start

    def test_null_mode_rejected(self, client, patient, booking):
        response = client.patch(
            f"/api/v1/appointments/{booking['id']}",
            json={"mode": None},
            headers=patient["headers"]
        )
        assert response.status_code == 422

        current = client.get(f"/api/v1/appointments/{booking['id']}", headers=patient["headers"]).json()
        assert current["mode"] == "video"
