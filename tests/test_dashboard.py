from datetime import datetime, timedelta

from tests.conftest import register_and_login


def _alert_types(summary):
    return {alert["type"] for alert in summary["alerts"]}


class TestDashboard:

    def test_empty_patient_dashboard(self, client, patient):
        response = client.get("/api/v1/dashboard/summary", headers=patient["headers"])
        assert response.status_code == 200

        data = response.json()
        assert data["user_name"] == "Luis Perez"
        assert data["next_appointment"] is None
        assert data["document_count"] == 0
        assert data["active_patients"] is None
        assert _alert_types(data) == {"appointment", "document"}

    def test_incomplete_profile_alert(self, client, test_db):
        _, headers = register_and_login(client, "fresh@example.com")

        data = client.get("/api/v1/dashboard/summary", headers=headers).json()
        assert data["user_name"] == "User"
        assert "profile" in _alert_types(data)

    def test_summary_with_activity(self, client, doctor, patient):
        start = (datetime.utcnow() + timedelta(days=2)).replace(hour=10, minute=0, second=0, microsecond=0)
        client.post("/api/v1/appointments", json={
            "doctor_id": doctor["id"],
            "start_at": start.isoformat(),
            "reason": "Check-up"
        }, headers=patient["headers"])
        client.post(
            "/api/v1/documents",
            data={"title": "Blood test", "category": "lab"},
            files={"file": ("blood.pdf", b"results", "application/pdf")},
            headers=patient["headers"]
        )
        conversation = client.post(
            "/api/v1/chat/conversations",
            json={"other_user_id": patient["id"]},
            headers=doctor["headers"]
        ).json()["id"]
        client.post(
            f"/api/v1/chat/conversations/{conversation}/messages",
            json={"body": "See you soon"},
            headers=doctor["headers"]
        )

        data = client.get("/api/v1/dashboard/summary", headers=patient["headers"]).json()
        assert data["next_appointment"]["date"] == start.strftime("%Y-%m-%d")
        assert data["next_appointment"]["time"] == "10:00"
        assert data["next_appointment"]["doctor"] == "Ana Ruiz"
        assert data["document_count"] == 1
        assert data["unread_messages"] == 1
        assert len(data["upcoming"]) == 1
        assert _alert_types(data) == set()
        if start.month == datetime.utcnow().month:
            assert data["marked_dates"] == [start.strftime("%Y-%m-%d")]

        doctor_view = client.get("/api/v1/dashboard/summary", headers=doctor["headers"]).json()
        assert doctor_view["active_patients"] == 1
        assert doctor_view["unread_notifications"] == 1
