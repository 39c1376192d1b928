from portal.services.notification_service import NotificationService, UNREAD_LIMIT


class TestNotifications:

    def test_unread_newest_first_and_capped(self, client, patient, db_session):
        service = NotificationService(db_session)
        for i in range(UNREAD_LIMIT + 2):
            service.notify(patient["id"], f"Reminder {i}")

        response = client.get("/api/v1/notifications/unread", headers=patient["headers"])
        assert response.status_code == 200

        titles = [n["title"] for n in response.json()]
        assert len(titles) == UNREAD_LIMIT
        assert titles[0] == f"Reminder {UNREAD_LIMIT + 1}"

    def test_mark_read(self, client, patient, db_session):
        notification = NotificationService(db_session).notify(patient["id"], "Lab results ready", type="document")

        response = client.post(f"/api/v1/notifications/{notification.id}/read", headers=patient["headers"])
        assert response.status_code == 200
        assert response.json()["is_read"] is True

        assert client.get("/api/v1/notifications/unread", headers=patient["headers"]).json() == []

    def test_cannot_mark_someone_elses(self, client, doctor, patient, db_session):
        notification = NotificationService(db_session).notify(patient["id"], "Private")

        response = client.post(f"/api/v1/notifications/{notification.id}/read", headers=doctor["headers"])
        assert response.status_code == 404

    def test_mark_all_read(self, client, patient, db_session):
        service = NotificationService(db_session)
        service.notify(patient["id"], "One")
        service.notify(patient["id"], "Two")

        response = client.post("/api/v1/notifications/read-all", headers=patient["headers"])
        assert response.json() == {"updated": 2}
        assert client.get("/api/v1/notifications/unread", headers=patient["headers"]).json() == []


class TestNotificationSettings:

    def test_defaults_created_on_first_read(self, client, patient):
        response = client.get("/api/v1/notifications/settings", headers=patient["headers"])
        assert response.status_code == 200

        data = response.json()
        assert data["user_id"] == patient["id"]
        assert data["email_notifications"] is True
        assert data["appointment_reminders"] is True
        assert data["whatsapp_notifications"] is False

    def test_partial_update(self, client, patient):
        response = client.patch(
            "/api/v1/notifications/settings",
            json={"whatsapp_notifications": True},
            headers=patient["headers"]
        )
        assert response.status_code == 200
        assert response.json()["whatsapp_notifications"] is True
        assert response.json()["email_notifications"] is True

        again = client.get("/api/v1/notifications/settings", headers=patient["headers"]).json()
        assert again["whatsapp_notifications"] is True

    def test_settings_are_per_user(self, client, doctor, patient):
        client.patch(
            "/api/v1/notifications/settings",
            json={"email_notifications": False},
            headers=patient["headers"]
        )

        doctor_settings = client.get("/api/v1/notifications/settings", headers=doctor["headers"]).json()
        assert doctor_settings["email_notifications"] is True
