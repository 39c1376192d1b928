import os
from unittest.mock import patch

from portal.core.config import settings


class TestProfiles:

    def test_get_my_profile(self, client, patient):
        response = client.get("/api/v1/profiles/me", headers=patient["headers"])
        assert response.status_code == 200

        data = response.json()
        assert data["full_name"] == "Luis Perez"
        assert data["role"] == "patient"
        assert data["patient_profile"]["blood_type"] == "O+"
        assert data["doctor_profile"] is None

    def test_update_my_profile(self, client, patient):
        response = client.patch(
            "/api/v1/profiles/me",
            json={"phone": "611222333", "full_name": "Luis P. Perez"},
            headers=patient["headers"]
        )
        assert response.status_code == 200
        assert response.json()["phone"] == "611222333"
        assert response.json()["full_name"] == "Luis P. Perez"
        # Untouched fields stay as they were
        assert response.json()["sex"] == "female"

    def test_upsert_patient_profile(self, client, patient):
        response = client.put(
            "/api/v1/profiles/me/patient",
            json={"blood_type": "A-", "chronic_conditions": "Asthma"},
            headers=patient["headers"]
        )
        assert response.status_code == 200
        assert response.json()["blood_type"] == "A-"
        assert response.json()["chronic_conditions"] == "Asthma"

    def test_upsert_doctor_profile_requires_doctor(self, client, patient):
        response = client.put(
            "/api/v1/profiles/me/doctor",
            json={"specialty": "Cardiology", "professional_license": "L-1"},
            headers=patient["headers"]
        )
        assert response.status_code == 403

    def test_duplicate_license_rejected(self, client, make_doctor):
        make_doctor()
        other = make_doctor(email="other@example.com", license="LIC-2002")

        response = client.put(
            "/api/v1/profiles/me/doctor",
            json={"specialty": "Cardiology", "professional_license": "LIC-1001"},
            headers=other["headers"]
        )
        assert response.status_code == 400

    def test_doctor_extension_lookup(self, client, doctor, patient):
        response = client.get(
            f"/api/v1/profiles/doctors/{doctor['id']}/extension",
            headers=patient["headers"]
        )
        assert response.status_code == 200
        assert response.json()["specialty"] == "Cardiology"

    def test_missing_extension_is_null(self, client, doctor, patient):
        # A patient id has no doctor extension; that is not an error
        response = client.get(
            f"/api/v1/profiles/doctors/{patient['id']}/extension",
            headers=doctor["headers"]
        )
        assert response.status_code == 200
        assert response.json() is None

    def test_patient_extension_hidden_without_care_link(self, client, doctor, patient):
        response = client.get(
            f"/api/v1/profiles/patients/{patient['id']}/extension",
            headers=doctor["headers"]
        )
        assert response.status_code == 200
        assert response.json() is None

    def test_upload_avatar(self, client, patient):
        response = client.post(
            "/api/v1/profiles/me/avatar",
            files={"file": ("me.png", b"\x89PNG fake image", "image/png")},
            headers=patient["headers"]
        )
        assert response.status_code == 200

        avatar_url = response.json()["avatar_url"]
        assert avatar_url.startswith(f"{settings.STORAGE_BASE_URL}/public/avatars/{patient['id']}/")
        assert avatar_url.endswith(".png")

        relative = avatar_url[len(f"{settings.STORAGE_BASE_URL}/public/avatars/"):]
        assert os.path.isfile(os.path.join(settings.STORAGE_DIR, "avatars", relative))

        served = client.get(avatar_url)
        assert served.status_code == 200
        assert served.content == b"\x89PNG fake image"

    def test_upload_avatar_rejects_non_images(self, client, patient):
        response = client.post(
            "/api/v1/profiles/me/avatar",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=patient["headers"]
        )
        assert response.status_code == 400

    def test_avatar_extension_follows_content_type(self, client, patient):
        response = client.post(
            "/api/v1/profiles/me/avatar",
            files={"file": ("page.html", b"<script>alert(1)</script>", "image/png")},
            headers=patient["headers"]
        )
        assert response.status_code == 200

        avatar_url = response.json()["avatar_url"]
        assert avatar_url.endswith(".png")

        served = client.get(avatar_url)
        assert served.headers["content-type"] == "image/png"
        assert served.headers["x-content-type-options"] == "nosniff"

    def test_html_avatar_rejected(self, client, patient):
        response = client.post(
            "/api/v1/profiles/me/avatar",
            files={"file": ("page.html", b"<html></html>", "text/html")},
            headers=patient["headers"]
        )
        assert response.status_code == 400

    def test_avatar_too_large(self, client, patient):
        with patch.object(settings, "MAX_UPLOAD_SIZE", 4):
            response = client.post(
                "/api/v1/profiles/me/avatar",
                files={"file": ("me.png", b"12345", "image/png")},
                headers=patient["headers"]
            )
        assert response.status_code == 413

    def test_public_bucket_serves_only_images(self, client, patient):
        folder = os.path.join(settings.STORAGE_DIR, "avatars", str(patient["id"]))
        os.makedirs(folder, exist_ok=True)
        with open(os.path.join(folder, "page.html"), "wb") as f:
            f.write(b"<html></html>")

        response = client.get(f"/api/v1/storage/public/avatars/{patient['id']}/page.html")
        assert response.status_code == 404
