import os
import uuid
from unittest.mock import patch

from sqlalchemy.exc import SQLAlchemyError

from portal.core.config import settings


def _upload(client, owner, title="Chest X-ray", category="radiology", content=b"%PDF-1.4 scan", filename="scan.pdf"):
    return client.post(
        "/api/v1/documents",
        data={"title": title, "category": category, "notes": "Left lung"},
        files={"file": (filename, content, "application/pdf")},
        headers=owner["headers"]
    )


class TestDocuments:

    def test_upload_document(self, client, patient):
        response = _upload(client, patient)
        assert response.status_code == 201, response.text

        data = response.json()
        assert data["owner_id"] == patient["id"]
        assert data["patient_id"] == patient["id"]
        assert data["category"] == "radiology"
        assert data["file_size"] == len(b"%PDF-1.4 scan")

        # {owner}/{uuid}/{uuid}.{ext}
        owner_dir, folder, filename = data["file_path"].split("/")
        assert owner_dir == str(patient["id"])
        assert filename == f"{folder}.pdf"
        assert os.path.isfile(os.path.join(settings.STORAGE_DIR, "documents", data["file_path"]))

    def test_list_with_category_filter(self, client, patient):
        _upload(client, patient, title="Scan")
        _upload(client, patient, title="Amoxicillin", category="prescription")

        everything = client.get("/api/v1/documents", params={"category": "all"}, headers=patient["headers"]).json()
        assert [d["title"] for d in everything] == ["Amoxicillin", "Scan"]

        prescriptions = client.get(
            "/api/v1/documents", params={"category": "prescription"}, headers=patient["headers"]
        ).json()
        assert [d["title"] for d in prescriptions] == ["Amoxicillin"]

    def test_unknown_category_filter(self, client, patient):
        response = client.get("/api/v1/documents", params={"category": "xrays"}, headers=patient["headers"])
        assert response.status_code == 400

    def test_empty_file_rejected(self, client, patient):
        assert _upload(client, patient, content=b"").status_code == 400

    def test_file_too_large(self, client, patient):
        with patch.object(settings, "MAX_UPLOAD_SIZE", 4):
            response = _upload(client, patient, content=b"12345")
        assert response.status_code == 413

    def test_storage_path_collision(self, client, patient):
        fixed = uuid.UUID("12345678-1234-5678-1234-567812345678")
        with patch("portal.services.document_service.uuid.uuid4", return_value=fixed):
            first = _upload(client, patient, title="First")
            second = _upload(client, patient, title="Second")

        assert first.status_code == 201
        assert second.status_code == 409
        titles = [d["title"] for d in client.get("/api/v1/documents", headers=patient["headers"]).json()]
        assert titles == ["First"]

    def test_failed_insert_removes_file(self, client, patient):
        documents_dir = os.path.join(settings.STORAGE_DIR, "documents", str(patient["id"]))

        with patch("sqlalchemy.orm.Session.commit", side_effect=SQLAlchemyError("boom")):
            response = _upload(client, patient)
        assert response.status_code == 500

        leftovers = []
        if os.path.isdir(documents_dir):
            for _, _, files in os.walk(documents_dir):
                leftovers.extend(files)
        assert leftovers == []

    def test_other_users_cannot_see_document(self, client, patient, make_patient):
        document = _upload(client, patient).json()
        stranger = make_patient(email="stranger@example.com", full_name="Nadie")

        response = client.get(f"/api/v1/documents/{document['id']}", headers=stranger["headers"])
        assert response.status_code == 404

    def test_doctor_with_care_link_can_see_document(self, client, doctor, patient):
        document = _upload(client, patient).json()

        assert client.get(f"/api/v1/documents/{document['id']}", headers=doctor["headers"]).status_code == 404

        client.post(f"/api/v1/patients/{patient['id']}/conversation", headers=doctor["headers"])
        response = client.get(f"/api/v1/documents/{document['id']}", headers=doctor["headers"])
        assert response.status_code == 200

    def test_signed_download(self, client, patient):
        document = _upload(client, patient).json()

        response = client.get(f"/api/v1/documents/{document['id']}/download-url", headers=patient["headers"])
        assert response.status_code == 200
        assert response.json()["expires_in"] == 3600

        download = client.get(response.json()["url"])
        assert download.status_code == 200
        assert download.content == b"%PDF-1.4 scan"

    def test_tampered_signature_rejected(self, client, patient):
        document = _upload(client, patient).json()
        other = _upload(client, patient, title="Other").json()

        url = client.get(f"/api/v1/documents/{document['id']}/download-url", headers=patient["headers"]).json()["url"]
        token = url.split("?token=")[1]

        response = client.get(f"/api/v1/storage/sign/documents/{other['file_path']}", params={"token": token})
        assert response.status_code == 403

        response = client.get(f"/api/v1/storage/sign/documents/{document['file_path']}", params={"token": "junk"})
        assert response.status_code == 403

    def test_delete_document(self, client, patient):
        document = _upload(client, patient).json()
        path = os.path.join(settings.STORAGE_DIR, "documents", document["file_path"])

        response = client.delete(f"/api/v1/documents/{document['id']}", headers=patient["headers"])
        assert response.status_code == 200
        assert not os.path.exists(path)
        assert client.get("/api/v1/documents", headers=patient["headers"]).json() == []

    def test_delete_survives_storage_failure(self, client, patient):
        document = _upload(client, patient).json()

        with patch("portal.services.storage_service.StorageService.remove", side_effect=OSError("disk")):
            response = client.delete(f"/api/v1/documents/{document['id']}", headers=patient["headers"])
        assert response.status_code == 200
        assert client.get("/api/v1/documents", headers=patient["headers"]).json() == []

    def test_only_owner_deletes(self, client, doctor, patient):
        document = _upload(client, patient).json()
        client.post(f"/api/v1/patients/{patient['id']}/conversation", headers=doctor["headers"])

        response = client.delete(f"/api/v1/documents/{document['id']}", headers=doctor["headers"])
        assert response.status_code == 404


class TestDocumentFolders:

    def test_create_and_list_folders(self, client, patient):
        for name in ("Radiology", "Blood work"):
            response = client.post("/api/v1/documents/folders", json={"name": name}, headers=patient["headers"])
            assert response.status_code == 201

        folders = client.get("/api/v1/documents/folders", headers=patient["headers"]).json()
        assert [f["name"] for f in folders] == ["Blood work", "Radiology"]
        assert folders[0]["parent_id"] is None
        assert folders[0]["is_favorite"] is False

    def test_subfolders_listed_under_parent(self, client, patient):
        parent = client.post("/api/v1/documents/folders", json={"name": "2026"}, headers=patient["headers"]).json()
        client.post(
            "/api/v1/documents/folders",
            json={"name": "January", "parent_id": parent["id"]},
            headers=patient["headers"]
        )

        top = client.get("/api/v1/documents/folders", headers=patient["headers"]).json()
        assert [f["name"] for f in top] == ["2026"]

        children = client.get(
            "/api/v1/documents/folders", params={"parent_id": parent["id"]}, headers=patient["headers"]
        ).json()
        assert [f["name"] for f in children] == ["January"]

    def test_blank_folder_name_rejected(self, client, patient):
        response = client.post("/api/v1/documents/folders", json={"name": "   "}, headers=patient["headers"])
        assert response.status_code == 422

    def test_rename_and_favorite(self, client, patient):
        folder = client.post("/api/v1/documents/folders", json={"name": "Scans"}, headers=patient["headers"]).json()

        response = client.patch(
            f"/api/v1/documents/folders/{folder['id']}",
            json={"name": "X-rays", "is_favorite": True, "color": "#EF4444"},
            headers=patient["headers"]
        )
        assert response.status_code == 200
        assert response.json()["name"] == "X-rays"
        assert response.json()["is_favorite"] is True
        assert response.json()["color"] == "#EF4444"

    def test_upload_into_folder_and_filter(self, client, patient):
        folder = client.post("/api/v1/documents/folders", json={"name": "Labs"}, headers=patient["headers"]).json()
        client.post(
            "/api/v1/documents",
            data={"title": "Glucose", "category": "lab", "folder_id": str(folder["id"])},
            files={"file": ("glucose.pdf", b"values", "application/pdf")},
            headers=patient["headers"]
        )
        _upload(client, patient, title="Loose scan")

        inside = client.get(
            "/api/v1/documents", params={"folder_id": folder["id"]}, headers=patient["headers"]
        ).json()
        assert [d["title"] for d in inside] == ["Glucose"]

    def test_delete_folder_moves_contents_up(self, client, patient):
        parent = client.post("/api/v1/documents/folders", json={"name": "2026"}, headers=patient["headers"]).json()
        child = client.post(
            "/api/v1/documents/folders",
            json={"name": "January", "parent_id": parent["id"]},
            headers=patient["headers"]
        ).json()
        document = _upload(client, patient).json()
        client.patch(
            f"/api/v1/documents/{document['id']}",
            json={"folder_id": child["id"]},
            headers=patient["headers"]
        )

        response = client.delete(f"/api/v1/documents/folders/{child['id']}", headers=patient["headers"])
        assert response.status_code == 200

        moved = client.get(f"/api/v1/documents/{document['id']}", headers=patient["headers"]).json()
        assert moved["folder_id"] == parent["id"]

    def test_folders_are_private(self, client, patient, make_patient):
        folder = client.post("/api/v1/documents/folders", json={"name": "Mine"}, headers=patient["headers"]).json()
        other = make_patient(email="other@example.com", full_name="Otra Persona")

        assert client.get("/api/v1/documents/folders", headers=other["headers"]).json() == []
        response = client.delete(f"/api/v1/documents/folders/{folder['id']}", headers=other["headers"])
        assert response.status_code == 404

        # Nor can a document be moved into someone else's folder
        document = _upload(client, other).json()
        response = client.patch(
            f"/api/v1/documents/{document['id']}",
            json={"folder_id": folder["id"]},
            headers=other["headers"]
        )
        assert response.status_code == 404


class TestDocumentUpdateAndSearch:

    def test_update_document(self, client, patient):
        document = _upload(client, patient).json()

        response = client.patch(
            f"/api/v1/documents/{document['id']}",
            json={"title": "  Chest X-ray 2026  ", "notes": "Clear"},
            headers=patient["headers"]
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Chest X-ray 2026"
        assert response.json()["notes"] == "Clear"

    def test_update_rejects_blank_title(self, client, patient):
        document = _upload(client, patient).json()
        response = client.patch(
            f"/api/v1/documents/{document['id']}", json={"title": " "}, headers=patient["headers"]
        )
        assert response.status_code == 422

    def test_only_owner_updates(self, client, patient, make_patient):
        document = _upload(client, patient).json()
        other = make_patient(email="other@example.com", full_name="Otra Persona")

        response = client.patch(
            f"/api/v1/documents/{document['id']}", json={"title": "Mine now"}, headers=other["headers"]
        )
        assert response.status_code == 404

    def test_search_by_title_notes_and_category(self, client, patient):
        _upload(client, patient, title="Chest X-ray")
        _upload(client, patient, title="Amoxicillin", category="prescription")

        def search(term):
            response = client.get("/api/v1/documents/search", params={"q": term}, headers=patient["headers"])
            assert response.status_code == 200
            return sorted(d["title"] for d in response.json())

        assert search("x-RAY") == ["Chest X-ray"]
        assert search("left lung") == ["Amoxicillin", "Chest X-ray"]
        assert search("prescript") == ["Amoxicillin"]
        assert search("   ") == []

    def test_search_includes_shared_documents(self, client, patient, doctor):
        document = _upload(client, patient, title="MRI report").json()
        client.post(
            f"/api/v1/documents/{document['id']}/shares",
            json={"user_id": doctor["id"]},
            headers=patient["headers"]
        )

        results = client.get("/api/v1/documents/search", params={"q": "mri"}, headers=doctor["headers"]).json()
        assert [d["id"] for d in results] == [document["id"]]


class TestDocumentSharing:

    def test_share_by_email(self, client, patient, doctor):
        document = _upload(client, patient).json()

        response = client.post(
            f"/api/v1/documents/{document['id']}/shares",
            json={"email": "Doctor@Example.com"},
            headers=patient["headers"]
        )
        assert response.status_code == 201, response.text
        assert response.json()["shared_with"] == doctor["id"]
        assert response.json()["recipient"]["full_name"] == "Ana Ruiz"

    def test_recipient_can_read_and_download(self, client, patient, make_patient):
        document = _upload(client, patient).json()
        friend = make_patient(email="friend@example.com", full_name="Amiga Fiel")

        assert client.get(f"/api/v1/documents/{document['id']}", headers=friend["headers"]).status_code == 404

        client.post(
            f"/api/v1/documents/{document['id']}/shares",
            json={"user_id": friend["id"]},
            headers=patient["headers"]
        )
        assert client.get(f"/api/v1/documents/{document['id']}", headers=friend["headers"]).status_code == 200

        url = client.get(f"/api/v1/documents/{document['id']}/download-url", headers=friend["headers"]).json()["url"]
        assert client.get(url).content == b"%PDF-1.4 scan"

        notifications = client.get("/api/v1/notifications/unread", headers=friend["headers"]).json()
        assert notifications[0]["type"] == "document"

    def test_shared_with_me(self, client, patient, doctor):
        document = _upload(client, patient).json()
        client.post(
            f"/api/v1/documents/{document['id']}/shares",
            json={"user_id": doctor["id"]},
            headers=patient["headers"]
        )

        shared = client.get("/api/v1/documents/shared", headers=doctor["headers"]).json()
        assert len(shared) == 1
        assert shared[0]["document"]["id"] == document["id"]
        assert shared[0]["sender"]["full_name"] == "Luis Perez"

        # Shared documents stay out of the recipient's own library
        assert client.get("/api/v1/documents", headers=doctor["headers"]).json() == []

    def test_sharing_twice_is_idempotent(self, client, patient, doctor):
        document = _upload(client, patient).json()
        url = f"/api/v1/documents/{document['id']}/shares"

        first = client.post(url, json={"user_id": doctor["id"]}, headers=patient["headers"]).json()
        second = client.post(url, json={"user_id": doctor["id"]}, headers=patient["headers"]).json()
        assert first["id"] == second["id"]

        shares = client.get(url, headers=patient["headers"]).json()
        assert [s["shared_with"] for s in shares] == [doctor["id"]]

    def test_share_errors(self, client, patient, doctor):
        document = _upload(client, patient).json()
        url = f"/api/v1/documents/{document['id']}/shares"

        assert client.post(url, json={}, headers=patient["headers"]).status_code == 422
        assert client.post(url, json={"email": "ghost@example.com"}, headers=patient["headers"]).status_code == 404
        assert client.post(url, json={"user_id": patient["id"]}, headers=patient["headers"]).status_code == 400
        # Only the owner shares
        assert client.post(url, json={"user_id": patient["id"]}, headers=doctor["headers"]).status_code == 404

    def test_revoke_share(self, client, patient, make_patient):
        document = _upload(client, patient).json()
        friend = make_patient(email="friend@example.com", full_name="Amiga Fiel")
        client.post(
            f"/api/v1/documents/{document['id']}/shares",
            json={"user_id": friend["id"]},
            headers=patient["headers"]
        )

        response = client.delete(
            f"/api/v1/documents/{document['id']}/shares/{friend['id']}", headers=patient["headers"]
        )
        assert response.status_code == 200
        assert client.get(f"/api/v1/documents/{document['id']}", headers=friend["headers"]).status_code == 404
        assert client.get("/api/v1/documents/shared", headers=friend["headers"]).json() == []

        again = client.delete(
            f"/api/v1/documents/{document['id']}/shares/{friend['id']}", headers=patient["headers"]
        )
        assert again.status_code == 404

    def test_deleting_document_drops_shares(self, client, patient, doctor):
        document = _upload(client, patient).json()
        client.post(
            f"/api/v1/documents/{document['id']}/shares",
            json={"user_id": doctor["id"]},
            headers=patient["headers"]
        )

        client.delete(f"/api/v1/documents/{document['id']}", headers=patient["headers"])
        assert client.get("/api/v1/documents/shared", headers=doctor["headers"]).json() == []
