import shutil
import tempfile
import unittest

from fastapi.testclient import TestClient

from backend.app import create_app
from backend.db import SqlRecordStore
from backend.dependencies import get_blob_store, get_record_store
from backend.errors import StorageError
from backend.storage import InMemoryBlobStore, LocalBlobStore

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF-test-bytes"


def form(name="Alice", about="bio", description="desc"):
    return {"name": name, "about": about, "description": description}


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.upload_dir = tempfile.mkdtemp()
        self.records = SqlRecordStore("sqlite+pysqlite:///:memory:")
        self.blobs = LocalBlobStore(directory=self.upload_dir)

        app = create_app()
        app.dependency_overrides[get_record_store] = lambda: self.records
        app.dependency_overrides[get_blob_store] = lambda: self.blobs
        self.client = TestClient(app)

    def tearDown(self):
        self.records.close()
        shutil.rmtree(self.upload_dir, ignore_errors=True)

    def _create(self, image=True, **fields):
        files = {"image": ("alice.jpeg", JPEG_BYTES, "image/jpeg")} if image else None
        return self.client.post("/api/founders", data=form(**fields), files=files)

    def test_create_list_and_fetch_image(self):
        response = self._create()
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["id"], 1)
        self.assertEqual(payload["name"], "Alice")
        self.assertTrue(payload["image_url"].startswith("/uploads/"))
        self.assertTrue(payload["image_url"].endswith("alice.jpeg"))

        listed = self.client.get("/api/founders")
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(listed.json(), [payload])

        image = self.client.get(payload["image_url"])
        self.assertEqual(image.status_code, 200)
        self.assertEqual(image.content, JPEG_BYTES)
        self.assertEqual(image.headers["content-type"], "image/jpeg")

    def test_create_without_image(self):
        response = self._create(image=False)
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["image_url"])

    def test_create_missing_field_returns_400(self):
        response = self.client.post(
            "/api/founders", data={"name": "Alice", "about": "bio"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Missing required fields"})
        self.assertEqual(self.client.get("/api/founders").json(), [])

    def test_create_rejects_pdf(self):
        response = self.client.post(
            "/api/founders",
            data=form(),
            files={"image": ("cv.pdf", b"%PDF-1.4", "application/pdf")},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Invalid file type"})
        self.assertEqual(self.records.list_all(), [])
        self.assertEqual(self.blobs.list_references(), [])

    def test_get_single_founder(self):
        founder_id = self._create().json()["id"]
        response = self.client.get(f"/api/founders/{founder_id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["id"], founder_id)
        self.assertEqual(self.client.get("/api/founders/999").status_code, 404)

    def test_update_without_image_keeps_image(self):
        created = self._create().json()
        response = self.client.put(
            f"/api/founders/{created['id']}", data=form(name="Alicia")
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "Founder updated successfully"})

        fetched = self.client.get(f"/api/founders/{created['id']}").json()
        self.assertEqual(fetched["name"], "Alicia")
        self.assertEqual(fetched["image_url"], created["image_url"])
        self.assertTrue(self.blobs.exists(created["image_url"]))

    def test_update_with_new_image_replaces_blob(self):
        created = self._create().json()
        response = self.client.put(
            f"/api/founders/{created['id']}",
            data=form(),
            files={"image": ("new.png", b"\x89PNG-new", "image/png")},
        )
        self.assertEqual(response.status_code, 200)
        fetched = self.client.get(f"/api/founders/{created['id']}").json()
        self.assertNotEqual(fetched["image_url"], created["image_url"])
        self.assertEqual(self.client.get(fetched["image_url"]).content, b"\x89PNG-new")
        self.assertFalse(self.blobs.exists(created["image_url"]))

    def test_update_rejects_pdf_and_keeps_state(self):
        created = self._create().json()
        response = self.client.put(
            f"/api/founders/{created['id']}",
            data=form(name="Changed"),
            files={"image": ("cv.pdf", b"%PDF", "application/pdf")},
        )
        self.assertEqual(response.status_code, 400)
        fetched = self.client.get(f"/api/founders/{created['id']}").json()
        self.assertEqual(fetched, created)
        self.assertEqual(self.blobs.list_references(), [created["image_url"]])

    def test_update_missing_returns_404(self):
        response = self.client.put("/api/founders/404", data=form())
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Founder not found"})

    def test_delete_removes_row_and_image(self):
        created = self._create().json()
        response = self.client.delete(f"/api/founders/{created['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"message": "Founder deleted successfully"})
        self.assertEqual(self.client.get("/api/founders").json(), [])
        self.assertFalse(self.blobs.exists(created["image_url"]))
        self.assertEqual(self.client.get(created["image_url"]).status_code, 404)

        again = self.client.delete(f"/api/founders/{created['id']}")
        self.assertEqual(again.status_code, 404)
        self.assertEqual(again.json(), {"error": "Founder not found"})

    def test_storage_error_returns_500_without_details(self):
        class BrokenRecords:
            def list_all(self):
                raise StorageError("Database error", operation="list")

        self.client.app.dependency_overrides[get_record_store] = lambda: BrokenRecords()
        response = self.client.get("/api/founders")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Database error"})

    def test_cors_headers_present(self):
        response = self.client.get(
            "/api/founders", headers={"Origin": "http://localhost:3000"}
        )
        self.assertEqual(response.headers.get("access-control-allow-origin"), "*")


class InMemoryBackendApiTests(unittest.TestCase):
    def test_uploads_served_from_in_memory_store(self):
        blobs = InMemoryBlobStore()
        app = create_app()
        app.dependency_overrides[get_blob_store] = lambda: blobs
        client = TestClient(app)

        ref = blobs.save(b"GIF89a", "a.gif", "image/gif")
        response = client.get(ref)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"GIF89a")
        self.assertEqual(client.get("/uploads/missing.gif").status_code, 404)


if __name__ == "__main__":
    unittest.main()
