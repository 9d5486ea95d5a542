"""Tests for the image endpoints: /upload, /images, /delete/{id}, /download-all.

The router runs against a real blob store in ``tmp_path``, fakeredis for the
path cache and an in-memory collection for MongoDB.
"""
import io
import logging
import zipfile
from unittest.mock import AsyncMock

import fakeredis
from bson import ObjectId
from starlette.datastructures import UploadFile

from conftest import CACHE_KEY


def _image_parts(*names):
    return [("image", (name, io.BytesIO(b"img:" + name.encode()), "image/png")) for name in names]


# ---------------------------------------------------------------------------
# POST /upload
# ---------------------------------------------------------------------------

class TestUpload:
    def test_upload_single_image(self, api_client, upload_dir, collection):
        response = api_client.post("/upload", files=_image_parts("photo.png"))

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Files uploaded successfully!"
        assert body["files"] == ["/uploads/1700000000000.png"]
        assert body["allImages"] == ["/uploads/1700000000000.png"]
        assert (upload_dir / "1700000000000.png").read_bytes() == b"img:photo.png"

        (doc,) = collection.docs.values()
        assert doc["fileName"] == "1700000000000.png"
        assert doc["filePath"] == "/uploads/1700000000000.png"

    def test_upload_several_then_list(self, api_client):
        response = api_client.post("/upload", files=_image_parts("a.png", "b.jpg", "c.webp"))
        assert response.status_code == 200
        new_files = response.json()["files"]
        assert len(new_files) == 3

        listed = api_client.get("/images").json()
        assert set(new_files) <= set(listed)

    def test_all_images_includes_earlier_uploads(self, api_client):
        first = api_client.post("/upload", files=_image_parts("a.png")).json()
        second = api_client.post("/upload", files=_image_parts("b.png")).json()

        assert set(first["files"] + second["files"]) == set(second["allImages"])

    def test_no_files(self, api_client):
        response = api_client.post("/upload", data={"caption": "nothing attached"})

        assert response.status_code == 400
        assert response.json() == {"message": "No files were uploaded."}

    def test_more_than_ten_files(self, api_client, upload_dir, monkeypatch):
        read = AsyncMock(return_value=b"")
        monkeypatch.setattr(UploadFile, "read", read)
        names = [f"{i}.png" for i in range(11)]

        response = api_client.post("/upload", files=_image_parts(*names))

        assert response.status_code == 400
        assert response.json()["message"] == "At most 10 files may be uploaded at once."
        assert list(upload_dir.iterdir()) == []
        # Rejected before any part body is read.
        read.assert_not_awaited()

    def test_partial_insert(self, api_client, collection):
        collection.insert_limit = 1

        response = api_client.post("/upload", files=_image_parts("a.png", "b.png"))

        assert response.status_code == 500
        assert response.json()["message"] == "Failed to insert some files into MongoDB"

    def test_store_error_is_upload_failure(self, api_client, collection):
        collection.insert_many = AsyncMock(side_effect=RuntimeError("mongo down"))

        response = api_client.post("/upload", files=_image_parts("a.png"))

        assert response.status_code == 500
        assert response.json() == {"message": "Error during upload", "error": "mongo down"}


# ---------------------------------------------------------------------------
# GET /images
# ---------------------------------------------------------------------------

class TestListImages:
    def test_empty(self, api_client):
        response = api_client.get("/images")
        assert response.status_code == 200
        assert response.json() == []

    def test_lists_directory_and_prunes_cache(self, api_client, upload_dir, test_app):
        (upload_dir / "1.png").write_bytes(b"x")
        (upload_dir / "notes.txt").write_bytes(b"x")
        test_app.state.gallery_service.path_cache.all = AsyncMock(
            return_value=["/uploads/1.png", "/uploads/ghost.png"]
        )
        test_app.state.gallery_service.path_cache.remove = AsyncMock(return_value=1)

        response = api_client.get("/images")

        assert response.json() == ["/uploads/1.png"]
        test_app.state.gallery_service.path_cache.remove.assert_awaited_once_with("/uploads/ghost.png")

    def test_reconciliation_failure(self, api_client, test_app, caplog):
        test_app.state.gallery_service.path_cache.all = AsyncMock(side_effect=ConnectionError("down"))

        with caplog.at_level(logging.ERROR, logger="gallery.images.router"):
            response = api_client.get("/images")

        assert response.status_code == 500
        assert response.json() == {"message": "Error reading uploads directory", "error": "down"}
        assert "Error reading uploads directory: down" in caplog.text


# ---------------------------------------------------------------------------
# DELETE /delete/{id}
# ---------------------------------------------------------------------------

class TestDelete:
    def test_delete_known_record(self, api_client, upload_dir, collection):
        uploaded = api_client.post("/upload", files=_image_parts("photo.png")).json()
        (file_id,) = [str(_id) for _id in collection.docs]

        response = api_client.delete(f"/delete/{file_id}")

        assert response.status_code == 200
        assert response.json() == {"message": "File deleted successfully!"}
        assert list(upload_dir.iterdir()) == []
        assert collection.docs == {}
        assert uploaded["files"][0] not in api_client.get("/images").json()

    def test_delete_unknown_id(self, api_client, upload_dir, collection):
        api_client.post("/upload", files=_image_parts("photo.png"))

        response = api_client.delete(f"/delete/{ObjectId()}")

        assert response.status_code == 404
        assert response.json() == {"message": "File not found in MongoDB"}
        assert len(list(upload_dir.iterdir())) == 1
        assert len(collection.docs) == 1

    def test_delete_malformed_id(self, api_client):
        response = api_client.delete("/delete/not-an-id")
        assert response.status_code == 404

    def test_delete_record_with_null_timestamps(self, api_client, upload_dir, collection, redis_server):
        (upload_dir / "1600000000000.jpg").write_bytes(b"x")
        oid = ObjectId()
        collection.docs[oid] = {
            "_id": oid,
            "fileName": "1600000000000.jpg",
            "uploadTime": None,
            "fileCreationTime": None,
            "filePath": "/uploads/1600000000000.jpg",
        }
        cache = fakeredis.FakeRedis(server=redis_server, decode_responses=True)
        cache.rpush(CACHE_KEY, "/uploads/1600000000000.jpg")

        response = api_client.delete(f"/delete/{oid}")

        assert response.status_code == 200
        assert list(upload_dir.iterdir()) == []
        assert collection.docs == {}
        assert cache.lrange(CACHE_KEY, 0, -1) == []

    def test_delete_store_error(self, api_client, collection):
        api_client.post("/upload", files=_image_parts("photo.png"))
        (file_id,) = [str(_id) for _id in collection.docs]
        collection.delete_one = AsyncMock(side_effect=RuntimeError("mongo down"))

        response = api_client.delete(f"/delete/{file_id}")

        assert response.status_code == 500
        assert response.json()["message"] == "Error deleting file"


# ---------------------------------------------------------------------------
# GET /download-all
# ---------------------------------------------------------------------------

class TestDownloadAll:
    def test_nothing_to_download(self, api_client, upload_dir):
        (upload_dir / "notes.txt").write_bytes(b"x")

        response = api_client.get("/download-all")

        assert response.status_code == 404
        assert response.json() == {"message": "No images to download"}

    def test_zip_of_all_images(self, api_client, upload_dir):
        (upload_dir / "1.png").write_bytes(b"one")
        (upload_dir / "2.JPG").write_bytes(b"two")
        (upload_dir / "notes.txt").write_bytes(b"skip me")

        response = api_client.get("/download-all")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert 'filename="all-images.zip"' in response.headers["content-disposition"]
        with zipfile.ZipFile(io.BytesIO(response.content)) as zf:
            assert sorted(zf.namelist()) == ["1.png", "2.JPG"]
            assert zf.read("1.png") == b"one"

    def test_reconciliation_failure(self, api_client, test_app):
        test_app.state.gallery_service.path_cache.all = AsyncMock(side_effect=ConnectionError("down"))

        response = api_client.get("/download-all")

        assert response.status_code == 500
        assert response.json() == {"message": "Error during download", "error": "down"}


def test_upload_example_flow(api_client, redis_server, collection):
    """photo.png is stored under a timestamp name and shows up everywhere."""
    response = api_client.post("/upload", files=_image_parts("photo.png"))
    path = response.json()["files"][0]

    assert path == "/uploads/1700000000000.png"
    (doc,) = collection.docs.values()
    assert doc["fileName"] == "1700000000000.png"
    assert doc["filePath"] == path

    cache = fakeredis.FakeRedis(server=redis_server, decode_responses=True)
    assert cache.lrange(CACHE_KEY, 0, -1) == [path]
    assert path in api_client.get("/images").json()


def test_unnamed_empty_part_counts_as_no_file(api_client, upload_dir):
    response = api_client.post("/upload", files=[("image", ("", io.BytesIO(b""), "application/octet-stream"))])

    assert response.status_code == 400
    assert response.json() == {"message": "No files were uploaded."}
    assert list(upload_dir.iterdir()) == []


def test_unnamed_empty_part_is_skipped_next_to_real_files(api_client, upload_dir):
    parts = _image_parts("photo.png") + [("image", ("", io.BytesIO(b""), "application/octet-stream"))]

    response = api_client.post("/upload", files=parts)

    assert response.status_code == 200
    assert response.json()["files"] == ["/uploads/1700000000000.png"]
    assert [p.name for p in upload_dir.iterdir()] == ["1700000000000.png"]
