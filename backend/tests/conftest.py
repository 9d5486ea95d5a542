"""Shared test fixtures for the gallery backend.

Redis is provided by fakeredis; MongoDB by a small in-memory collection that
implements the handful of async collection methods MetadataStore calls.
"""
import itertools
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import fakeredis
import pytest
from bson import ObjectId
from fastapi import FastAPI
from fastapi.testclient import TestClient

from gallery.config import AppConfig
from gallery.images import blob_store as blob_store_module
from gallery.images.blob_store import BlobStore
from gallery.images.metadata_store import MetadataStore
from gallery.images.path_cache import PathCache
from gallery.images.router import router as images_router
from gallery.images.service import GalleryService

CACHE_KEY = "uploadedFiles"


class InMemoryCollection:
    """Async stand-in for a PyMongo collection, keyed by ``_id``.

    ``insert_limit`` caps how many documents one ``insert_many`` accepts, to
    simulate a partial insert.
    """

    def __init__(self) -> None:
        self.docs: Dict[ObjectId, Dict[str, Any]] = {}
        self.insert_limit: Optional[int] = None

    async def insert_many(self, documents: List[Dict[str, Any]]):
        accepted = documents if self.insert_limit is None else documents[: self.insert_limit]
        ids = []
        for doc in accepted:
            doc.setdefault("_id", ObjectId())
            self.docs[doc["_id"]] = dict(doc)
            ids.append(doc["_id"])
        return SimpleNamespace(inserted_ids=ids)

    async def find_one(self, query: Dict[str, Any]):
        doc = self.docs.get(query.get("_id"))
        return dict(doc) if doc is not None else None

    async def delete_one(self, query: Dict[str, Any]):
        removed = self.docs.pop(query.get("_id"), None)
        return SimpleNamespace(deleted_count=0 if removed is None else 1)


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def collection() -> InMemoryCollection:
    return InMemoryCollection()


@pytest.fixture
def redis_server():
    # A private FakeServer keeps tests from seeing each other's keys.
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(redis_server):
    return fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)


@pytest.fixture(autouse=True)
def distinct_timestamps(monkeypatch):
    """Give every stored upload its own timestamp (one second apart)."""
    counter = itertools.count()
    monkeypatch.setattr(
        blob_store_module,
        "time",
        SimpleNamespace(time=lambda: float(1_700_000_000 + next(counter))),
    )


@pytest.fixture
def gallery_service(upload_dir, collection, redis_client) -> GalleryService:
    return GalleryService(
        blob_store=BlobStore(str(upload_dir)),
        metadata_store=MetadataStore(collection),
        path_cache=PathCache(redis_client, key=CACHE_KEY),
        max_files_per_upload=10,
    )


@pytest.fixture
def test_app(gallery_service, upload_dir) -> FastAPI:
    """Router-only app wired to the in-memory stores."""
    app = FastAPI()
    app.include_router(images_router)
    app.state.gallery_service = gallery_service
    app.state.config = AppConfig()
    return app


@pytest.fixture
def api_client(test_app):
    """TestClient kept open for the whole test so every request shares one loop."""
    with TestClient(test_app) as client:
        yield client
