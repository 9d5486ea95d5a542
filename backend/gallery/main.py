"""Wedding Gallery Backend.

Main entry point for the gallery service: guests upload photos, everyone can
browse them, and the whole set can be downloaded as one ZIP.

Backing systems:
    - uploads directory: the image bytes
    - MongoDB: one metadata document per upload
    - Redis: a list of known upload paths, reconciled against the directory

Store clients are created in the lifespan and owned by the application.  A
store that cannot be reached at startup is logged and the service starts
anyway; requests that need it will fail until it comes back.
"""
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo import AsyncMongoClient
from redis import asyncio as redis

from gallery.config import AppConfig, get_config
from gallery.images.blob_store import BlobStore
from gallery.images.errors import StoreUnavailable
from gallery.images.metadata_store import MetadataStore
from gallery.images.path_cache import PathCache
from gallery.images.router import router as images_router
from gallery.images.service import GalleryService
from gallery.images.sweeper import PeriodicSweeper

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# pymongo logs server selection and heartbeats at DEBUG/INFO.
for _noisy in ("pymongo", "pymongo.serverSelection", "pymongo.connection", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def _ping(name: str, check) -> bool:
    try:
        await check
    except Exception as exc:  # pylint: disable=broad-except
        logger.debug("%s ping failed: %s", name, exc)
        return False
    return True


async def _check_store(name: str, check) -> bool:
    """Await *check*; log StoreUnavailable instead of raising."""
    try:
        await check
    except Exception as exc:  # pylint: disable=broad-except
        err = StoreUnavailable(f"{name} unavailable", detail=str(exc))
        logger.error("Error initializing %s: %s", name, err.detail)
        return False
    logger.info("Connected to %s successfully", name)
    return True


def build_service(config: AppConfig, mongo_client, redis_client) -> GalleryService:
    """Wire the three stores into a GalleryService."""
    collection = mongo_client[config.mongo.database][config.mongo.collection]
    return GalleryService(
        blob_store=BlobStore(config.storage.upload_dir, config.storage.public_prefix),
        metadata_store=MetadataStore(collection),
        path_cache=PathCache(redis_client, key=config.redis.list_key),
        max_files_per_upload=config.storage.max_files_per_upload,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config: AppConfig = app.state.config

    configured_level = getattr(logging, config.server.log_level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.server.log_level.upper())

    Path(config.storage.upload_dir).mkdir(parents=True, exist_ok=True)

    mongo_client = AsyncMongoClient(
        config.mongo.url,
        serverSelectionTimeoutMS=config.mongo.server_selection_timeout_ms,
    )
    redis_client = redis.from_url(config.redis.url, decode_responses=True)
    await _check_store("MongoDB", mongo_client.admin.command("ping"))
    await _check_store("Redis", redis_client.ping())

    app.state.mongo_client = mongo_client
    app.state.redis_client = redis_client
    service = build_service(config, mongo_client, redis_client)
    app.state.gallery_service = service

    sweeper = PeriodicSweeper(service, interval_seconds=config.sweeper.interval_seconds)
    if config.sweeper.enabled:
        sweeper.start()
    else:
        logger.info("Sweeper disabled in config.")

    logger.info(
        "Server running at http://%s:%s", config.server.host, config.server.port
    )

    yield  # Application runs here

    # Shutdown
    await sweeper.stop()
    await redis_client.aclose()
    await mongo_client.close()
    logger.info("Application shutdown complete")


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application for *config* (defaults to get_config())."""
    config = config or get_config()

    app = FastAPI(
        title="Wedding Gallery API",
        description="Upload, browse, delete and download wedding photos",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        logger.info(
            "%s %s %d %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            (time.time() - start_time) * 1000,
        )
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error", "error": str(exc)},
        )

    # Routes first: the /images mount below must not shadow GET /images.
    app.include_router(images_router)

    @app.get("/")
    async def index():
        """Serve the gallery entry page."""
        return FileResponse(config.storage.index_file)

    @app.get("/health")
    async def health() -> dict:
        """Report whether MongoDB and Redis answer a ping."""
        mongo_ok = False
        redis_ok = False
        mongo_client = getattr(app.state, "mongo_client", None)
        redis_client = getattr(app.state, "redis_client", None)
        if mongo_client is not None:
            mongo_ok = await _ping("MongoDB", mongo_client.admin.command("ping"))
        if redis_client is not None:
            redis_ok = await _ping("Redis", redis_client.ping())
        return {"status": "ok", "mongo": mongo_ok, "redis": redis_ok}

    app.mount(
        config.storage.public_prefix,
        StaticFiles(directory=config.storage.upload_dir, check_dir=False),
        name="uploads",
    )
    app.mount(
        "/images",
        StaticFiles(directory=config.storage.assets_dir, check_dir=False),
        name="assets",
    )
    return app


app = create_app()
