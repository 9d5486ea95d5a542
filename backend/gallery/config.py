"""Gallery application configuration.

Loads settings from a single YAML file (``gallery.settings.yaml`` by default,
or the path in the ``GALLERY_SETTINGS`` environment variable) into pydantic
models.  Missing files fall back to defaults that match a local development
setup: MongoDB and Redis on localhost, uploads under ``./uploads``.

Relative storage paths are resolved against the directory that holds the
settings file, so the service behaves the same regardless of the working
directory it was started from.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("gallery.settings.yaml")
SETTINGS_ENV_VAR = "GALLERY_SETTINGS"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _resolve(base_dir: Path, value: str) -> str:
    path = Path(value)
    if path.is_absolute():
        return str(path)
    return str((base_dir / path).resolve())


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:      str = "0.0.0.0"
    port:      int = 3000
    log_level: str = "info"


class StorageSettings(BaseModel):
    """Where uploaded images and static assets live on disk."""
    upload_dir:           str = "uploads"
    assets_dir:           str = "images"
    index_file:           str = "index.html"
    public_prefix:        str = "/uploads"
    max_files_per_upload: int = Field(default=10, ge=1)


class MongoSettings(BaseModel):
    url:                        str = "mongodb://localhost:27017"
    database:                   str = "weddingPhotoDB"
    collection:                 str = "images"
    server_selection_timeout_ms: int = 5000


class RedisSettings(BaseModel):
    url:      str = "redis://localhost:6379/0"
    list_key: str = "uploadedFiles"


class SweeperSettings(BaseModel):
    enabled:          bool  = True
    interval_seconds: float = Field(default=60.0, gt=0)


class ArchiveSettings(BaseModel):
    filename:          str = "all-images.zip"
    compression_level: int = Field(default=9, ge=0, le=9)


class AppConfig(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    mongo:   MongoSettings   = Field(default_factory=MongoSettings)
    redis:   RedisSettings   = Field(default_factory=RedisSettings)
    sweeper: SweeperSettings = Field(default_factory=SweeperSettings)
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load *settings_path* (or the default file) into an :class:`AppConfig`.

    Relative ``storage`` paths are made absolute using the settings file's
    directory as the base.
    """
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, str(SETTINGS_FILE)))
    settings_path = Path(settings_path)

    data = _load_yaml(settings_path)
    config = AppConfig(**data)

    base_dir = settings_path.resolve().parent
    storage = config.storage
    storage.upload_dir = _resolve(base_dir, storage.upload_dir)
    storage.assets_dir = _resolve(base_dir, storage.assets_dir)
    storage.index_file = _resolve(base_dir, storage.index_file)

    logger.info(
        "Settings loaded (server=%s:%s, upload_dir=%s, mongo=%s/%s, redis_key=%s)",
        config.server.host,
        config.server.port,
        storage.upload_dir,
        config.mongo.database,
        config.mongo.collection,
        config.redis.list_key,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached config (for testing)."""
    global _config
    _config = None
