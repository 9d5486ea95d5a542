"""Filesystem blob store for uploaded images.

Files are stored flat in the upload directory as ``<epoch-ms><ext>``, e.g.
``1718000000123.png``.  Two parts written within the same millisecond get the
same name and the later one overwrites the earlier.

All blocking filesystem calls run in the default executor.
"""
import asyncio
import logging
import os
import time
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import List, Optional

from .schemas import StoredUpload

logger = logging.getLogger(__name__)


def _birth_time(stat: os.stat_result) -> datetime:
    # st_birthtime is missing on most Linux builds; ctime is the closest stand-in.
    ts = getattr(stat, "st_birthtime", None) or stat.st_ctime
    return datetime.fromtimestamp(ts, tz=timezone.utc)


class BlobStore:
    """Flat directory of uploaded image files."""

    def __init__(self, upload_dir: str, public_prefix: str = "/uploads") -> None:
        self._upload_dir = Path(upload_dir)
        self._public_prefix = "/" + public_prefix.strip("/")
        self._upload_dir.mkdir(parents=True, exist_ok=True)

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    @property
    def public_prefix(self) -> str:
        return self._public_prefix

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    def public_path(self, filename: str) -> str:
        """Public path for a stored filename, e.g. ``/uploads/123.png``."""
        return f"{self._public_prefix}/{filename}"

    def resolve(self, public_path: str) -> Path:
        """Map a public path back to the file on disk."""
        return self._upload_dir / Path(public_path).name

    @staticmethod
    def make_filename(original_name: str, now_ms: Optional[int] = None) -> str:
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return f"{now_ms}{Path(original_name).suffix}"

    async def save(self, original_name: str, content: bytes) -> StoredUpload:
        """Write *content* under a timestamp-derived name."""
        filename = self.make_filename(original_name)
        path = self._upload_dir / filename

        def _write() -> os.stat_result:
            path.write_bytes(content)
            return path.stat()

        stat = await self._run(_write)
        logger.info("Saved file: %s (%d bytes)", path, len(content))

        return StoredUpload(
            filename=filename,
            original_name=original_name,
            stored_path=str(path),
            relative_path=self.public_path(filename),
            size_bytes=len(content),
            created_at=_birth_time(stat),
        )

    async def list_names(self) -> List[str]:
        """Names of every entry in the upload directory, sorted."""
        names = await self._run(os.listdir, self._upload_dir)
        return sorted(names)

    async def count(self) -> int:
        return len(await self.list_names())

    async def remove(self, public_path: str) -> None:
        """Delete the file behind *public_path*.

        Raises:
            FileNotFoundError: If the file is already gone.
        """
        path = self.resolve(public_path)
        await self._run(os.remove, path)
        logger.info("Removed file from blob store: %s", path)
