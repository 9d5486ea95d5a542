"""Redis-backed list of known upload paths.

A single Redis list (``uploadedFiles`` by default) holds the public path of
every uploaded file in insertion order.  Duplicates are allowed; removal is
always by value and removes every occurrence.
"""
import logging
from typing import List

logger = logging.getLogger(__name__)


class PathCache:
    """Append-only list of public paths, pruned by value."""

    def __init__(self, client, key: str = "uploadedFiles") -> None:
        # client: a redis.asyncio.Redis created with decode_responses=True
        self._client = client
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    async def append(self, path: str) -> None:
        await self._client.rpush(self._key, path)
        logger.info("File path added to Redis: %s", path)

    async def all(self) -> List[str]:
        return list(await self._client.lrange(self._key, 0, -1))

    async def remove(self, path: str) -> int:
        """Remove every occurrence of *path*; returns the number removed."""
        removed = await self._client.lrem(self._key, 0, path)
        logger.info("Removed %d Redis entries for %s", removed, path)
        return removed
