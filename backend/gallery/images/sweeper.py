"""Periodic sweeper: runs reconciliation on a fixed interval.

The sweep exists for its side effect (pruning ghost cache entries) and for
the status line it logs.  Failures are logged and the loop carries on with
the next tick.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .service import GalleryService

logger = logging.getLogger(__name__)


class PeriodicSweeper:
    """Owned background task calling ``GalleryService.reconcile``."""

    def __init__(self, service: GalleryService, interval_seconds: float = 60.0) -> None:
        self._service = service
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None  # type: ignore[type-arg]

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="gallery-sweeper")
        logger.info("Sweeper started (interval=%ss)", self._interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Sweeper stopped")

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.run_once()

    async def run_once(self) -> Optional[int]:
        """Run one sweep; returns the valid image count, or None on error."""
        try:
            valid = await self._service.reconcile()
            total = await self._service.blob_store.count()
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Error during status logging: %s", exc)
            return None
        logger.info(
            "Current uploads: %d valid images, %d files in the uploads folder.",
            len(valid),
            total,
        )
        return len(valid)
