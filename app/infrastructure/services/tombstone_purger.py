"""Periodic purge of delete tombstones.

A delete leaves a tombstone carrying the delete's version so that an older
create or update redelivered later cannot bring the document back. Once a
tombstone is older than the retention window no such redelivery is
expected, and it is removed.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from app.domain.exceptions import SearchServiceException
from app.shared.utils.datetime import to_epoch_millis, utc_now

if TYPE_CHECKING:
    from app.application.interfaces.gateways import IIndexGateway

logger = logging.getLogger(__name__)


class TombstonePurger:
    """Runs gateway.purge_tombstones every interval_seconds."""

    def __init__(
        self,
        gateway: IIndexGateway,
        *,
        retention: timedelta,
        interval_seconds: float = 3600.0,
    ) -> None:
        self.gateway = gateway
        self.retention = retention
        self.interval_seconds = interval_seconds
        self._stopping = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    async def purge_once(self) -> int:
        """Purge tombstones older than the retention window; returns how many."""
        cutoff = utc_now() - self.retention
        purged = await self.gateway.purge_tombstones(to_epoch_millis(cutoff))
        if purged:
            logger.info("Purged %d tombstones older than %s", purged, cutoff.isoformat())
        return purged

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self.run(), name="tombstone-purger")

    async def stop(self) -> None:
        self._stopping.set()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

    async def run(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.purge_once()
            except SearchServiceException as e:
                logger.warning("Tombstone purge failed: %s", e.message)
            try:
                await asyncio.wait_for(self._stopping.wait(), self.interval_seconds)
            except asyncio.TimeoutError:
                pass
