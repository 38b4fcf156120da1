"""Orderly drain of the photo wall on termination."""

import logging
from dataclasses import dataclass, field

from photo_wall.services.broadcast import BroadcastChannel
from photo_wall.services.persistence import PersistenceCoordinator

logger = logging.getLogger(__name__)


@dataclass
class ShutdownCoordinator:
    """Stops mutations, flushes pending snapshots and ends viewer streams.

    In-flight ingestions are not awaited; one that finishes after the flush
    stays in memory only.
    """

    persistence: PersistenceCoordinator
    broadcast: BroadcastChannel
    shutting_down: bool = field(default=False, init=False)

    async def shutdown(self) -> None:
        """Drain once; later calls are no-ops."""
        if self.shutting_down:
            return
        self.shutting_down = True
        logger.info("Shutting down photo wall")
        if self.persistence.enabled:
            await self.persistence.flush()
            logger.info("Pending photos flushed to disk")
        self.broadcast.close()
