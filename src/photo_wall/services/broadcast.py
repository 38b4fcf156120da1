"""Fan-out of photo mutations to connected viewers."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from photo_wall.domain.photos import PublicPhotoView

logger = logging.getLogger(__name__)

NEW_PHOTO_EVENT = "new_photo"
DELETE_PHOTO_EVENT = "delete_photo"

CreatedSubscriber = Callable[[PublicPhotoView], None]
DeletedSubscriber = Callable[[str], None]


@dataclass
class BroadcastChannel:
    """Delivers created/deleted events to current subscribers only."""

    _created: list[CreatedSubscriber] = field(default_factory=list, init=False)
    _deleted: list[DeletedSubscriber] = field(default_factory=list, init=False)
    _viewers: set["ViewerConnection"] = field(default_factory=set, init=False)
    closed: bool = field(default=False, init=False)

    def on_photo_created(self, subscriber: CreatedSubscriber) -> Callable[[], None]:
        """Register a subscriber for new photos and return its unsubscriber."""
        self._created.append(subscriber)
        return lambda: _discard(self._created, subscriber)

    def on_photo_deleted(self, subscriber: DeletedSubscriber) -> Callable[[], None]:
        """Register a subscriber for deletions and return its unsubscriber."""
        self._deleted.append(subscriber)
        return lambda: _discard(self._deleted, subscriber)

    def publish_created(self, photo: PublicPhotoView) -> None:
        """Notify every current subscriber about a new photo."""
        for subscriber in list(self._created):
            try:
                subscriber(photo)
            except Exception:
                logger.exception(
                    "Photo created subscriber failed", extra={"photo_id": photo.id}
                )

    def publish_deleted(self, photo_id: str) -> None:
        """Notify every current subscriber about a deleted photo."""
        for subscriber in list(self._deleted):
            try:
                subscriber(photo_id)
            except Exception:
                logger.exception(
                    "Photo deleted subscriber failed", extra={"photo_id": photo_id}
                )

    def connect_viewer(self, queue_size: int) -> "ViewerConnection":
        """Subscribe a queue-backed viewer to both event kinds."""
        viewer = ViewerConnection(asyncio.Queue(maxsize=queue_size))
        if self.closed:
            viewer.close()
            return viewer
        viewer.unsubscribers = [
            self.on_photo_created(viewer.send_created),
            self.on_photo_deleted(viewer.send_deleted),
        ]
        self._viewers.add(viewer)
        logger.info("Viewer connected (%d total)", len(self._viewers))
        return viewer

    def disconnect_viewer(self, viewer: "ViewerConnection") -> None:
        """Unsubscribe a viewer; safe to call more than once."""
        for unsubscribe in viewer.unsubscribers:
            unsubscribe()
        viewer.unsubscribers = []
        if viewer in self._viewers:
            self._viewers.discard(viewer)
            logger.info("Viewer disconnected (%d total)", len(self._viewers))

    @property
    def viewer_count(self) -> int:
        """Return the number of connected viewers."""
        return len(self._viewers)

    def close(self) -> None:
        """Stop accepting viewers and end every open viewer stream."""
        self.closed = True
        for viewer in list(self._viewers):
            viewer.close()
            self.disconnect_viewer(viewer)


@dataclass(eq=False)
class ViewerConnection:
    """Bounded event queue for one viewer; full queues drop events."""

    queue: asyncio.Queue[dict[str, object] | None]
    unsubscribers: list[Callable[[], None]] = field(default_factory=list)
    dropped: int = 0

    def send_created(self, photo: PublicPhotoView) -> None:
        self._offer({"event": NEW_PHOTO_EVENT, "data": photo.to_payload()})

    def send_deleted(self, photo_id: str) -> None:
        self._offer({"event": DELETE_PHOTO_EVENT, "data": photo_id})

    def close(self) -> None:
        """Signal the end of the stream to the consumer."""
        try:
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            self.queue.get_nowait()
            self.queue.put_nowait(None)

    async def next_event(self) -> dict[str, object] | None:
        """Wait for the next event; None means the stream has ended."""
        return await self.queue.get()

    def _offer(self, event: dict[str, object]) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Dropping %s event for slow viewer",
                event["event"],
                extra={"dropped": self.dropped},
            )


def _discard(subscribers: list, subscriber: object) -> None:
    if subscriber in subscribers:
        subscribers.remove(subscriber)
