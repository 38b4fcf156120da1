"""Photo wall ingestion, deletion and listing."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from photo_wall.domain.errors import (
    AdmissionBusyError,
    PhotoValidationError,
    ShuttingDownError,
)
from photo_wall.domain.photos import ParsedEntry, PublicPhotoView
from photo_wall.domain.results import (
    Accepted,
    Busy,
    Deleted,
    DeleteResult,
    NotFound,
    Rejected,
    SubmitResult,
)
from photo_wall.services.admission import AdmissionController
from photo_wall.services.broadcast import (
    BroadcastChannel,
    CreatedSubscriber,
    DeletedSubscriber,
)
from photo_wall.services.ledger import PhotoLedger
from photo_wall.services.moderation import ModerationPolicy
from photo_wall.services.normalizer import RecordNormalizer
from photo_wall.services.persistence import PersistenceCoordinator
from photo_wall.services.shutdown import ShutdownCoordinator

logger = logging.getLogger(__name__)


@dataclass
class PhotoWallService:
    """Application service owning the photo wall pipeline."""

    ledger: PhotoLedger
    normalizer: RecordNormalizer
    admission: AdmissionController
    persistence: PersistenceCoordinator
    broadcast: BroadcastChannel
    shutdown: ShutdownCoordinator
    moderation: ModerationPolicy = field(default_factory=ModerationPolicy)
    _reserved_ids: set[str] = field(default_factory=set, init=False)

    async def start(self) -> int:
        """Restore persisted photos and return how many are live."""
        return await self.persistence.load(self.normalizer)

    def list_photos(self) -> list[PublicPhotoView]:
        """Return the current photos, newest first."""
        return [self.ledger.sanitize(record) for record in self.ledger.records()]

    async def submit_photo(self, raw: object) -> SubmitResult:
        """Run a submission through admission, storage and fan-out."""
        if self.shutdown.shutting_down:
            return Busy()
        try:
            with self.admission.try_admit():
                return await self._ingest(raw)
        except AdmissionBusyError:
            logger.info("Ingestion limit reached, shedding submission")
            return Busy()

    async def delete_photo(self, photo_id: str) -> DeleteResult:
        """Remove a photo, release its image and notify viewers."""
        if self.shutdown.shutting_down:
            raise ShuttingDownError("Photo wall is shutting down")
        record = self.ledger.remove(photo_id)
        if record is None:
            return NotFound(photo_id)
        self.ledger.release_file(record)
        self.persistence.mark_dirty()
        self.broadcast.publish_deleted(photo_id)
        logger.info("Deleted photo", extra={"photo_id": photo_id})
        return Deleted(photo_id)

    def on_photo_created(self, subscriber: CreatedSubscriber) -> Callable[[], None]:
        """Subscribe to accepted photos."""
        return self.broadcast.on_photo_created(subscriber)

    def on_photo_deleted(self, subscriber: DeletedSubscriber) -> Callable[[], None]:
        """Subscribe to explicit deletions."""
        return self.broadcast.on_photo_deleted(subscriber)

    async def _ingest(self, raw: object) -> SubmitResult:
        try:
            parsed = self.admission.validate(raw)
        except PhotoValidationError as exc:
            logger.info("Rejected submission: %s", exc.reason)
            return Rejected(exc.reason)
        if parsed.id in self._reserved_ids or self.ledger.contains(parsed.id):
            return Rejected("duplicate id")
        self._reserved_ids.add(parsed.id)
        try:
            return await self._store(parsed)
        finally:
            self._reserved_ids.discard(parsed.id)

    async def _store(self, parsed: ParsedEntry) -> SubmitResult:
        if not await self.moderation.allows(parsed.caption):
            return Rejected("caption rejected by moderation")
        record = await self.normalizer.from_parsed(parsed, best_effort=False)
        if self.shutdown.shutting_down:
            self.ledger.release_file(record)
            return Busy()
        try:
            self.ledger.insert(record)
            photo = self.ledger.sanitize(record)
        except Exception:
            self.ledger.remove(record.id)
            self.ledger.release_file(record)
            raise
        self.persistence.mark_dirty()
        self.broadcast.publish_created(photo)
        logger.info(
            "Accepted photo",
            extra={"photo_id": record.id, "has_image": record.storage_file is not None},
        )
        return Accepted(photo)
