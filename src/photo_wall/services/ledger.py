"""Bounded, ordered in-memory collection of photo records."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from photo_wall.domain.errors import DuplicatePhotoError
from photo_wall.domain.photos import PhotoRecord, PublicPhotoView
from photo_wall.services.normalizer import ImageStore

logger = logging.getLogger(__name__)


@dataclass
class PhotoLedger:
    """Authoritative photo list, newest first, capped at ``max_photos``."""

    image_store: ImageStore
    max_photos: int
    _records: list[PhotoRecord] = field(default_factory=list, init=False)

    def __len__(self) -> int:
        return len(self._records)

    def records(self) -> tuple[PhotoRecord, ...]:
        """Return the current records, newest first."""
        return tuple(self._records)

    def contains(self, photo_id: str) -> bool:
        """Return true when a live record has the given id."""
        return self.get(photo_id) is not None

    def get(self, photo_id: str) -> PhotoRecord | None:
        """Return the live record with the given id, if present."""
        for record in self._records:
            if record.id == photo_id:
                return record
        return None

    def insert(self, record: PhotoRecord) -> list[PhotoRecord]:
        """Add a record as the newest entry and return any evicted records."""
        if self.contains(record.id):
            raise DuplicatePhotoError(record.id)
        self._records.insert(0, record)
        return self.evict_overflow()

    def evict_overflow(self) -> list[PhotoRecord]:
        """Drop the oldest records beyond the bound and release their files."""
        evicted: list[PhotoRecord] = []
        while len(self._records) > self.max_photos:
            record = self._records.pop()
            self.release_file(record)
            evicted.append(record)
        if evicted:
            logger.info(
                "Evicted %d photo(s) past retention bound",
                len(evicted),
                extra={"photo_ids": [record.id for record in evicted]},
            )
        return evicted

    def remove(self, photo_id: str) -> PhotoRecord | None:
        """Remove and return the record with the given id, if present."""
        for index, record in enumerate(self._records):
            if record.id == photo_id:
                return self._records.pop(index)
        return None

    def restore(self, records: Iterable[PhotoRecord]) -> list[PhotoRecord]:
        """Replace the contents in the given order, then enforce the bound.

        Records repeating an id that was already restored are dropped.
        """
        kept: list[PhotoRecord] = []
        dropped: list[PhotoRecord] = []
        seen: set[str] = set()
        for record in records:
            if record.id in seen:
                logger.warning("Skipping duplicate photo id %s", record.id)
                dropped.append(record)
                continue
            seen.add(record.id)
            kept.append(record)
        self._records = kept
        for record in dropped:
            self.release_file(record)
        return self.evict_overflow()

    def sanitize(self, record: PhotoRecord) -> PublicPhotoView:
        """Return the public view of a record, without storage details."""
        image_url = (
            self.image_store.url_for(record.storage_file)
            if record.storage_file
            else None
        )
        return PublicPhotoView(
            id=record.id,
            caption=record.caption,
            timestamp=record.timestamp,
            rotation=record.rotation,
            author=record.author,
            image_url=image_url,
        )

    def release_file(self, record: PhotoRecord) -> None:
        """Delete the record's backing image, ignoring storage errors."""
        if not record.storage_file:
            return
        if any(live.storage_file == record.storage_file for live in self._records):
            return
        try:
            self.image_store.delete(record.storage_file)
        except (OSError, ValueError):
            logger.warning(
                "Failed to delete image file",
                extra={"photo_id": record.id, "file": record.storage_file},
            )
