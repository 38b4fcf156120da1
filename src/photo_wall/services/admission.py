"""Admission control for photo ingestion."""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace

from photo_wall.domain.errors import AdmissionBusyError, PhotoValidationError
from photo_wall.domain.photos import ParsedEntry
from photo_wall.services.normalizer import (
    INLINE_IMAGE_FIELDS,
    decode_data_url,
    inline_image_value,
    now_ms,
    parse_entry,
)

# Submitters never get to point a record at an existing file.
_STRIPPED_FIELDS = {*INLINE_IMAGE_FIELDS, "images", "storageFile"}


@dataclass
class AdmissionController:
    """Load-shedding gate bounding concurrent ingestions."""

    max_in_flight: int
    max_image_bytes: int
    _in_flight: int = field(default=0, init=False)

    @property
    def in_flight(self) -> int:
        """Return the number of admitted, unfinished operations."""
        return self._in_flight

    @contextmanager
    def try_admit(self) -> Iterator[None]:
        """Hold one ingestion permit for the duration of the block.

        Raises AdmissionBusyError immediately when the limit is reached.
        """
        if self._in_flight >= self.max_in_flight:
            raise AdmissionBusyError(
                f"{self._in_flight} ingestions in flight (limit {self.max_in_flight})"
            )
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1

    def validate(self, payload: object) -> ParsedEntry:
        """Check a submission and return it parsed, without touching storage."""
        if not isinstance(payload, dict):
            raise PhotoValidationError("payload must be an object")
        photo_id = payload.get("id")
        if not isinstance(photo_id, str) or not photo_id.strip():
            raise PhotoValidationError("id must be a non-empty string")

        image = None
        value = inline_image_value(payload)
        if value is not None:
            try:
                image = decode_data_url(value)
            except ValueError as exc:
                raise PhotoValidationError(str(exc)) from exc
            if len(image.data) > self.max_image_bytes:
                raise PhotoValidationError(
                    f"image exceeds limit of {self.max_image_bytes} bytes"
                )

        fields = {k: v for k, v in payload.items() if k not in _STRIPPED_FIELDS}
        parsed = parse_entry(fields, now_ms())
        if parsed is None:
            raise PhotoValidationError("id must be a non-empty string")
        return replace(parsed, inline_image=image)
