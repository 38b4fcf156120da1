"""Canonicalization of inbound and persisted photo entries."""

import asyncio
import base64
import binascii
import hashlib
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from photo_wall.domain.errors import ImageStorageError
from photo_wall.domain.photos import InlineImage, ParsedEntry, PhotoRecord

logger = logging.getLogger(__name__)

INLINE_IMAGE_FIELDS = ("image", "imageData")
_MAX_NAME_STEM = 50


class ImageStore(Protocol):
    """Storage interface for image payloads."""

    def write(self, name: str, data: bytes) -> None:
        """Write image bytes under the given name."""

    def delete(self, name: str) -> None:
        """Delete the named image; missing files are ignored."""

    def url_for(self, name: str) -> str:
        """Return a public reference for the named image."""


def now_ms() -> int:
    """Return the current server time in epoch milliseconds."""
    return int(time.time() * 1000)


def inline_image_value(raw: dict[str, object]) -> str | None:
    """Return the inline image carried by an entry, if any.

    Current clients send ``image``; older ones sent ``imageData`` or an
    ``images`` list, of which only the first element is kept.
    """
    for key in INLINE_IMAGE_FIELDS:
        value = raw.get(key)
        if isinstance(value, str) and value:
            return value
    images = raw.get("images")
    if isinstance(images, list):
        for value in images:
            if isinstance(value, str) and value:
                return value
    return None


def decode_data_url(value: str) -> InlineImage:
    """Decode a ``data:<mime>;base64,<payload>`` image reference."""
    if not value.startswith("data:") or "," not in value:
        raise ValueError("unsupported image encoding")
    header, payload = value[len("data:") :].split(",", maxsplit=1)
    parts = [part.strip().lower() for part in header.split(";")]
    mime_type = parts[0]
    if "base64" not in parts[1:]:
        raise ValueError("unsupported image encoding")
    if not mime_type.startswith("image/"):
        raise ValueError(f"unsupported image type: {mime_type or 'unknown'}")
    try:
        data = base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("image is not valid base64") from exc
    if not data:
        raise ValueError("image is empty")
    return InlineImage(mime_type=mime_type, data=data)


def image_extension(mime_type: str) -> str:
    """Return the file extension for an image MIME type."""
    return "png" if mime_type == "image/png" else "jpg"


def storage_name_for(photo_id: str, extension: str) -> str:
    """Derive the image file name for a record id."""
    stem = "".join(c for c in photo_id if c.isalnum() or c in "-_")[:_MAX_NAME_STEM]
    digest = hashlib.sha1(photo_id.encode("utf-8")).hexdigest()[:10]  # noqa: S324
    return f"{stem or 'photo'}-{digest}.{extension}"


def parse_entry(raw: object, timestamp_default: float) -> ParsedEntry | None:
    """Apply defaults and legacy migration to a raw entry without any I/O.

    Returns None when the entry has no usable id. A malformed inline image
    leaves the entry caption-only.
    """
    if not isinstance(raw, dict):
        return None
    photo_id = raw.get("id")
    if not isinstance(photo_id, str) or not photo_id.strip():
        return None

    storage_file = raw.get("storageFile")
    if not isinstance(storage_file, str) or not storage_file:
        storage_file = None

    inline_image = None
    if storage_file is None:
        value = inline_image_value(raw)
        if value is not None:
            try:
                inline_image = decode_data_url(value)
            except ValueError:
                logger.warning(
                    "Dropping undecodable inline image", extra={"photo_id": photo_id}
                )

    caption = raw.get("caption")
    author = raw.get("author")
    return ParsedEntry(
        id=photo_id,
        caption=caption if isinstance(caption, str) else "",
        timestamp=_number_or(raw.get("timestamp"), timestamp_default),
        rotation=_number_or(raw.get("rotation"), 0),
        author=author if isinstance(author, str) else None,
        storage_file=storage_file,
        inline_image=inline_image,
    )


def _number_or(value: object, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return default
    if not math.isfinite(value):
        return default
    return value


@dataclass
class RecordNormalizer:
    """Turns raw entries into canonical records backed by image files."""

    image_store: ImageStore
    clock: Callable[[], float] = field(default=now_ms)

    async def normalize(
        self, raw: object, *, best_effort: bool = True
    ) -> PhotoRecord | None:
        """Return the canonical record for a raw entry, or None to skip it."""
        parsed = parse_entry(raw, self.clock())
        if parsed is None:
            return None
        return await self.from_parsed(parsed, best_effort=best_effort)

    async def from_parsed(
        self, parsed: ParsedEntry, *, best_effort: bool = True
    ) -> PhotoRecord:
        """Write any inline image to storage and build the record.

        With ``best_effort`` a failed write yields a caption-only record;
        otherwise ImageStorageError is raised.
        """
        storage_file = parsed.storage_file
        if storage_file is None and parsed.inline_image is not None:
            storage_file = await self._store_inline_image(
                parsed.id, parsed.inline_image, best_effort
            )
        return PhotoRecord(
            id=parsed.id,
            caption=parsed.caption,
            timestamp=parsed.timestamp,
            rotation=parsed.rotation,
            author=parsed.author,
            storage_file=storage_file,
        )

    async def _store_inline_image(
        self, photo_id: str, image: InlineImage, best_effort: bool
    ) -> str | None:
        name = storage_name_for(photo_id, image_extension(image.mime_type))
        try:
            await asyncio.to_thread(self.image_store.write, name, image.data)
        except OSError as exc:
            self._discard(name)
            if not best_effort:
                raise ImageStorageError(
                    f"Failed to store image for photo {photo_id!r}"
                ) from exc
            logger.warning(
                "Failed to write inline image, keeping caption only",
                extra={"photo_id": photo_id},
            )
            return None
        return name

    def _discard(self, name: str) -> None:
        try:
            self.image_store.delete(name)
        except OSError:
            logger.warning("Failed to remove partial image", extra={"file": name})
