"""Domain models for photo wall records."""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class PhotoRecord:
    """Canonical server-owned photo record."""

    id: str
    caption: str
    timestamp: float
    rotation: float
    author: str | None = None
    storage_file: str | None = None

    def to_snapshot(self) -> dict[str, object]:
        """Return the persisted representation of the record."""
        return {
            "id": self.id,
            "caption": self.caption,
            "timestamp": self.timestamp,
            "rotation": self.rotation,
            "author": self.author,
            "storageFile": self.storage_file,
        }


@dataclass(frozen=True)
class InlineImage:
    """Decoded image payload carried inline by a submission."""

    mime_type: str
    data: bytes


@dataclass(frozen=True)
class ParsedEntry:
    """Inbound entry with defaults applied, before any file I/O."""

    id: str
    caption: str
    timestamp: float
    rotation: float
    author: str | None
    storage_file: str | None
    inline_image: InlineImage | None


class PublicPhotoView(BaseModel):
    """Photo representation sent to viewers and list queries."""

    model_config = ConfigDict(frozen=True)

    id: str
    caption: str
    timestamp: int | float
    rotation: int | float
    author: str | None = None
    image_url: str | None = Field(default=None, serialization_alias="imageUrl")

    def to_payload(self) -> dict[str, object]:
        """Return the JSON-ready payload with public field names."""
        return self.model_dump(by_alias=True)
