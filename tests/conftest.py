"""Shared test fixtures."""

import base64
import copy
from dataclasses import dataclass, field

import pytest

from photo_wall.config import Settings
from photo_wall.containers import AppContainer, build_container
from photo_wall.services.admission import AdmissionController
from photo_wall.services.broadcast import BroadcastChannel
from photo_wall.services.ledger import PhotoLedger
from photo_wall.services.moderation import CaptionModerator, ModerationPolicy
from photo_wall.services.normalizer import ImageStore, RecordNormalizer
from photo_wall.services.persistence import PersistenceCoordinator, SnapshotStore
from photo_wall.services.photos import PhotoWallService
from photo_wall.services.shutdown import ShutdownCoordinator

JPEG_MAGIC = b"\xff\xd8\xff\xe0"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def jpeg_data_url(size: int = 1024) -> str:
    """Return a JPEG-looking data URL whose payload is ``size`` bytes."""
    data = JPEG_MAGIC + b"\x00" * (size - len(JPEG_MAGIC))
    return "data:image/jpeg;base64," + base64.b64encode(data).decode("ascii")


def png_data_url(size: int = 256) -> str:
    """Return a PNG-looking data URL whose payload is ``size`` bytes."""
    data = PNG_MAGIC + b"\x00" * (size - len(PNG_MAGIC))
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


@dataclass
class InMemoryImageStore(ImageStore):
    """In-memory image store for tests."""

    files: dict[str, bytes] = field(default_factory=dict)
    deleted: list[str] = field(default_factory=list)
    fail_writes: bool = False

    def write(self, name: str, data: bytes) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.files[name] = data

    def delete(self, name: str) -> None:
        self.deleted.append(name)
        self.files.pop(name, None)

    def url_for(self, name: str) -> str:
        return f"/uploads/{name}"


@dataclass
class RecordingSnapshotStore(SnapshotStore):
    """Snapshot store that keeps every save in memory."""

    snapshot: object | None = None
    saves: list[list[dict[str, object]]] = field(default_factory=list)
    fail_saves: bool = False

    def load(self) -> object | None:
        return copy.deepcopy(self.snapshot)

    def save(self, entries: list[dict[str, object]]) -> None:
        if self.fail_saves:
            raise OSError("read-only file system")
        self.saves.append(entries)
        self.snapshot = copy.deepcopy(entries)


@dataclass
class FakeModerator(CaptionModerator):
    """Moderator that blocks listed captions or fails on demand."""

    blocked: set[str] = field(default_factory=set)
    error: Exception | None = None
    checked: list[str] = field(default_factory=list)

    async def is_allowed(self, caption: str) -> bool:
        self.checked.append(caption)
        if self.error is not None:
            raise self.error
        return caption not in self.blocked


def make_service(  # noqa: PLR0913
    *,
    image_store: ImageStore | None = None,
    snapshot_store: SnapshotStore | None = None,
    max_photos: int = 50,
    max_in_flight: int = 4,
    max_image_bytes: int = 3 * 1024 * 1024,
    debounce_seconds: float = 0.05,
    moderation: ModerationPolicy | None = None,
) -> PhotoWallService:
    """Build a photo wall service from in-memory collaborators."""
    store = image_store if image_store is not None else InMemoryImageStore()
    ledger = PhotoLedger(image_store=store, max_photos=max_photos)
    persistence = PersistenceCoordinator(
        ledger=ledger,
        snapshot_store=snapshot_store,
        debounce_seconds=debounce_seconds,
    )
    broadcast = BroadcastChannel()
    return PhotoWallService(
        ledger=ledger,
        normalizer=RecordNormalizer(store),
        admission=AdmissionController(
            max_in_flight=max_in_flight, max_image_bytes=max_image_bytes
        ),
        persistence=persistence,
        broadcast=broadcast,
        shutdown=ShutdownCoordinator(persistence=persistence, broadcast=broadcast),
        moderation=moderation or ModerationPolicy(),
    )


@pytest.fixture
def image_store() -> InMemoryImageStore:
    return InMemoryImageStore()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        upload_dir=str(tmp_path / "uploads"),
        data_file=str(tmp_path / "photos.json"),
        persist_debounce_seconds=0.05,
        max_photos=5,
        max_concurrent_uploads=2,
        max_image_bytes=64 * 1024,
        openai_api_key=None,
    )


@pytest.fixture
def container(settings: Settings) -> AppContainer:
    return build_container(settings)
