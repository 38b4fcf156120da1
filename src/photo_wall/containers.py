"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from photo_wall.adapters.json_snapshot_store import JsonSnapshotStore
from photo_wall.adapters.local_image_store import LocalImageStore
from photo_wall.adapters.openai_moderation_client import OpenAIModerationClient
from photo_wall.config import Settings
from photo_wall.services.admission import AdmissionController
from photo_wall.services.broadcast import BroadcastChannel
from photo_wall.services.ledger import PhotoLedger
from photo_wall.services.moderation import ModerationPolicy
from photo_wall.services.normalizer import ImageStore, RecordNormalizer
from photo_wall.services.persistence import PersistenceCoordinator
from photo_wall.services.photos import PhotoWallService
from photo_wall.services.shutdown import ShutdownCoordinator


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    image_store: ImageStore
    broadcast: BroadcastChannel
    shutdown_coordinator: ShutdownCoordinator
    photo_service: PhotoWallService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    image_store = LocalImageStore.create(
        resolved_settings.upload_dir, resolved_settings.image_url_prefix
    )
    snapshot_store = (
        JsonSnapshotStore.create(resolved_settings.data_file)
        if resolved_settings.persistence_enabled
        else None
    )
    ledger = PhotoLedger(
        image_store=image_store, max_photos=resolved_settings.max_photos
    )
    persistence = PersistenceCoordinator(
        ledger=ledger,
        snapshot_store=snapshot_store,
        debounce_seconds=resolved_settings.persist_debounce_seconds,
    )
    broadcast = BroadcastChannel()
    shutdown_coordinator = ShutdownCoordinator(
        persistence=persistence, broadcast=broadcast
    )
    moderation_client = (
        OpenAIModerationClient.create(
            api_key=resolved_settings.openai_api_key,
            model=resolved_settings.openai_moderation_model,
        )
        if resolved_settings.openai_api_key
        else None
    )
    photo_service = PhotoWallService(
        ledger=ledger,
        normalizer=RecordNormalizer(image_store),
        admission=AdmissionController(
            max_in_flight=resolved_settings.max_concurrent_uploads,
            max_image_bytes=resolved_settings.max_image_bytes,
        ),
        persistence=persistence,
        broadcast=broadcast,
        shutdown=shutdown_coordinator,
        moderation=ModerationPolicy(
            moderator=moderation_client,
            fail_open=resolved_settings.moderation_fail_open,
        ),
    )

    async def close_resources() -> None:
        if moderation_client is not None:
            await moderation_client.close()

    return AppContainer(
        settings=resolved_settings,
        image_store=image_store,
        broadcast=broadcast,
        shutdown_coordinator=shutdown_coordinator,
        photo_service=photo_service,
        close_resources=close_resources,
    )
