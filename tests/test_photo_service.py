"""Tests for the photo wall ingestion and deletion pipeline."""

import asyncio
import threading
from dataclasses import dataclass, field

import pytest

from photo_wall.domain.errors import ImageStorageError, ShuttingDownError
from photo_wall.domain.results import Accepted, Busy, Deleted, NotFound, Rejected
from photo_wall.services.moderation import ModerationPolicy
from photo_wall.services.normalizer import storage_name_for
from tests.conftest import (
    FakeModerator,
    InMemoryImageStore,
    RecordingSnapshotStore,
    jpeg_data_url,
    make_service,
)

MB = 1024 * 1024


def _events(service) -> dict[str, list[str]]:
    events: dict[str, list[str]] = {"created": [], "deleted": []}
    service.on_photo_created(lambda photo: events["created"].append(photo.id))
    service.on_photo_deleted(events["deleted"].append)
    return events


def test_submit_oversize_then_delete_scenario(image_store: InMemoryImageStore) -> None:
    service = make_service(image_store=image_store, max_image_bytes=3 * MB)
    events = _events(service)

    async def scenario() -> None:
        accepted = await service.submit_photo(
            {"id": "a", "caption": "hi", "image": jpeg_data_url(200 * 1024)}
        )
        assert isinstance(accepted, Accepted)
        assert accepted.photo.caption == "hi"
        assert storage_name_for("a", "jpg") in image_store.files

        oversized = await service.submit_photo(
            {"id": "big", "image": jpeg_data_url(3 * MB + 1)}
        )
        assert isinstance(oversized, Rejected)
        assert "exceeds limit" in oversized.reason

        assert await service.delete_photo("a") == Deleted("a")

    asyncio.run(scenario())

    assert [photo.id for photo in service.list_photos()] == []
    assert image_store.files == {}
    assert events == {"created": ["a"], "deleted": ["a"]}


def test_retention_bound_evicts_silently(image_store: InMemoryImageStore) -> None:
    service = make_service(image_store=image_store, max_photos=2)
    events = _events(service)

    async def scenario() -> None:
        for photo_id in ("a", "b", "c"):
            result = await service.submit_photo(
                {"id": photo_id, "image": jpeg_data_url()}
            )
            assert isinstance(result, Accepted)

    asyncio.run(scenario())

    assert [photo.id for photo in service.list_photos()] == ["c", "b"]
    assert storage_name_for("a", "jpg") not in image_store.files
    assert image_store.deleted == [storage_name_for("a", "jpg")]
    assert events == {"created": ["a", "b", "c"], "deleted": []}
    assert len(service.ledger) <= 2


def test_concurrent_submissions_beyond_limit_are_busy() -> None:
    service = make_service(max_in_flight=1)

    async def scenario() -> list[object]:
        return await asyncio.gather(
            service.submit_photo({"id": "first", "image": jpeg_data_url()}),
            service.submit_photo({"id": "second", "image": jpeg_data_url()}),
        )

    first, second = asyncio.run(scenario())

    assert isinstance(first, Accepted)
    assert isinstance(second, Busy)
    assert service.admission.in_flight == 0
    assert [photo.id for photo in service.list_photos()] == ["first"]


def test_permit_released_on_every_outcome() -> None:
    store = InMemoryImageStore()
    service = make_service(image_store=store, max_in_flight=1)

    async def scenario() -> None:
        assert isinstance(await service.submit_photo({"id": "ok"}), Accepted)
        assert service.admission.in_flight == 0
        assert isinstance(await service.submit_photo({"caption": "no id"}), Rejected)
        assert service.admission.in_flight == 0
        store.fail_writes = True
        with pytest.raises(ImageStorageError):
            await service.submit_photo({"id": "x", "image": jpeg_data_url()})
        assert service.admission.in_flight == 0

    asyncio.run(scenario())

    assert [photo.id for photo in service.list_photos()] == ["ok"]


def test_failed_primary_write_is_not_broadcast() -> None:
    service = make_service(image_store=InMemoryImageStore(fail_writes=True))
    events = _events(service)

    with pytest.raises(ImageStorageError):
        asyncio.run(service.submit_photo({"id": "x", "image": jpeg_data_url()}))

    assert events == {"created": [], "deleted": []}
    assert service.list_photos() == []


def test_duplicate_id_is_rejected() -> None:
    service = make_service()

    async def scenario() -> object:
        await service.submit_photo({"id": "a", "caption": "first"})
        return await service.submit_photo({"id": "a", "caption": "second"})

    result = asyncio.run(scenario())

    assert result == Rejected("duplicate id")
    assert [photo.caption for photo in service.list_photos()] == ["first"]


def test_concurrent_duplicate_ids_write_one_file(
    image_store: InMemoryImageStore,
) -> None:
    service = make_service(image_store=image_store)

    async def scenario() -> list[object]:
        return await asyncio.gather(
            service.submit_photo({"id": "a", "image": jpeg_data_url(100)}),
            service.submit_photo({"id": "a", "image": jpeg_data_url(200)}),
        )

    first, second = asyncio.run(scenario())

    assert isinstance(first, Accepted)
    assert second == Rejected("duplicate id")
    assert len(image_store.files[storage_name_for("a", "jpg")]) == 100


def test_submission_cannot_claim_existing_file(
    image_store: InMemoryImageStore,
) -> None:
    service = make_service(image_store=image_store)

    async def scenario() -> None:
        await service.submit_photo({"id": "a", "image": jpeg_data_url()})
        await service.submit_photo(
            {"id": "b", "storageFile": storage_name_for("a", "jpg")}
        )

    asyncio.run(scenario())

    photos = {photo.id: photo for photo in service.list_photos()}
    assert photos["b"].image_url is None


def test_delete_unknown_id_is_not_found() -> None:
    service = make_service()
    events = _events(service)

    assert asyncio.run(service.delete_photo("missing")) == NotFound("missing")
    assert events["deleted"] == []


def test_mutations_schedule_persistence() -> None:
    snapshot_store = RecordingSnapshotStore()
    service = make_service(snapshot_store=snapshot_store)

    async def scenario() -> None:
        await service.start()
        await service.submit_photo({"id": "a"})
        await service.submit_photo({"id": "b"})
        await service.delete_photo("a")
        await asyncio.sleep(0.2)
        await service.persistence.flush()

    asyncio.run(scenario())

    assert len(snapshot_store.saves) == 1
    assert [entry["id"] for entry in snapshot_store.saves[0]] == ["b"]


def test_moderation_rejects_flagged_caption() -> None:
    moderator = FakeModerator(blocked={"rude"})
    service = make_service(moderation=ModerationPolicy(moderator=moderator))

    async def scenario() -> tuple[object, object]:
        return (
            await service.submit_photo({"id": "a", "caption": "rude"}),
            await service.submit_photo({"id": "b", "caption": "nice"}),
        )

    rejected, accepted = asyncio.run(scenario())

    assert rejected == Rejected("caption rejected by moderation")
    assert isinstance(accepted, Accepted)


@pytest.mark.parametrize(("fail_open", "accepted"), [(True, True), (False, False)])
def test_moderation_failure_follows_policy(fail_open: bool, accepted: bool) -> None:
    moderator = FakeModerator(error=RuntimeError("moderation offline"))
    service = make_service(
        moderation=ModerationPolicy(moderator=moderator, fail_open=fail_open)
    )

    result = asyncio.run(service.submit_photo({"id": "a", "caption": "hello"}))

    assert isinstance(result, Accepted) is accepted


def test_mutations_refused_after_shutdown() -> None:
    service = make_service()

    async def scenario() -> object:
        await service.submit_photo({"id": "a"})
        await service.shutdown.shutdown()
        with pytest.raises(ShuttingDownError):
            await service.delete_photo("a")
        return await service.submit_photo({"id": "b"})

    assert isinstance(asyncio.run(scenario()), Busy)
    assert [photo.id for photo in service.list_photos()] == ["a"]
    assert service.admission.in_flight == 0


@dataclass
class GatedImageStore(InMemoryImageStore):
    """Image store whose writes block until the test releases them."""

    started: threading.Event = field(default_factory=threading.Event)
    release: threading.Event = field(default_factory=threading.Event)

    def write(self, name: str, data: bytes) -> None:
        self.started.set()
        self.release.wait(timeout=5)
        super().write(name, data)


def test_shutdown_during_image_write_discards_file() -> None:
    store = GatedImageStore()
    service = make_service(image_store=store)
    events = _events(service)

    async def scenario() -> object:
        submission = asyncio.create_task(
            service.submit_photo({"id": "a", "image": jpeg_data_url()})
        )
        assert await asyncio.to_thread(store.started.wait, 5)
        await service.shutdown.shutdown()
        store.release.set()
        return await submission

    assert asyncio.run(scenario()) == Busy()
    assert store.files == {}
    assert store.deleted == [storage_name_for("a", "jpg")]
    assert events == {"created": [], "deleted": []}
    assert service.list_photos() == []
    assert service.admission.in_flight == 0


def test_failure_after_image_write_discards_file(
    image_store: InMemoryImageStore, monkeypatch
) -> None:
    service = make_service(image_store=image_store)
    events = _events(service)

    def broken_insert(record) -> list:  # type: ignore[no-untyped-def]
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(service.ledger, "insert", broken_insert)

    with pytest.raises(RuntimeError):
        asyncio.run(service.submit_photo({"id": "a", "image": jpeg_data_url()}))

    assert image_store.files == {}
    assert image_store.deleted == [storage_name_for("a", "jpg")]
    assert events == {"created": [], "deleted": []}
    assert service.list_photos() == []
    assert service.admission.in_flight == 0
