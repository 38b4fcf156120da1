"""Debounced snapshot persistence for the photo ledger."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from photo_wall.services.ledger import PhotoLedger
from photo_wall.services.normalizer import RecordNormalizer, parse_entry

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    """Durable storage for the serialized ledger."""

    def load(self) -> object | None:
        """Return the parsed snapshot, or None when there is none."""

    def save(self, entries: list[dict[str, object]]) -> None:
        """Replace the stored snapshot with the given entries."""


@dataclass
class PersistenceCoordinator:
    """Loads the ledger at startup and writes coalesced snapshots.

    With no snapshot store the coordinator is disabled and never touches
    disk. Otherwise each mutation marks a save as pending; the first one
    arms a single timer and every mutation landing before it fires is
    covered by the same write.
    """

    ledger: PhotoLedger
    snapshot_store: SnapshotStore | None
    debounce_seconds: float
    write_count: int = field(default=0, init=False)
    _pending: bool = field(default=False, init=False)
    _timer: asyncio.TimerHandle | None = field(default=None, init=False)
    _write_task: asyncio.Task[None] | None = field(default=None, init=False)

    @property
    def enabled(self) -> bool:
        """Return true when snapshots are read from and written to disk."""
        return self.snapshot_store is not None

    @property
    def pending(self) -> bool:
        """Return true when a mutation has not been written yet."""
        return self._pending

    async def load(self, normalizer: RecordNormalizer) -> int:
        """Fill the ledger from the stored snapshot and return its size."""
        if self.snapshot_store is None:
            return 0
        try:
            raw = await asyncio.to_thread(self.snapshot_store.load)
        except (OSError, ValueError):
            logger.warning("Snapshot unreadable, starting with an empty wall")
            raw = None
        if raw is None:
            logger.info("No existing photos found, starting fresh")
            self.ledger.restore([])
            return 0
        if not isinstance(raw, list):
            logger.warning("Snapshot is not a list, starting with an empty wall")
            self.ledger.restore([])
            return 0

        records = []
        seen: set[str] = set()
        migrated = 0
        for entry in raw:
            parsed = parse_entry(entry, normalizer.clock())
            if parsed is None or parsed.id in seen:
                continue
            seen.add(parsed.id)
            records.append(await normalizer.from_parsed(parsed, best_effort=True))
            if parsed.inline_image is not None:
                migrated += 1

        evicted = self.ledger.restore(records)
        logger.info(
            "Loaded %d photos (%d migrated, %d skipped, %d evicted)",
            len(self.ledger),
            migrated,
            len(raw) - len(records),
            len(evicted),
        )
        if migrated or evicted or len(records) != len(raw):
            self.mark_dirty()
        return len(self.ledger)

    def mark_dirty(self) -> None:
        """Record a mutation and arm the save timer if it is idle."""
        if self.snapshot_store is None:
            return
        self._pending = True
        if self._timer is None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self.debounce_seconds, self._on_timer)

    async def flush(self) -> None:
        """Cancel the timer and write immediately if a save is pending."""
        if self.snapshot_store is None:
            return
        self._cancel_timer()
        while self._write_task is not None:
            task = self._write_task
            await task
            self._cancel_timer()
            if self._write_task is task:
                self._write_task = None
        if self._pending:
            self._pending = False
            self._save(self._serialize())

    def _on_timer(self) -> None:
        self._timer = None
        if not self._pending:
            return
        self._pending = False
        entries = self._serialize()
        previous = self._write_task
        self._write_task = asyncio.get_running_loop().create_task(
            self._write(entries, previous)
        )

    async def _write(
        self, entries: list[dict[str, object]], previous: asyncio.Task[None] | None
    ) -> None:
        if previous is not None:
            await previous
        await asyncio.to_thread(self._save, entries)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _serialize(self) -> list[dict[str, object]]:
        return [record.to_snapshot() for record in self.ledger.records()]

    def _save(self, entries: list[dict[str, object]]) -> None:
        if self.snapshot_store is None:
            return
        self.write_count += 1
        try:
            self.snapshot_store.save(entries)
        except Exception:
            logger.exception("Failed to save photos", extra={"count": len(entries)})
