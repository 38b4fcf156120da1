"""JSON file snapshot store for the photo ledger."""

import json
import os
from dataclasses import dataclass
from pathlib import Path

from photo_wall.services.persistence import SnapshotStore


@dataclass
class JsonSnapshotStore(SnapshotStore):
    """Stores the ledger snapshot as a single JSON document."""

    path: Path

    @classmethod
    def create(cls, path: str | Path) -> "JsonSnapshotStore":
        """Create a snapshot store for the given file path."""
        return cls(path=Path(path))

    def load(self) -> object | None:
        """Return the parsed snapshot, or None when no snapshot exists."""
        if not self.path.exists():
            return None
        return json.loads(self.path.read_text(encoding="utf-8"))

    def save(self, entries: list[dict[str, object]]) -> None:
        """Replace the snapshot file with the given entries."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        tmp_path.write_text(json.dumps(entries, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)
