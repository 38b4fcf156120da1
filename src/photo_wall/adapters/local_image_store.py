"""Filesystem-backed image file store."""

from dataclasses import dataclass
from pathlib import Path

from photo_wall.services.normalizer import ImageStore


@dataclass
class LocalImageStore(ImageStore):
    """Image store that keeps files under a single base directory."""

    base_dir: Path
    url_prefix: str = "/uploads"

    @classmethod
    def create(cls, base_dir: str | Path, url_prefix: str) -> "LocalImageStore":
        """Create a store and make sure its directory exists."""
        store = cls(base_dir=Path(base_dir), url_prefix=url_prefix.rstrip("/"))
        store.ensure_directory()
        return store

    def ensure_directory(self) -> None:
        """Create the base directory if it does not exist yet."""
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def write(self, name: str, data: bytes) -> None:
        """Write image bytes under the given file name."""
        self.ensure_directory()
        self._path_for(name).write_bytes(data)

    def delete(self, name: str) -> None:
        """Delete an image file; a missing file is not an error."""
        self._path_for(name).unlink(missing_ok=True)

    def exists(self, name: str) -> bool:
        """Return true when the named file is present."""
        return self._path_for(name).is_file()

    def url_for(self, name: str) -> str:
        """Return the public reference for a stored image."""
        return f"{self.url_prefix}/{name}"

    def _path_for(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            raise ValueError(f"Invalid image file name: {name!r}")
        return self.base_dir / name
