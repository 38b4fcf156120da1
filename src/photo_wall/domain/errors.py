"""Error taxonomy for the photo wall core."""


class PhotoWallError(Exception):
    """Base class for photo wall errors."""


class AdmissionBusyError(PhotoWallError):
    """Raised when the ingestion concurrency limit is reached."""


class PhotoValidationError(PhotoWallError):
    """Raised when a submission payload is malformed or too large."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class DuplicatePhotoError(PhotoWallError):
    """Raised when a record id is already present in the ledger."""

    def __init__(self, photo_id: str) -> None:
        super().__init__(f"Photo {photo_id!r} already exists")
        self.photo_id = photo_id


class ImageStorageError(PhotoWallError):
    """Raised when an accepted image cannot be written to storage."""


class ShuttingDownError(PhotoWallError):
    """Raised when a mutation arrives after shutdown has begun."""
