"""Outcomes of the photo wall boundary operations."""

from dataclasses import dataclass

from photo_wall.domain.photos import PublicPhotoView


@dataclass(frozen=True)
class Accepted:
    """Submission stored and broadcast."""

    photo: PublicPhotoView


@dataclass(frozen=True)
class Rejected:
    """Submission refused permanently for this input."""

    reason: str


@dataclass(frozen=True)
class Busy:
    """Submission refused for now; the caller should retry later."""


@dataclass(frozen=True)
class Deleted:
    """Record removed and broadcast."""

    photo_id: str


@dataclass(frozen=True)
class NotFound:
    """No live record with the requested id."""

    photo_id: str


SubmitResult = Accepted | Rejected | Busy
DeleteResult = Deleted | NotFound
