"""Caption moderation policy consulted before admission."""

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


class CaptionModerator(Protocol):
    """Interface for an external caption moderation check."""

    async def is_allowed(self, caption: str) -> bool:
        """Return true when the caption may be shown on the wall."""


@dataclass
class ModerationPolicy:
    """Applies an optional moderator with an explicit failure policy.

    Without a moderator every caption is accepted. When the moderator call
    fails, ``fail_open`` decides whether the caption is accepted.
    """

    moderator: CaptionModerator | None = None
    fail_open: bool = True

    async def allows(self, caption: str) -> bool:
        """Return true when the caption passes moderation."""
        if self.moderator is None or not caption.strip():
            return True
        try:
            return await self.moderator.is_allowed(caption)
        except Exception:
            logger.exception(
                "Caption moderation failed", extra={"fail_open": self.fail_open}
            )
            return self.fail_open
