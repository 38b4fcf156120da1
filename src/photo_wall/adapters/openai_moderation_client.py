"""OpenAI moderation client for captions."""

from dataclasses import dataclass

from openai import AsyncOpenAI

from photo_wall.services.moderation import CaptionModerator


@dataclass
class OpenAIModerationClient(CaptionModerator):
    """Caption moderator backed by the OpenAI moderations endpoint."""

    client: AsyncOpenAI
    model: str = "omni-moderation-latest"

    @classmethod
    def create(cls, api_key: str, model: str) -> "OpenAIModerationClient":
        """Create an OpenAI moderation client."""
        return cls(client=AsyncOpenAI(api_key=api_key), model=model)

    async def is_allowed(self, caption: str) -> bool:
        """Return false when any moderation result is flagged."""
        response = await self.client.moderations.create(model=self.model, input=caption)
        if not response.results:
            raise RuntimeError("OpenAI returned no moderation results")
        return not any(result.flagged for result in response.results)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
