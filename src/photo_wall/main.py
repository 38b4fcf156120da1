"""Command-line entrypoint that serves the photo wall."""

import uvicorn

from photo_wall.api.app import create_app
from photo_wall.config import Settings
from photo_wall.containers import build_container


def main() -> None:
    """Run the API server; SIGINT/SIGTERM trigger an orderly shutdown."""
    settings = Settings()
    app = create_app(build_container(settings))
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="info")


if __name__ == "__main__":
    main()
