"""ASGI entrypoint for the photo wall API."""

from photo_wall.api.app import create_app
from photo_wall.containers import build_container

app = create_app(build_container())
