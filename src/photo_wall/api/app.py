"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from photo_wall.app_logging import configure_logging
from photo_wall.config import parse_cors_origins
from photo_wall.containers import AppContainer
from photo_wall.domain.errors import ImageStorageError, ShuttingDownError
from photo_wall.domain.results import Accepted, NotFound, Rejected
from photo_wall.services.broadcast import ViewerConnection

RETRY_AFTER_SECONDS = "1"


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        loaded = await state_container.photo_service.start()
        logger.info("Photo wall ready with %d photos", loaded)
        yield
        await state_container.shutdown_coordinator.shutdown()
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container
    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_cors_origins(container.settings.cors_allow_origins),
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/api/photos")
    async def list_photos(request: Request) -> list[dict[str, object]]:
        """Return the current wall, newest first."""
        state_container: AppContainer = request.app.state.container
        photos = state_container.photo_service.list_photos()
        return [photo.to_payload() for photo in photos]

    @app.post("/api/photos")
    async def submit_photo(request: Request) -> JSONResponse:
        """Accept a photo submission and broadcast it to viewers."""
        state_container: AppContainer = request.app.state.container
        try:
            payload = await request.json()
        except ValueError:
            return _error(status.HTTP_400_BAD_REQUEST, "Invalid photo data")
        try:
            result = await state_container.photo_service.submit_photo(payload)
        except ImageStorageError:
            logger.exception("Failed to store submitted image")
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to store image"
            )
        except Exception:
            logger.exception("Upload error")
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
            )

        if isinstance(result, Accepted):
            return JSONResponse(
                status_code=status.HTTP_201_CREATED,
                content={"success": True, "photo": result.photo.to_payload()},
            )
        if isinstance(result, Rejected):
            return _error(status.HTTP_400_BAD_REQUEST, result.reason)
        return _busy()

    @app.delete("/api/photos/{photo_id}")
    async def delete_photo(photo_id: str, request: Request) -> JSONResponse:
        """Delete a photo by id and broadcast the removal."""
        state_container: AppContainer = request.app.state.container
        try:
            result = await state_container.photo_service.delete_photo(photo_id)
        except ShuttingDownError:
            return _busy()
        except Exception:
            logger.exception("Delete error", extra={"photo_id": photo_id})
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
            )
        if isinstance(result, NotFound):
            return _error(status.HTTP_404_NOT_FOUND, "Photo not found")
        return JSONResponse(content={"success": True})

    @app.websocket("/ws")
    async def viewer_stream(websocket: WebSocket) -> None:
        """Push new_photo / delete_photo events to a display."""
        state_container: AppContainer = websocket.app.state.container
        broadcast = state_container.broadcast
        await websocket.accept()
        viewer = broadcast.connect_viewer(state_container.settings.viewer_queue_size)
        tasks = {
            asyncio.create_task(_pump_events(websocket, viewer)),
            asyncio.create_task(_wait_for_disconnect(websocket)),
        }
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            broadcast.disconnect_viewer(viewer)
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    app.mount(
        container.settings.image_url_prefix,
        StaticFiles(directory=container.settings.upload_dir, check_dir=False),
        name="uploads",
    )

    return app


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _busy() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "Server busy, retry later"},
        headers={"Retry-After": RETRY_AFTER_SECONDS},
    )


async def _pump_events(websocket: WebSocket, viewer: ViewerConnection) -> None:
    """Forward queued events until the channel ends the stream."""
    while True:
        event = await viewer.next_event()
        if event is None:
            await websocket.close(code=1001)
            return
        await websocket.send_json(event)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """Consume client frames until the viewer goes away."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
