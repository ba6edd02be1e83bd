"""
HTTP boundary for the acquisition server, built on aiohttp.web.

This module is the composition root: it builds the catalog client, the
acquisition pipeline and the single job queue, and injects them into the
route handlers.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import aiohttp
from aiohttp import web

from qobuz_server.api.client import QobuzCatalogClient
from qobuz_server.core import JobQueue, JobRunner, TrackProcessor
from qobuz_server.exceptions import CatalogError, QobuzServerError
from qobuz_server.media import Downloader, Transcoder
from qobuz_server.models.catalog import parse_catalog_item
from qobuz_server.models.config import ServerConfig
from qobuz_server.utils.formatting import get_track_title

log = logging.getLogger(__name__)


@dataclass
class Services:
    """Long-lived objects shared by every request."""

    api_client: QobuzCatalogClient
    queue: JobQueue
    downloader: Optional[Downloader] = None

    async def close(self) -> None:
        await self.queue.close()
        if self.downloader:
            await self.downloader.close()
        await self.api_client.close()


SERVICES_KEY = web.AppKey("services", Services)


def build_services(config: ServerConfig) -> Services:
    """Wires the catalog client, acquisition pipeline and job queue together."""
    api_client = QobuzCatalogClient(
        config.app_id,
        config.app_secret,
        config.auth_tokens,
        api_base=config.api_base,
        validation_window=config.token_validation_window,
        probe_timeout=config.probe_timeout,
    )
    downloader = Downloader()
    track_processor = TrackProcessor(
        api_client,
        downloader,
        Transcoder(config.ffmpeg_path),
        Path(config.download_path),
        verify_output=config.verify_output,
    )
    queue = JobQueue(JobRunner(api_client, track_processor))
    return Services(api_client=api_client, queue=queue, downloader=downloader)


def setup_services(app: web.Application, services: Services) -> Services:
    """
    Attaches services to the application once.

    Calling it again on the same application returns the services already
    attached, so running work is never duplicated or reset.
    """
    if SERVICES_KEY in app:
        return app[SERVICES_KEY]
    app[SERVICES_KEY] = services

    async def _close_services(app: web.Application) -> None:
        await app[SERVICES_KEY].close()

    app.on_cleanup.append(_close_services)
    return services


def _error_response(message: Any, status: int = 400) -> web.Response:
    return web.json_response({"success": False, "error": message}, status=status)


async def enqueue_download(request: web.Request) -> web.Response:
    """POST /api/server-download: validate a catalog item and queue it."""
    try:
        body = await request.json()
    except ValueError:
        return web.json_response(
            {"success": False, "message": "Request body must be valid JSON."},
            status=400,
        )

    if not isinstance(body, dict) or "item" not in body:
        return web.json_response(
            {"success": False, "message": "Request body must contain an 'item'."},
            status=400,
        )

    try:
        item = parse_catalog_item(body["item"])
    except CatalogError as e:
        return web.json_response({"success": False, "message": str(e)}, status=400)

    if item.kind == "artist":
        return web.json_response(
            {
                "success": False,
                "message": "Cannot download an artist directly. "
                "Please download their albums individually.",
            },
            status=400,
        )

    queue = request.app[SERVICES_KEY].queue
    title = get_track_title(item)
    if queue.enqueue(item) is None:
        return web.json_response(
            {"success": True, "message": f"'{title}' is already queued."}
        )
    return web.json_response(
        {"success": True, "message": f"Queued '{title}' for download."}
    )


async def queue_status(request: web.Request) -> web.Response:
    """GET /api/queue-status: the current and pending jobs."""
    snapshot = request.app[SERVICES_KEY].queue.status()
    return web.json_response(snapshot.to_dict())


async def _pass_through(
    call: Callable[[], Awaitable[Any]], description: str
) -> web.Response:
    """Runs a browse call and wraps the result in the {success, data} envelope."""
    try:
        data = await call()
    except (
        QobuzServerError,
        aiohttp.ClientError,
        asyncio.TimeoutError,
        ValueError,
    ) as e:
        message = str(e) or f"{description} failed: {type(e).__name__}"
        log.warning(
            f"[yellow]{description} failed ({type(e).__name__}): {e}[/yellow]"
        )
        return _error_response(message)
    return web.json_response({"success": True, "data": data})


def _int_param(request: web.Request, name: str, default: int) -> Optional[int]:
    """Reads an integer query parameter, or None when it is not a number."""
    try:
        return int(request.query.get(name, default))
    except ValueError:
        return None


async def search(request: web.Request) -> web.Response:
    """GET /api/get-music?q=&offset=: catalog search."""
    query = request.query.get("q", "").strip()
    if not query:
        return _error_response("Query parameter 'q' is required.")
    offset = _int_param(request, "offset", 0)
    if offset is None:
        return _error_response("Query parameter 'offset' must be an integer.")
    client = request.app[SERVICES_KEY].api_client
    return await _pass_through(
        lambda: client.search(query, limit=10, offset=offset), "Search"
    )


async def get_album(request: web.Request) -> web.Response:
    """GET /api/get-album?album_id=: full album metadata with its tracks."""
    album_id = request.query.get("album_id", "").strip()
    if not album_id:
        return _error_response("Query parameter 'album_id' is required.")
    client = request.app[SERVICES_KEY].api_client

    async def _fetch() -> Any:
        album = await client.fetch_album_metadata(album_id)
        return album.model_dump(mode="json", exclude_none=True)

    return await _pass_through(_fetch, "Album lookup")


async def get_releases(request: web.Request) -> web.Response:
    """GET /api/get-releases?artist_id=&release_type=&offset=: artist releases."""
    artist_id = request.query.get("artist_id", "").strip()
    if not artist_id:
        return _error_response("Query parameter 'artist_id' is required.")
    release_type = request.query.get("release_type", "album")
    offset = _int_param(request, "offset", 0)
    if offset is None:
        return _error_response("Query parameter 'offset' must be an integer.")
    client = request.app[SERVICES_KEY].api_client
    return await _pass_through(
        lambda: client.fetch_artist_releases(
            artist_id, release_type=release_type, offset=offset
        ),
        "Release listing",
    )


async def get_artist(request: web.Request) -> web.Response:
    """GET /api/get-artist?artist_id=: artist page."""
    artist_id = request.query.get("artist_id", "").strip()
    if not artist_id:
        return _error_response("Query parameter 'artist_id' is required.")
    client = request.app[SERVICES_KEY].api_client
    return await _pass_through(
        lambda: client.fetch_artist_page(artist_id), "Artist lookup"
    )


def create_app(
    config: Optional[ServerConfig] = None, services: Optional[Services] = None
) -> web.Application:
    """
    Builds the aiohttp application.

    Either a validated config (services are built from it) or ready-made
    services must be supplied.
    """
    if services is None:
        if config is None:
            raise ValueError("create_app needs a config or prebuilt services.")
        services = build_services(config)

    app = web.Application()
    setup_services(app, services)
    app.router.add_post("/api/server-download", enqueue_download)
    app.router.add_get("/api/queue-status", queue_status)
    app.router.add_get("/api/get-music", search)
    app.router.add_get("/api/get-album", get_album)
    app.router.add_get("/api/get-releases", get_releases)
    app.router.add_get("/api/get-artist", get_artist)
    return app
