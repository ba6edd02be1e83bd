"""
Executes a single queued job by expanding it into tracks and acquiring each one.
"""

import logging

from qobuz_server.api.client import QobuzCatalogClient
from qobuz_server.exceptions import CatalogError, NotStreamableError
from qobuz_server.models.catalog import Album, Track
from qobuz_server.models.job import Job, JobKind
from qobuz_server.utils.formatting import format_album_artists, get_track_title

from .track_processor import TrackProcessor

log = logging.getLogger(__name__)


class JobRunner:
    """Turns a track or album job into sequential pipeline runs."""

    def __init__(self, api_client: QobuzCatalogClient, track_processor: TrackProcessor):
        self.api_client = api_client
        self.track_processor = track_processor

    async def run(self, job: Job) -> None:
        """
        Runs a job to completion. Any exception means the job failed.
        """
        if job.kind is JobKind.TRACK:
            await self._run_track(job.subject)
        else:
            await self._run_album(job.subject)

    async def _run_track(self, track: Track) -> None:
        if not track.album:
            raise CatalogError(
                f"Track '{get_track_title(track)}' has no album reference."
            )
        # Full album info is needed for shared tags
        album = await self.api_client.fetch_album_metadata(str(track.album.id))
        log.info(
            f"[bold cyan]▶ From Album:[/] {format_album_artists(album)} - "
            f"{get_track_title(album)}"
        )
        await self.track_processor.acquire_and_store(track, album)

    async def _run_album(self, subject: Album) -> None:
        album = await self.api_client.fetch_album_metadata(str(subject.id))
        if not album.track_items:
            raise CatalogError(
                f"Could not retrieve track list for album: {get_track_title(subject)}"
            )

        log.info(
            f"[bold cyan]▶ Album:[/] {format_album_artists(album)} - "
            f"{get_track_title(album)} ({len(album.track_items)} tracks)"
        )
        for track in album.track_items:
            if not track.streamable:
                log.info(
                    f"  [yellow]○ Skipping non-streamable track:[/]"
                    f" {get_track_title(track)}"
                )
                continue
            try:
                await self.track_processor.acquire_and_store(
                    track.model_copy(update={"album": album}), album
                )
            except NotStreamableError as e:
                log.info(f"  [yellow]○ Skipping {get_track_title(track)}:[/] {e}")
