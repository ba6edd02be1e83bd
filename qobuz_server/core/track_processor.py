"""
Handles the acquisition of a single track, from URL resolution to a tagged
file on disk.
"""

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

import aiofiles
import aiohttp

from qobuz_server.api.client import QobuzCatalogClient, select_format
from qobuz_server.exceptions import AcquisitionError
from qobuz_server.media import Downloader, Tagger, Transcoder, verify_flac
from qobuz_server.models.catalog import Album, Track
from qobuz_server.models.config import get_quality_info
from qobuz_server.utils.formatting import get_track_title
from qobuz_server.utils.path import (
    COVER_FILENAME,
    album_directory,
    create_dir,
    original_cover_url,
    track_filename,
)

log = logging.getLogger(__name__)


class TrackProcessor:
    """
    Orchestrates the download, transcoding, tagging, and storage of a single track.
    """

    def __init__(
        self,
        api_client: QobuzCatalogClient,
        downloader: Downloader,
        transcoder: Transcoder,
        download_root: Path,
        tagger: Optional[Tagger] = None,
        verify_output: bool = True,
    ):
        self.api_client = api_client
        self.downloader = downloader
        self.transcoder = transcoder
        self.download_root = Path(download_root)
        self.tagger = tagger or Tagger()
        self.verify_output = verify_output

    async def acquire_and_store(self, track: Track, album: Album) -> Path:
        """
        Manages the complete lifecycle of acquiring and saving a track.

        Returns:
            The path of the written FLAC file.

        Raises:
            QobuzServerError: Any failure; network and filesystem errors are
                wrapped in AcquisitionError.
        """
        track_title = get_track_title(track)
        try:
            return await self._acquire(track, album)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AcquisitionError(
                f"Network error while fetching '{track_title}': {e}"
            ) from e
        except OSError as e:
            raise AcquisitionError(
                f"Filesystem error while saving '{track_title}': {e}"
            ) from e

    async def _acquire(self, track: Track, album: Album) -> Path:
        format_id = select_format(track)
        log.info(
            f"Requesting {get_quality_info(format_id)['short']} (format {format_id})"
            f" for '{get_track_title(track)}'"
        )

        location = await self.api_client.resolve_media_location(
            str(track.id), format_id, track_duration=track.duration or None
        )
        payload = await self.downloader.fetch_bytes(location["url"])

        final_dir = album_directory(self.download_root, album)
        final_cover_path = final_dir / COVER_FILENAME
        output_path = final_dir / track_filename(track)

        with tempfile.TemporaryDirectory(prefix="qobuz-server-") as temp_dir:
            work_dir = Path(temp_dir)
            input_path = work_dir / "input.flac"
            async with aiofiles.open(input_path, "wb") as f:
                await f.write(payload)

            cover_path = await self._stage_cover(album, work_dir, final_cover_path)

            create_dir(final_dir)
            if cover_path and not final_cover_path.exists():
                await asyncio.to_thread(shutil.copyfile, cover_path, final_cover_path)

            metadata = self.tagger.build_metadata(track, album)
            await self.transcoder.transcode(
                input_path, output_path, metadata, cover_path
            )

        if self.verify_output:
            await asyncio.to_thread(verify_flac, output_path)

        log.info(f"  [green]✓ Saved:[/] [dim]{output_path}[/dim]")
        return output_path

    async def _stage_cover(
        self, album: Album, work_dir: Path, final_cover_path: Path
    ) -> Optional[Path]:
        """
        Puts the album cover into the working directory for embedding.

        An already-written album cover is reused instead of being downloaded again.
        """
        if final_cover_path.is_file():
            return final_cover_path

        cover_url = original_cover_url(album)
        if not cover_url:
            return None

        log.debug(f"Downloading cover for album ID {album.id}")
        cover_data = await self.downloader.fetch_asset(cover_url)
        if not cover_data:
            return None

        cover_path = work_dir / COVER_FILENAME
        async with aiofiles.open(cover_path, "wb") as f:
            await f.write(cover_data)
        return cover_path
