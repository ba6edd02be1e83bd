"""
Utilities for building the on-disk layout of acquired albums.
"""

import re
from pathlib import Path

from pathvalidate import sanitize_filename

from qobuz_server.models.catalog import Album, Track
from qobuz_server.utils.formatting import (
    format_album_artists,
    get_release_year,
    get_track_title,
)

COVER_FILENAME = "cover.jpg"
OUTPUT_EXTENSION = "flac"


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def album_directory_name(album: Album) -> str:
    """
    Builds the sanitized '{album artist} - {album title} [{year}]' folder name.
    """
    name = (
        f"{format_album_artists(album)} - {get_track_title(album)}"
        f" [{get_release_year(album)}]"
    )
    return sanitize_filename(name, platform="auto").strip() or "Unknown Album"


def album_directory(root: Path, album: Album) -> Path:
    return root / album_directory_name(album)


def track_filename(track: Track) -> str:
    """Builds the zero-padded '{NN}. {title}.flac' file name for a track."""
    name = f"{track.track_number:02}. {get_track_title(track)}.{OUTPUT_EXTENSION}"
    return sanitize_filename(name, platform="auto")


def original_cover_url(album: Album) -> str | None:
    """
    Returns the original-resolution variant of the album's large cover URL.
    """
    if not album.image or not album.image.large:
        return None
    return re.sub(r"_\d+\.jpg$", "_org.jpg", album.image.large)
