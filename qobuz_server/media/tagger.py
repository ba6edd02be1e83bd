"""
Builds the ffmpeg metadata set for a track from Qobuz catalog data.
"""

import logging
from typing import Dict, Optional

from qobuz_server.models.catalog import Album, Track
from qobuz_server.utils.formatting import (
    format_album_artists,
    format_track_artists,
    get_track_title,
)

log = logging.getLogger(__name__)

# --- Constants ---
COPYRIGHT, PHON_COPYRIGHT = "©", "℗"


def format_copyright(copyright_str: Optional[str]) -> Optional[str]:
    """Replaces the plain-text (P) and (C) markers with their symbols."""
    if not copyright_str:
        return None
    return copyright_str.replace("(P)", PHON_COPYRIGHT).replace("(C)", COPYRIGHT)


class Tagger:
    """Maps a track and its album onto ffmpeg's metadata keys."""

    def build_metadata(self, track: Track, album: Album) -> Dict[str, str]:
        """
        Gathers the tags written to the output file.

        Fields without a value are left out entirely rather than written empty.
        """
        track_total = len(album.track_items) or album.tracks_count or 0
        label = album.label.name if album.label else None
        if label is None and track.album and track.album.label:
            label = track.album.label.name

        tags: Dict[str, Optional[str]] = {
            "title": get_track_title(track),
            "artist": format_track_artists(track, album),
            "album_artist": format_album_artists(album),
            "album": get_track_title(album),
            "genre": album.genre.name if album.genre else None,
            "date": album.release_date_original,
            "track": f"{track.track_number}/{track_total}",
            "disc": f"{track.media_number}/{album.media_count or 1}",
            "copyright": format_copyright(track.copyright),
            "isrc": track.isrc,
            "label": label,
            "upc": album.upc,
        }
        return {key: str(value) for key, value in tags.items() if value}
