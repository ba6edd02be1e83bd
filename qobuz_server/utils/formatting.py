"""
Helper functions for formatting catalog data into human-readable strings.
"""

from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from qobuz_server.models.catalog import Album, Artist, Track

ARTIST_SEPARATOR = "; "


def get_track_title(item: Union["Track", "Album", "Artist"]) -> str:
    """Constructs a full title including its version, if available."""
    title = getattr(item, "title", None) or getattr(item, "name", None) or ""
    version = getattr(item, "version", None)
    if version and version.lower() not in title.lower():
        title = f"{title} ({version})"
    return title.strip()


def format_album_artists(album: "Album", separator: str = ARTIST_SEPARATOR) -> str:
    """
    Joins the credited artists of an album.

    Falls back to the album's main artist, then to 'Various Artists'.
    """
    if names := [credit.name for credit in album.artists if credit.name]:
        return separator.join(names)
    if album.artist and album.artist.name:
        return album.artist.name
    return "Various Artists"


def format_track_artists(
    track: "Track", album: "Album", separator: str = ARTIST_SEPARATOR
) -> str:
    """Returns the track's performer, or the album's artists when it has none."""
    if track.performer and track.performer.name:
        return track.performer.name
    return format_album_artists(album, separator)


def get_release_year(album: "Album") -> str:
    """Extracts the four-digit release year from the original release date."""
    return str(album.release_date_original or "0")[:4]


def mask_token(token: str) -> str:
    """Shortens a credential for safe display in logs and tables."""
    return f"{token[:8]}..." if len(token) > 8 else "***"
