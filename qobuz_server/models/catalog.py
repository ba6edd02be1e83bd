"""
Pydantic models for Qobuz catalog items.

Raw catalog JSON is parsed once, here, into a tagged union of `Track`, `Album`
and `Artist`. Everything downstream dispatches on the `kind` field instead of
probing the payload for keys.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from qobuz_server.exceptions import CatalogError

ItemKind = Literal["track", "album", "artist"]


class _CatalogModel(BaseModel):
    class Config:
        extra = "ignore"
        frozen = True


class ArtistRef(_CatalogModel):
    id: Optional[Union[int, str]] = None
    name: Optional[str] = None


class ArtistCredit(_CatalogModel):
    id: Optional[Union[int, str]] = None
    name: str
    roles: list[str] = Field(default_factory=list)


class Image(_CatalogModel):
    small: Optional[str] = None
    thumbnail: Optional[str] = None
    large: Optional[str] = None
    back: Optional[str] = None


class Genre(_CatalogModel):
    id: Optional[Union[int, str]] = None
    name: Optional[str] = None


class Label(_CatalogModel):
    id: Optional[Union[int, str]] = None
    name: Optional[str] = None


class Track(_CatalogModel):
    """A single track, optionally carrying the album it belongs to."""

    kind: Literal["track"] = "track"
    id: Union[int, str]
    title: str = "Unknown Title"
    version: Optional[str] = None
    duration: int = 0
    track_number: int = 1
    media_number: int = 1
    isrc: Optional[str] = None
    copyright: Optional[str] = None
    maximum_bit_depth: Optional[int] = None
    maximum_sampling_rate: Optional[float] = None
    streamable: bool = True
    performer: Optional[ArtistRef] = None
    album: Optional["Album"] = None


class TrackPage(_CatalogModel):
    offset: int = 0
    limit: int = 0
    total: int = 0
    items: list[Track] = Field(default_factory=list)


class Album(_CatalogModel):
    """An album (release). `tracks` is only present on full album fetches."""

    kind: Literal["album"] = "album"
    id: Union[int, str]
    title: str = "Unknown Album"
    version: Optional[str] = None
    artist: Optional[ArtistRef] = None
    artists: list[ArtistCredit] = Field(default_factory=list)
    image: Optional[Image] = None
    genre: Optional[Genre] = None
    label: Optional[Label] = None
    release_date_original: Optional[str] = None
    upc: Optional[str] = None
    media_count: int = 1
    tracks_count: int = 0
    maximum_bit_depth: Optional[int] = None
    maximum_sampling_rate: Optional[float] = None
    streamable: bool = True
    tracks: Optional[TrackPage] = None

    @property
    def track_items(self) -> list[Track]:
        return self.tracks.items if self.tracks else []


class Artist(_CatalogModel):
    kind: Literal["artist"] = "artist"
    id: Union[int, str]
    name: str = "Unknown Artist"
    albums_count: int = 0


Track.model_rebuild()

CatalogItem = Union[Track, Album, Artist]


def classify_item(raw: dict[str, Any]) -> ItemKind:
    """
    Works out what a raw catalog payload describes.

    An explicit `kind` wins. Otherwise artists are recognised by their album
    count and tracks by their album relation; everything else is an album.
    """
    if raw.get("kind") in ("track", "album", "artist"):
        return raw["kind"]
    if "albums_count" in raw:
        return "artist"
    if "album" in raw:
        return "track"
    return "album"


def parse_catalog_item(raw: Any) -> CatalogItem:
    """
    Parses a raw catalog payload into a `Track`, `Album` or `Artist`.

    Raises:
        CatalogError: If the payload is not an object or fails validation.
    """
    if not isinstance(raw, dict):
        raise CatalogError("Catalog item must be a JSON object.")

    kind = classify_item(raw)
    model = {"track": Track, "album": Album, "artist": Artist}[kind]
    try:
        return model.model_validate({**raw, "kind": kind})
    except ValidationError as e:
        raise CatalogError(f"Invalid {kind} payload: {e}") from e


def parse_album(raw: Any) -> Album:
    """Parses an `album/get` response, which always describes an album."""
    if not isinstance(raw, dict):
        raise CatalogError("Album payload must be a JSON object.")
    try:
        return Album.model_validate({**raw, "kind": "album"})
    except ValidationError as e:
        raise CatalogError(f"Invalid album payload: {e}") from e
