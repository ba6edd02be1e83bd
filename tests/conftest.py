"""Shared payload factories and in-memory fakes for the acquisition tests."""

import pytest

from qobuz_server.models.catalog import parse_album

COVER_URL = "https://static.qobuz.com/images/covers/ab/cd/abcdef_600.jpg"


def make_track_payload(track_id, number, **overrides):
    data = {
        "id": track_id,
        "title": f"Track {number}",
        "track_number": number,
        "media_number": 1,
        "duration": 215,
        "isrc": f"GBAYE00000{number:02}",
        "copyright": "(P) 2020 Test Records",
        "maximum_bit_depth": 16,
        "maximum_sampling_rate": 44.1,
        "streamable": True,
        "performer": {"id": 77, "name": "Track Performer"},
    }
    data.update(overrides)
    return data


def make_album_payload(album_id=500, track_count=3, **overrides):
    tracks = [
        make_track_payload(album_id * 100 + n, n) for n in range(1, track_count + 1)
    ]
    data = {
        "id": album_id,
        "title": "Test Album",
        "artist": {"id": 1, "name": "Main Artist"},
        "artists": [{"id": 1, "name": "Main Artist", "roles": ["main-artist"]}],
        "image": {"large": COVER_URL},
        "genre": {"id": 112, "name": "Rock"},
        "label": {"id": 9, "name": "Test Records"},
        "release_date_original": "2020-05-01",
        "upc": "0602435000000",
        "media_count": 1,
        "tracks_count": track_count,
        "maximum_bit_depth": 16,
        "maximum_sampling_rate": 44.1,
        "tracks": {
            "offset": 0,
            "limit": track_count,
            "total": track_count,
            "items": tracks,
        },
    }
    data.update(overrides)
    return data


class FakeCatalogClient:
    """Serves albums from memory and hands out fake media URLs."""

    def __init__(self, albums=()):
        self.albums = {str(album.id): album for album in albums}
        self.failures = {}
        self.album_requests = []
        self.resolved = []
        self.durations = []

    async def fetch_album_metadata(self, album_id):
        self.album_requests.append(str(album_id))
        return self.albums[str(album_id)]

    async def resolve_media_location(self, track_id, format_id, track_duration=None):
        self.resolved.append((str(track_id), format_id))
        self.durations.append(track_duration)
        if error := self.failures.get(str(track_id)):
            raise error
        return {"url": f"https://streaming.example/{track_id}.flac"}

    async def close(self):
        pass


class FakeDownloader:
    def __init__(self, cover=b"\xff\xd8cover"):
        self.cover = cover
        self.payload_error = None
        self.payload_urls = []
        self.asset_urls = []

    async def fetch_bytes(self, url):
        self.payload_urls.append(url)
        if self.payload_error:
            raise self.payload_error
        return b"source-audio"

    async def fetch_asset(self, url):
        self.asset_urls.append(url)
        return self.cover

    async def close(self):
        pass


class FakeTranscoder:
    """Records each call and writes a stand-in output file."""

    def __init__(self, output=b"transcoded", error=None):
        self.output = output
        self.error = error
        self.calls = []

    async def transcode(self, input_path, output_path, metadata, cover_path=None):
        self.calls.append(
            {
                "input": input_path,
                "input_bytes": input_path.read_bytes(),
                "output": output_path,
                "metadata": dict(metadata),
                "cover": cover_path,
                "cover_bytes": cover_path.read_bytes() if cover_path else None,
            }
        )
        if self.error:
            raise self.error
        output_path.write_bytes(self.output)


@pytest.fixture
def album_payload():
    return make_album_payload


@pytest.fixture
def track_payload():
    return make_track_payload


@pytest.fixture
def album():
    return parse_album(make_album_payload())


@pytest.fixture
def catalog_client(album):
    return FakeCatalogClient([album])


@pytest.fixture
def downloader():
    return FakeDownloader()


@pytest.fixture
def transcoder():
    return FakeTranscoder()
