"""Tests for parsing raw catalog payloads and serializing jobs."""

import pytest
from conftest import make_album_payload, make_track_payload

from qobuz_server.exceptions import CatalogError
from qobuz_server.models.catalog import Album, Artist, Track, parse_catalog_item
from qobuz_server.models.job import Job, JobKind


class TestParseCatalogItem:
    def test_track_is_recognised_by_album_relation(self):
        item = parse_catalog_item(make_track_payload(1, 1, album={"id": 500}))

        assert isinstance(item, Track)
        assert item.album.id == 500

    def test_album(self):
        item = parse_catalog_item(make_album_payload())

        assert isinstance(item, Album)
        assert len(item.track_items) == 3

    def test_artist_is_recognised_by_album_count(self):
        item = parse_catalog_item({"id": 7, "name": "Miles Davis", "albums_count": 300})

        assert isinstance(item, Artist)

    def test_explicit_kind_wins(self):
        item = parse_catalog_item({"kind": "track", "id": 1, "title": "Solo"})

        assert isinstance(item, Track)
        assert item.album is None

    def test_unknown_fields_are_ignored(self):
        item = parse_catalog_item({"id": 1, "title": "X", "hires_streamable": True})

        assert item.kind == "album"

    @pytest.mark.parametrize("raw", [None, [], "album", 42])
    def test_non_object_is_rejected(self, raw):
        with pytest.raises(CatalogError):
            parse_catalog_item(raw)

    def test_missing_id_is_rejected(self):
        with pytest.raises(CatalogError, match="Invalid album payload"):
            parse_catalog_item({"title": "No id"})


class TestJobSerialization:
    def test_to_dict(self):
        job = Job(subject=parse_catalog_item({"id": 9, "title": "Kind of Blue"}))

        data = job.to_dict()

        assert job.kind is JobKind.ALBUM
        assert data["id"] == job.id
        assert data["kind"] == "album"
        assert data["title"] == "Kind of Blue"
        assert data["status"] == "queued"
        assert data["error"] is None
        assert data["item"]["id"] == 9

    def test_failure_is_recorded(self):
        job = Job(subject=parse_catalog_item({"id": 9}))

        job.mark_processing()
        job.mark_failed("boom")

        assert job.to_dict()["status"] == "failed"
        assert job.error == "boom"
