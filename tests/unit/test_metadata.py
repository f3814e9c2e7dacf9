"""Tests for MetadataService lookups and metadata parsing."""

from __future__ import annotations

import pytest

from hubresolve.hub.metadata import MetadataService, parse_metadata
from hubresolve.models.repository import RepoMetadata

DOCUMENT = {
    "author": "org",
    "downloads": 1200,
    "likes": 14,
    "tags": ["onnx", "license:mit", "text-generation"],
    "pipeline_tag": "text-generation",
    "library_name": "onnxruntime",
    "lastModified": "2024-05-01T10:00:00.000Z",
    "gated": "auto",
    "private": False,
}


@pytest.fixture
def service(hub, hub_config, store):
    hub.metadata["org/model"] = DOCUMENT
    svc = MetadataService(hub_config, store, client=hub.client())
    yield svc
    svc.close()


class TestParseMetadata:
    def test_maps_fields(self):
        meta = parse_metadata("org/model", DOCUMENT)
        assert meta.author == "org"
        assert meta.downloads == 1200
        assert meta.license == "mit"
        assert meta.gated is True
        assert meta.last_modified.year == 2024

    def test_license_from_card_data(self):
        meta = parse_metadata("org/model", {"cardData": {"license": "apache-2.0"}})
        assert meta.license == "apache-2.0"

    def test_ungated_and_author_from_repo_id(self):
        meta = parse_metadata("someone/model", {"gated": False})
        assert meta.gated is False
        assert meta.author == "someone"

    def test_bad_timestamp_is_dropped(self):
        assert parse_metadata("org/model", {"lastModified": "yesterday"}).last_modified is None


class TestGetMetadata:
    def test_fetches_and_caches(self, service, hub, store):
        meta = service.get_metadata("org/model")

        assert meta.likes == 14
        assert store.read_metadata("org/model") == meta

        service.get_metadata("org/model")
        assert hub.count("/api/models/org/model") == 1

    def test_bypass_cache(self, service, hub, store):
        store.write_metadata(RepoMetadata(repo_id="org/model", likes=1))
        assert service.get_metadata("org/model").likes == 1
        assert service.get_metadata("org/model", use_cache=False).likes == 14

    def test_missing_repository_returns_none(self, service):
        assert service.get_metadata("org/absent") is None

    def test_server_error_returns_none(self, service, hub):
        hub.fail("/api/models/org/model", 500)
        assert service.get_metadata("org/model", use_cache=False) is None

    def test_works_without_store(self, hub, hub_config):
        hub.metadata["org/model"] = DOCUMENT
        svc = MetadataService(hub_config, client=hub.client())
        assert svc.get_metadata("org/model").downloads == 1200
