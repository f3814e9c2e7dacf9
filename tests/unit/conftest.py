"""Shared unit-test fixtures."""

from __future__ import annotations

import pytest

from hubresolve.cache.store import CacheStore
from hubresolve.core.config import HubConfig
from hubresolve.hub.repository_client import RepositoryClient
from tests.fakes import ENDPOINT, FakeHub, MemoryListingCache


@pytest.fixture
def hub():
    return FakeHub()


@pytest.fixture
def hub_config():
    return HubConfig(endpoint=ENDPOINT, token=None, max_retries=3, chunk_size=4)


@pytest.fixture
def store(tmp_path):
    return CacheStore(tmp_path / "hub")


@pytest.fixture
def listing_cache():
    return MemoryListingCache()


@pytest.fixture
def repository(hub, hub_config, listing_cache):
    client = RepositoryClient(hub_config, listing_cache=listing_cache, client=hub.client())
    yield client
    client.close()
