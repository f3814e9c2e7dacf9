"""Shared test doubles: memory backends plus hub and engine fakes."""

from __future__ import annotations

from hubresolve.persistence.memory_backend import MemoryCacheBackend, MemoryListingCache
from tests.fakes.engine import FakeBinarySource, FakeInferenceEngine, FakeSession
from tests.fakes.hub import ENDPOINT, FakeHub

__all__ = [
    "ENDPOINT",
    "FakeBinarySource",
    "FakeHub",
    "FakeInferenceEngine",
    "FakeSession",
    "MemoryCacheBackend",
    "MemoryListingCache",
]
