"""Protocol interfaces for hubresolve abstractions.

Collaborators are wired through these Protocols: structural typing,
no inheritance required, easy to swap for fakes in tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hubresolve.models.backend import BackendCandidate, RuntimeBinarySet
    from hubresolve.models.repository import CachedListing


# ---------------------------------------------------------------------------
# Persistence: key-value cache
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """TTL key-value cache (Redis in production, dict in tests)."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: repository listing cache
# ---------------------------------------------------------------------------

@runtime_checkable
class IListingCache(Protocol):
    """Stores flattened repository listings for a fixed time-to-live."""

    def load(self, repo_id: str, revision: str) -> CachedListing | None: ...

    def save(self, listing: CachedListing) -> None: ...

    def invalidate(self, repo_id: str, revision: str) -> None: ...


# ---------------------------------------------------------------------------
# Inference engine boundary
# ---------------------------------------------------------------------------

@runtime_checkable
class IInferenceEngine(Protocol):
    """The engine that executes a model graph on a chosen backend."""

    def create_session(
        self, model_path: Path, candidate: BackendCandidate, options: dict[str, Any] | None = None,
    ) -> Any: ...

    def get_active_providers(self, session: Any) -> list[str]: ...

    def close_session(self, session: Any) -> None: ...


# ---------------------------------------------------------------------------
# Native runtime binaries
# ---------------------------------------------------------------------------

@runtime_checkable
class IRuntimeBinarySource(Protocol):
    """Fetches native libraries for a provider token, once per cache root."""

    def ensure(self, provider_token: str, runtime_identifier: str) -> RuntimeBinarySet: ...
