"""hubresolve exception hierarchy."""

from __future__ import annotations


class HubResolveError(Exception):
    """Base exception for all hubresolve errors."""


class ResolutionError(HubResolveError):
    """A resolution stage failed for a repository."""

    def __init__(self, repo_id: str, stage: str, message: str) -> None:
        self.repo_id = repo_id
        self.stage = stage
        super().__init__(f"{repo_id} [{stage}]: {message}")


class RepositoryNotFoundError(ResolutionError):
    """The remote repository (or revision) does not exist."""

    def __init__(self, repo_id: str, stage: str = "listing") -> None:
        super().__init__(repo_id, stage, "repository not found")


class ModelNotFoundError(ResolutionError):
    """The repository exists but holds no usable model file."""


class AuthenticationRequiredError(ResolutionError):
    """The repository is private or gated."""

    def __init__(self, repo_id: str, stage: str = "listing") -> None:
        super().__init__(
            repo_id,
            stage,
            "authentication required. Set HF_TOKEN environment variable for "
            "private or gated repositories.",
        )


class TransientNetworkError(ResolutionError):
    """Network failure or timeout that may succeed on retry."""


class DownloadError(ResolutionError):
    """A model artifact could not be downloaded."""

    def __init__(self, repo_id: str, file_name: str, message: str) -> None:
        self.file_name = file_name
        super().__init__(repo_id, "download", f"{file_name}: {message}")


class OperationCancelledError(HubResolveError):
    """A long-running operation observed its cancellation signal."""


class BackendUnavailableError(HubResolveError):
    """An execution backend failed pre-flight or activation checks."""

    def __init__(self, backend: str, reason: str) -> None:
        self.backend = backend
        self.reason = reason
        super().__init__(f"Backend {backend} unavailable: {reason}")


class RuntimeActivationError(HubResolveError):
    """No backend, not even CPU, could create a session."""


class CacheError(HubResolveError):
    """Listing cache backend operation failed."""
