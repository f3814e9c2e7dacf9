"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class HubConfig(BaseSettings):
    """Remote model repository configuration."""

    model_config = {"env_prefix": "HUBRESOLVE_HUB_", "populate_by_name": True}

    endpoint: str = "https://huggingface.co"
    token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("HUBRESOLVE_HUB_TOKEN", "HF_TOKEN"),
    )
    user_agent: str = "hubresolve/0.1"
    timeout: float = 30.0  # listing and metadata calls
    download_timeout: float = 1800.0
    listing_ttl_hours: int = 24
    max_retries: int = 3
    chunk_size: int = 81920


class CacheConfig(BaseSettings):
    """Local artifact and listing cache configuration."""

    model_config = {"env_prefix": "HUBRESOLVE_CACHE_"}

    root: str | None = None  # overrides HF_HUB_CACHE / HF_HOME resolution
    listing_backend: Literal["disk", "redis", "memory"] = "disk"


class RedisConfig(BaseSettings):
    """Redis listing cache configuration."""

    model_config = {"env_prefix": "HUBRESOLVE_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    key_prefix: str = "hubresolve:listing:"
    socket_timeout: float = 2.0


class RuntimeConfig(BaseSettings):
    """Native runtime acquisition configuration."""

    model_config = {"env_prefix": "HUBRESOLVE_RUNTIME_"}

    device: Literal["auto", "cpu", "cuda", "directml", "coreml"] = "auto"
    package_feed: str = "https://api.nuget.org/v3-flatcontainer"
    package_name: str = "microsoft.ml.onnxruntime"
    package_version: str = "1.20.1"


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "HUBRESOLVE_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    hub: HubConfig = Field(default_factory=HubConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
