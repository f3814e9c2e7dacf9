"""Model discovery and local cache endpoints."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException, Query, Request

from hubresolve.models.cache import CachedModelInfo
from hubresolve.models.discovery import DiscoveryResult
from hubresolve.models.preferences import DevicePreference, ModelPreferences

router = APIRouter(tags=["models"])


@router.get("/discover", response_model=DiscoveryResult)
async def discover(
    request: Request,
    repo_id: str,
    revision: str = "main",
    preset: str = "default",
    device: DevicePreference = DevicePreference.CPU,
    refresh: bool = False,
) -> DiscoveryResult:
    """Return the file manifest that would be downloaded for ``repo_id``.

    ``refresh=true`` re-lists the repository instead of using cached listings.
    """
    try:
        preferences = ModelPreferences.preset(preset)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    preferences = preferences.model_copy(update={"device": device})
    service = request.app.state.service
    return await asyncio.to_thread(service.discover, repo_id, preferences, revision, refresh)


@router.get("/cached", response_model=list[CachedModelInfo])
async def cached_models(request: Request) -> list[CachedModelInfo]:
    service = request.app.state.service
    return await asyncio.to_thread(service.store.get_cached_models)


@router.get("/cached/size")
async def cache_size(request: Request) -> dict[str, int]:
    service = request.app.state.service
    return {"total_bytes": await asyncio.to_thread(service.store.total_size)}


@router.delete("/cached")
async def delete_cached(request: Request, repo_id: str = Query(...)) -> dict[str, object]:
    service = request.app.state.service
    deleted = await asyncio.to_thread(service.store.delete, repo_id)
    return {"repo_id": repo_id, "deleted": deleted}
