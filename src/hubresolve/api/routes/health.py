"""Health check endpoints."""

from __future__ import annotations

import os

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    """Ready once the cache root exists (or can be created) and is writable."""
    root = request.app.state.service.store.root
    try:
        root.mkdir(parents=True, exist_ok=True)
        writable = os.access(root, os.W_OK)
    except OSError:
        writable = False
    if not writable:
        return JSONResponse(status_code=503, content={"status": "unavailable", "cache_root": str(root)})
    return JSONResponse(content={"status": "ready", "cache_root": str(root)})
