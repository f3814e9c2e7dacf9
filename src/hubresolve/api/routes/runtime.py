"""Execution backend endpoints."""

from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Request

from hubresolve.models.preferences import DevicePreference

router = APIRouter(tags=["runtime"])


@router.get("/chain")
async def fallback_chain(request: Request, device: Optional[DevicePreference] = None) -> dict:
    """Backends this host would try, in order."""
    service = request.app.state.service
    chain = await asyncio.to_thread(service.fallback_chain, device)
    return {"chain": [c.model_dump(mode="json") for c in chain]}
