# src/nodelisting/apps/api/nodes_api.py
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request, Response, status
from pydantic import BaseModel

from nodelisting.apps.api.auth import bearer_token
from nodelisting.services.bootstrap import ListingService

router = APIRouter(tags=["nodes"])


def get_listing(request: Request) -> ListingService:
    return request.app.state.listing


# ---------- Models ----------
class AnnounceResponse(BaseModel):
    status: str
    id: str
    domain: str
    token: str | None = None
    message: str | None = None


class NodeOut(BaseModel):
    id: str
    domain: str
    name: str
    description: str
    version: str
    track_count: int
    user_count: int
    open_registration: bool
    p2p_enabled: bool
    p2p_node_id: str | None = None
    country: str | None = None
    first_seen: str | None = None
    last_seen: str | None = None
    last_healthy: str | None = None
    is_online: bool
    down_since: str | None = None


class NodesResponse(BaseModel):
    total: int
    nodes: list[NodeOut]


class RemovedResponse(BaseModel):
    status: str
    domain: str


class StatsResponse(BaseModel):
    total_nodes: int
    online_nodes: int
    total_tracks: int
    total_users: int


# ---------- Endpoints (mounted under /api) ----------


@router.post("/announce", response_model=AnnounceResponse, response_model_exclude_none=True)
async def announce(response: Response, payload: Any = Body(default=None), svc: ListingService = Depends(get_listing)):
    """
    Саморегистрация ноды (без token) или heartbeat (с token).
    Токен возвращается только один раз: при регистрации.
    """
    result = await svc.announcer.announce(payload)
    if result.status == "registered":
        response.status_code = status.HTTP_201_CREATED
    return result.to_dict()


@router.get("/nodes", response_model=NodesResponse)
async def list_nodes(include_offline: str | None = None, svc: ListingService = Depends(get_listing)):
    """Публичный список; offline только при include_offline=true (строго)."""
    nodes = [n.to_public() for n in svc.announcer.list_nodes(include_offline=include_offline == "true")]
    return {"total": len(nodes), "nodes": nodes}


@router.get("/nodes/{domain:path}", response_model=NodeOut)
async def get_node(domain: str, svc: ListingService = Depends(get_listing)):
    return svc.announcer.get_node(domain).to_public()


@router.delete("/nodes/{domain:path}", response_model=RemovedResponse)
async def remove_node(domain: str, token: str | None = Depends(bearer_token), svc: ListingService = Depends(get_listing)):
    """Снятие ноды с регистрации; Authorization: Bearer <token>."""
    clean = svc.announcer.remove(domain, token)
    return {"status": "removed", "domain": clean}


@router.get("/stats", response_model=StatsResponse)
async def stats(svc: ListingService = Depends(get_listing)):
    return svc.announcer.stats()
