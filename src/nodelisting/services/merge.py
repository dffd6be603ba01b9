"""Приоритет полей при регистрации, heartbeat и sweep.

Чистые функции над NodeRecord, без I/O.

* heartbeat / регистрация: значение из запроса, иначе из nodeinfo, иначе сохранённое, иначе default.
* sweep: значение из nodeinfo, если есть; иначе сохранённое.

Пустые строки в текстовых полях пропускаются; счётчики и флаги пропускают только ``None``.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from typing import Any, Optional

from nodelisting.domain import AnnounceRequest, NodeInfo, NodeRecord


def first_text(*values: Optional[str]) -> Optional[str]:
    for v in values:
        if isinstance(v, str) and v:
            return v
    return None


def first_present(*values: Any) -> Any:
    for v in values:
        if v is not None:
            return v
    return None


def _p2p_node_id(enabled: bool, *candidates: Optional[str]) -> Optional[str]:
    return first_text(*candidates) if enabled else None


def build_registration(
    *,
    node_id: str,
    token: str,
    domain: str,
    request: AnnounceRequest,
    info: Optional[NodeInfo],
    now: datetime,
) -> NodeRecord:
    info = info or NodeInfo()
    p2p_enabled = bool(first_present(info.p2p_enabled, False))
    return NodeRecord(
        id=node_id,
        domain=domain,
        token=token,
        name=first_text(request.name, info.name) or "",
        description=first_text(request.description, info.description) or "",
        version=first_text(request.version, info.version) or "",
        track_count=first_present(info.track_count, 0),
        user_count=first_present(info.user_count, 0),
        open_registration=bool(first_present(info.open_registration, True)),
        p2p_enabled=p2p_enabled,
        p2p_node_id=_p2p_node_id(p2p_enabled, info.p2p_node_id),
        first_seen=now,
        last_seen=now,
        last_healthy=now,
        is_online=True,
        down_since=None,
    )


def merge_heartbeat(existing: NodeRecord, request: AnnounceRequest, info: Optional[NodeInfo], now: datetime) -> NodeRecord:
    info = info or NodeInfo()
    p2p_enabled = bool(first_present(info.p2p_enabled, existing.p2p_enabled, False))
    return replace(
        existing,
        name=first_text(request.name, info.name, existing.name) or "",
        description=first_text(request.description, info.description, existing.description) or "",
        version=first_text(request.version, info.version, existing.version) or "",
        track_count=first_present(info.track_count, existing.track_count, 0),
        user_count=first_present(info.user_count, existing.user_count, 0),
        open_registration=bool(first_present(info.open_registration, existing.open_registration, True)),
        p2p_enabled=p2p_enabled,
        p2p_node_id=_p2p_node_id(p2p_enabled, info.p2p_node_id, existing.p2p_node_id),
        last_seen=now,
        last_healthy=now,
        is_online=True,
        down_since=None,
    )


def merge_sweep(existing: NodeRecord, info: Optional[NodeInfo], now: datetime) -> NodeRecord:
    info = info or NodeInfo()
    p2p_enabled = bool(first_present(info.p2p_enabled, existing.p2p_enabled))
    return replace(
        existing,
        name=first_text(info.name, existing.name) or "",
        description=first_text(info.description, existing.description) or "",
        version=first_text(info.version, existing.version) or "",
        track_count=first_present(info.track_count, existing.track_count),
        user_count=first_present(info.user_count, existing.user_count),
        open_registration=bool(first_present(info.open_registration, existing.open_registration)),
        p2p_enabled=p2p_enabled,
        p2p_node_id=_p2p_node_id(p2p_enabled, info.p2p_node_id, existing.p2p_node_id),
        last_seen=now,
        last_healthy=now,
        is_online=True,
        down_since=None,
    )


def mark_offline(existing: NodeRecord, now: datetime) -> NodeRecord:
    # down_since ставится только на переходе online -> offline
    if not existing.is_online:
        return existing
    return replace(existing, is_online=False, down_since=now)
