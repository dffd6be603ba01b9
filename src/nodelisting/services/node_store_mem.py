from __future__ import annotations
from dataclasses import replace
from threading import RLock
from typing import Dict, List, Optional

from nodelisting.domain import NodeRecord
from nodelisting.ports import NodeStorePort
from nodelisting.services.errors import ConflictError


class InMemoryNodeStore(NodeStorePort):
    """Хранилище в памяти (dev/тесты). Отдаёт копии, чтобы вызывающий не правил записи в обход update()."""

    def __init__(self) -> None:
        self._reg: Dict[str, NodeRecord] = {}
        self._lock = RLock()

    def insert(self, record: NodeRecord) -> NodeRecord:
        with self._lock:
            for other in self._reg.values():
                if other.domain == record.domain or other.token == record.token or other.id == record.id:
                    raise ConflictError(hint="Include the token from your initial registration to update.")
            self._reg[record.id] = replace(record)
        return record

    def update(self, record: NodeRecord) -> bool:
        with self._lock:
            current = self._reg.get(record.id)
            if current is None:
                return False
            self._reg[record.id] = replace(record, domain=current.domain, token=current.token, first_seen=current.first_seen)
            return True

    def delete(self, node_id: str) -> bool:
        with self._lock:
            return self._reg.pop(node_id, None) is not None

    def _find(self, pred) -> Optional[NodeRecord]:
        with self._lock:
            for rec in self._reg.values():
                if pred(rec):
                    return replace(rec)
        return None

    def get(self, node_id: str) -> Optional[NodeRecord]:
        with self._lock:
            rec = self._reg.get(node_id)
            return replace(rec) if rec else None

    def get_by_domain(self, domain: str) -> Optional[NodeRecord]:
        return self._find(lambda r: r.domain == domain)

    def get_by_token(self, token: str) -> Optional[NodeRecord]:
        return self._find(lambda r: r.token == token)

    def get_by_domain_and_token(self, domain: str, token: str) -> Optional[NodeRecord]:
        return self._find(lambda r: r.domain == domain and r.token == token)

    def list_nodes(self, include_offline: bool = False) -> List[NodeRecord]:
        with self._lock:
            items = [replace(r) for r in self._reg.values() if include_offline or r.is_online]
        items.sort(key=lambda r: r.domain)
        items.sort(key=lambda r: (not r.is_online, -r.track_count))
        return items

    def stats(self) -> Dict[str, int]:
        with self._lock:
            recs = list(self._reg.values())
        return {
            "total_nodes": len(recs),
            "online_nodes": sum(1 for r in recs if r.is_online),
            "total_tracks": sum(r.track_count for r in recs),
            "total_users": sum(r.user_count for r in recs),
        }
