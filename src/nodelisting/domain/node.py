# src/nodelisting/domain/node.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
import re

_SCHEME_RE = re.compile(r"^https?://")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_domain(domain: str) -> str:
    """Убирает схему http(s):// и один завершающий слэш."""
    cleaned = _SCHEME_RE.sub("", domain)
    if cleaned.endswith("/"):
        cleaned = cleaned[:-1]
    return cleaned


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts is not None else None


@dataclass(slots=True)
class NodeRecord:
    id: str
    domain: str
    token: str
    name: str = ""
    description: str = ""
    version: str = ""
    track_count: int = 0
    user_count: int = 0
    open_registration: bool = True
    p2p_enabled: bool = False
    p2p_node_id: Optional[str] = None
    # зарезервировано, текущая логика не заполняет
    country: Optional[str] = None
    first_seen: datetime = field(default_factory=utcnow)
    last_seen: datetime = field(default_factory=utcnow)
    last_healthy: datetime = field(default_factory=utcnow)
    is_online: bool = True
    down_since: Optional[datetime] = None

    def to_public(self) -> Dict[str, Any]:
        """Представление для API: без токена, время в ISO-8601."""
        return {
            "id": self.id,
            "domain": self.domain,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "track_count": self.track_count,
            "user_count": self.user_count,
            "open_registration": self.open_registration,
            "p2p_enabled": self.p2p_enabled,
            "p2p_node_id": self.p2p_node_id,
            "country": self.country,
            "first_seen": _iso(self.first_seen),
            "last_seen": _iso(self.last_seen),
            "last_healthy": _iso(self.last_healthy),
            "is_online": self.is_online,
            "down_since": _iso(self.down_since),
        }


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


# SQLite INTEGER: знаковое 64-битное
_MAX_COUNT = 2**63 - 1


def _count(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    if not 0 <= value <= _MAX_COUNT:
        return None
    return int(value)


def _flag(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    # некоторые узлы отдают флаги как 0/1
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    return None


@dataclass(frozen=True, slots=True)
class NodeInfo:
    """Payload of a node's /api/nodeinfo; every field is optional."""

    name: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    track_count: Optional[int] = None
    user_count: Optional[int] = None
    open_registration: Optional[bool] = None
    p2p_enabled: Optional[bool] = None
    p2p_node_id: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "NodeInfo":
        return cls(
            name=_text(data.get("name")),
            description=_text(data.get("description")),
            version=_text(data.get("version")),
            track_count=_count(data.get("track_count")),
            user_count=_count(data.get("user_count")),
            open_registration=_flag(data.get("open_registration")),
            p2p_enabled=_flag(data.get("p2p_enabled")),
            p2p_node_id=_text(data.get("p2p_node_id")),
        )


@dataclass(frozen=True, slots=True)
class AnnounceRequest:
    domain: str
    name: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    token: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AnnounceResult:
    status: str  # "registered" | "updated"
    id: str
    domain: str
    token: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"status": self.status, "id": self.id, "domain": self.domain}
        if self.token is not None:
            out["token"] = self.token
        if self.message is not None:
            out["message"] = self.message
        return out
