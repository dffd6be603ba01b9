from .types import Event
from .node import NodeRecord, NodeInfo, AnnounceRequest, AnnounceResult, utcnow, normalize_domain

__all__ = ["Event", "NodeRecord", "NodeInfo", "AnnounceRequest", "AnnounceResult", "utcnow", "normalize_domain"]
