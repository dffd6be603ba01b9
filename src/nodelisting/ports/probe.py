from __future__ import annotations
from typing import Optional, Protocol

from nodelisting.domain import NodeInfo


class ProbePort(Protocol):
    """Исходящие проверки узла. Реализации никогда не бросают исключений."""

    async def probe_health(self, domain: str) -> bool: ...
    async def fetch_info(self, domain: str) -> Optional[NodeInfo]: ...
