from __future__ import annotations
from typing import Dict, List, Optional, Protocol

from nodelisting.domain import NodeRecord


class NodeStorePort(Protocol):
    def insert(self, record: NodeRecord) -> NodeRecord: ...
    def get(self, node_id: str) -> Optional[NodeRecord]: ...
    def get_by_domain(self, domain: str) -> Optional[NodeRecord]: ...
    def get_by_token(self, token: str) -> Optional[NodeRecord]: ...
    def get_by_domain_and_token(self, domain: str, token: str) -> Optional[NodeRecord]: ...
    def update(self, record: NodeRecord) -> bool: ...
    def delete(self, node_id: str) -> bool: ...
    def list_nodes(self, include_offline: bool = False) -> List[NodeRecord]: ...
    def stats(self) -> Dict[str, int]: ...
