from .contracts import EventBus
from .node_store import NodeStorePort
from .probe import ProbePort

__all__ = ["EventBus", "NodeStorePort", "ProbePort"]
