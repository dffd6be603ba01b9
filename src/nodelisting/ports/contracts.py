from __future__ import annotations
from typing import Any, Callable, Protocol

from nodelisting.domain import Event


class EventBus(Protocol):
    def subscribe(self, type_prefix: str, handler: Callable[[Event], Any]) -> None: ...
    def publish(self, event: Event) -> None: ...
