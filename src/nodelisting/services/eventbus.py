from __future__ import annotations
import asyncio
import logging
import time
from collections import defaultdict
from threading import RLock
from typing import Callable, Awaitable, Any, DefaultDict, List, Optional

from nodelisting.domain import Event
from nodelisting.ports import EventBus

Handler = Callable[[Event], Any] | Callable[[Event], Awaitable[Any]]

logger = logging.getLogger(__name__)


class LocalEventBus(EventBus):
    """
    Шина событий по префиксам типов (node.*, sys.*).
      * prefix = "" или "*": подписка на всё.
      * ошибка подписчика логируется и не доходит до издателя: событие публикуется
        уже после записи в store, откатывать нечего.
    """

    def __init__(self) -> None:
        self._subs: DefaultDict[str, List[Handler]] = defaultdict(list)
        self._lock = RLock()

    def subscribe(self, type_prefix: str, handler: Handler) -> None:
        with self._lock:
            self._subs[type_prefix].append(handler)

    def _matching(self, event_type: str) -> List[Handler]:
        with self._lock:
            return [h for prefix, hs in self._subs.items() if prefix in ("", "*") or event_type.startswith(prefix) for h in hs]

    def publish(self, event: Event) -> None:
        for handler in self._matching(event.type):
            try:
                res = handler(event)
            except Exception:
                logger.exception("bus.handler.error", extra={"extra": {"type": event.type}})
                continue
            if asyncio.iscoroutine(res):
                try:
                    asyncio.get_running_loop().create_task(res)
                except RuntimeError:
                    res.close()
                    logger.warning("bus.handler.dropped", extra={"extra": {"type": event.type, "reason": "no running loop"}})


def emit(bus: Optional[EventBus], type_: str, payload: dict, source: str) -> None:
    if bus is None:
        return
    bus.publish(Event(type=type_, payload=payload, source=source, ts=time.time()))
