# src/nodelisting/services/bootstrap.py
from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from nodelisting.domain import utcnow
from nodelisting.ports import EventBus, NodeStorePort, ProbePort
from nodelisting.services.announce import AnnounceService
from nodelisting.services.eventbus import LocalEventBus, emit
from nodelisting.services.settings import Settings
from nodelisting.services.sweeper import HealthSweeper

logger = logging.getLogger(__name__)


class ListingService:
    """Composition root: store + probe + handler + sweeper, с жизненным циклом процесса."""

    def __init__(
        self,
        settings: Settings,
        *,
        store: Optional[NodeStorePort] = None,
        probe: Optional[ProbePort] = None,
        bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings
        self.bus = bus or LocalEventBus()
        if store is None:
            from nodelisting.adapters.db.sqlite_store import SQLiteNodeStore

            store = SQLiteNodeStore(settings.db_path)
        if probe is None:
            from nodelisting.services.probe_requests import RequestsProbe

            probe = RequestsProbe(timeout=settings.probe_timeout, user_agent=settings.user_agent)
        self.store = store
        self.probe = probe
        self.announcer = AnnounceService(store, probe, bus=self.bus, clock=clock)
        self.sweeper = HealthSweeper(
            store,
            probe,
            bus=self.bus,
            period=settings.sweep_interval,
            initial_delay=settings.sweep_initial_delay,
            concurrency=settings.sweep_concurrency,
            removal_after=timedelta(hours=settings.removal_hours),
            clock=clock,
        )
        self._ready = False

    def is_ready(self) -> bool:
        return self._ready

    async def start(self) -> None:
        if self._ready:
            return
        self.sweeper.start()
        self._ready = True
        logger.info("listing.started", extra={"extra": {"db": str(self.settings.db_path), "sweep_interval": self.settings.sweep_interval}})
        emit(self.bus, "sys.ready", {}, source="lifecycle")

    async def stop(self) -> None:
        emit(self.bus, "sys.stopping", {}, source="lifecycle")
        await self.sweeper.stop()
        self._ready = False
        emit(self.bus, "sys.stopped", {}, source="lifecycle")


# --- модульные фасады (синглтон) ---
_SERVICE: ListingService | None = None


def init_service(settings: Optional[Settings] = None) -> ListingService:
    """Собирает сервис из настроек и включает логирование."""
    from nodelisting.services.logging import setup_logging, attach_event_logger

    global _SERVICE
    settings = settings or Settings.from_sources()
    setup_logging(settings)
    svc = ListingService(settings)
    attach_event_logger(svc.bus)
    _SERVICE = svc
    return svc


def set_service(svc: ListingService | None) -> None:
    global _SERVICE
    _SERVICE = svc


def get_service() -> ListingService:
    if _SERVICE is None:
        return init_service()
    return _SERVICE
