# tests/conftest.py
from __future__ import annotations
import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import pytest

from nodelisting.adapters.db.sqlite_store import SQLiteNodeStore
from nodelisting.domain import NodeInfo
from nodelisting.services.bootstrap import ListingService, set_service
from nodelisting.services.eventbus import LocalEventBus
from nodelisting.services.logging import setup_logging, attach_event_logger
from nodelisting.services.node_store_mem import InMemoryNodeStore
from nodelisting.services.settings import Settings


# ---- управляемые часы ----
class ManualClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kw: float) -> None:
        self.now += timedelta(**kw)


# ---- probe без сети: ответы задаются тестом ----
class FakeProbe:
    def __init__(self) -> None:
        self.healthy: Dict[str, bool] = {}
        self.info: Dict[str, Dict[str, Any]] = {}
        self.raises: Set[str] = set()
        self.health_calls: List[str] = []
        self.info_calls: List[str] = []

    def set(self, domain: str, healthy: bool = True, info: Optional[Dict[str, Any]] = None) -> None:
        self.healthy[domain] = healthy
        if info is not None:
            self.info[domain] = info
        elif not healthy:
            self.info.pop(domain, None)

    async def probe_health(self, domain: str) -> bool:
        self.health_calls.append(domain)
        await asyncio.sleep(0)
        if domain in self.raises:
            raise RuntimeError(f"probe exploded for {domain}")
        return self.healthy.get(domain, False)

    async def fetch_info(self, domain: str) -> Optional[NodeInfo]:
        self.info_calls.append(domain)
        data = self.info.get(domain)
        if data is None or not self.healthy.get(domain, False):
            return None
        return NodeInfo.from_payload(data)


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    base_dir = tmp_path / "base"
    monkeypatch.setenv("LISTING_BASE_DIR", str(base_dir))
    for key in ("LISTING_DB_PATH", "LISTING_CONFIG", "LISTING_PORT", "PORT", "LISTING_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    try:
        yield base_dir
    finally:
        set_service(None)


@pytest.fixture
def settings(tmp_path) -> Settings:
    base_dir = tmp_path / "base"
    return Settings(base_dir=base_dir, db_path=base_dir / "listing.db", sweep_initial_delay=3600.0)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def bus() -> LocalEventBus:
    return LocalEventBus()


@pytest.fixture
def events(bus) -> List[Any]:
    seen: List[Any] = []
    bus.subscribe("node.", seen.append)
    return seen


@pytest.fixture
def store(settings) -> SQLiteNodeStore:
    return SQLiteNodeStore(settings.db_path)


@pytest.fixture(params=["sqlite", "memory"])
def any_store(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteNodeStore(tmp_path / "contract" / "listing.db")
    return InMemoryNodeStore()


@pytest.fixture
def service(settings, store, probe, bus, clock) -> ListingService:
    setup_logging(settings)
    attach_event_logger(bus)
    svc = ListingService(settings, store=store, probe=probe, bus=bus, clock=clock)
    set_service(svc)
    return svc


@pytest.fixture
def client(service):
    from fastapi.testclient import TestClient
    from nodelisting.apps.api.server import create_app

    with TestClient(create_app(service)) as c:
        yield c


@pytest.fixture
def event_loop():
    """Локальный event loop на тест (без pytest-asyncio)."""
    loop = asyncio.new_event_loop()
    try:
        yield loop
    finally:
        loop.close()
