# src/nodelisting/services/sweeper.py
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from nodelisting.domain import NodeRecord, utcnow
from nodelisting.ports import EventBus, NodeStorePort, ProbePort
from nodelisting.services.eventbus import emit
from nodelisting.services.merge import mark_offline, merge_sweep

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 5 * 60
INITIAL_DELAY_SECONDS = 10
REMOVAL_THRESHOLD = timedelta(hours=48)


@dataclass
class SweepReport:
    checked: int = 0
    online: int = 0
    went_offline: int = 0
    recovered: int = 0
    removed: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class HealthSweeper:
    """
    Периодический обход всех нод: probe -> online/offline -> удаление после 48ч простоя.
    Пробы идут параллельно (ограничено semaphore), сбой одной ноды не прерывает цикл.
    """

    def __init__(
        self,
        store: NodeStorePort,
        probe: ProbePort,
        *,
        bus: Optional[EventBus] = None,
        period: float = SWEEP_INTERVAL_SECONDS,
        initial_delay: float = INITIAL_DELAY_SECONDS,
        concurrency: int = 16,
        removal_after: timedelta = REMOVAL_THRESHOLD,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.probe = probe
        self.bus = bus
        self.period = period
        self.initial_delay = initial_delay
        self.concurrency = max(1, concurrency)
        self.removal_after = removal_after
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="nodelisting-sweeper")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        await asyncio.sleep(self.initial_delay)
        while True:
            started = loop.time()
            try:
                await self.run_once()
            except Exception:
                logger.exception("sweep.cycle.error")
            await asyncio.sleep(max(0.0, self.period - (loop.time() - started)))

    async def run_once(self) -> SweepReport:
        report = SweepReport()
        nodes = self.store.list_nodes(include_offline=True)
        logger.info("sweep.start", extra={"extra": {"nodes": len(nodes)}})
        sem = asyncio.Semaphore(self.concurrency)

        async def guarded(node: NodeRecord) -> None:
            try:
                await self._check(node, sem, report)
            except Exception:
                report.failed += 1
                logger.exception("sweep.node.error", extra={"extra": {"domain": node.domain}})

        await asyncio.gather(*(guarded(n) for n in nodes))
        logger.info("sweep.complete", extra={"extra": report.as_dict()})
        return report

    async def _check(self, node: NodeRecord, sem: asyncio.Semaphore, report: SweepReport) -> None:
        async with sem:
            healthy = await self.probe.probe_health(node.domain)
            info = await self.probe.fetch_info(node.domain) if healthy else None
        report.checked += 1
        now = self.clock()

        # за время пробы нода могла прислать heartbeat или быть удалена
        current = self.store.get(node.id)
        if current is None:
            return

        if healthy:
            self.store.update(merge_sweep(current, info, now))
            report.online += 1
            if not current.is_online:
                report.recovered += 1
                logger.info("node.back_online", extra={"extra": {"domain": current.domain}})
                emit(self.bus, "node.online", {"id": current.id, "domain": current.domain}, source="sweeper")
            return

        if current.is_online:
            current = mark_offline(current, now)
            self.store.update(current)
            report.went_offline += 1
            logger.info("node.went_offline", extra={"extra": {"domain": current.domain}})
            emit(self.bus, "node.offline", {"id": current.id, "domain": current.domain}, source="sweeper")
            # нода, упавшая в этом цикле, не удаляется в нём же
            return

        if current.down_since is None:
            return
        down_for = now - current.down_since
        if down_for >= self.removal_after:
            self.store.delete(current.id)
            report.removed += 1
            hours = round(down_for.total_seconds() / 3600)
            logger.info("node.evicted", extra={"extra": {"domain": current.domain, "hours_down": hours}})
            emit(self.bus, "node.removed", {"id": current.id, "domain": current.domain, "reason": "down", "hours_down": hours}, source="sweeper")
