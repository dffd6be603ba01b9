from __future__ import annotations
import asyncio
import logging
from typing import Any, Callable, List, Optional
from urllib.parse import urlsplit

import requests

from nodelisting.domain import NodeInfo
from nodelisting.ports import ProbePort
from nodelisting.services.settings import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

_LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}


def _is_loopback(domain: str) -> bool:
    try:
        host = urlsplit(f"//{domain}").hostname or ""
    except ValueError:
        return False
    return host in _LOOPBACK_HOSTS


def candidate_urls(domain: str, path: str) -> List[str]:
    """Loopback: только http; остальные: сначала https, затем http."""
    protocols = ["http"] if _is_loopback(domain) else ["https", "http"]
    return [f"{proto}://{domain}{path}" for proto in protocols]


# Реализация через requests, но безопасно для event loop (to_thread)
class RequestsProbe(ProbePort):
    def __init__(
        self,
        timeout: float = 8.0,
        user_agent: str = DEFAULT_USER_AGENT,
        http_get: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._http_get = http_get or requests.get

    def _get(self, url: str) -> Any:
        # connect + read укладываются в общий бюджет попытки
        half = self.timeout / 2
        return self._http_get(url, headers={"User-Agent": self.user_agent}, timeout=(half, half))

    async def _attempt(self, url: str) -> Any:
        """Одна попытка; None при любой сетевой ошибке или таймауте."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(self._get, url), timeout=self.timeout)
        # ValueError: urllib3 LocationParseError (битое имя хоста) requests не оборачивает
        except (requests.RequestException, ValueError, OSError, asyncio.TimeoutError) as e:
            logger.debug("probe.attempt.failed", extra={"extra": {"url": url, "error": repr(e)}})
            return None

    @staticmethod
    def _json(resp: Any) -> Any:
        if not 200 <= resp.status_code < 300:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    async def probe_health(self, domain: str) -> bool:
        for url in candidate_urls(domain, "/healthz"):
            resp = await self._attempt(url)
            if resp is None:
                continue
            body = self._json(resp)
            if isinstance(body, dict) and body.get("status") == "ok":
                return True
        return False

    async def fetch_info(self, domain: str) -> Optional[NodeInfo]:
        for url in candidate_urls(domain, "/api/nodeinfo"):
            resp = await self._attempt(url)
            if resp is None:
                continue
            body = self._json(resp)
            if isinstance(body, dict):
                return NodeInfo.from_payload(body)
        return None
