# src/nodelisting/services/announce.py
from __future__ import annotations
import logging
import secrets
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from nodelisting.domain import AnnounceRequest, AnnounceResult, NodeRecord, normalize_domain, utcnow
from nodelisting.ports import EventBus, NodeStorePort, ProbePort
from nodelisting.services.errors import ConflictError, InvalidInput, NotFound, Unauthorized, Forbidden, UnprocessableEntity
from nodelisting.services.eventbus import emit
from nodelisting.services.merge import build_registration, merge_heartbeat

logger = logging.getLogger(__name__)

TOKEN_HINT = "Include the token from your initial registration to update."
SAVE_TOKEN_MESSAGE = "Save this token! You need it for future heartbeats and to remove your node."


def generate_token() -> str:
    return secrets.token_hex(32)


def generate_id() -> str:
    return str(uuid.uuid4())


def parse_announce(payload: Any) -> AnnounceRequest:
    """Проверяет тело /announce и нормализует domain."""
    if not isinstance(payload, Mapping):
        raise InvalidInput("request body must be a JSON object")
    domain = payload.get("domain")
    if not domain or not isinstance(domain, str):
        raise InvalidInput("domain is required")
    clean = normalize_domain(domain)
    if not clean:
        raise InvalidInput("domain is required")

    fields: Dict[str, Optional[str]] = {}
    for key in ("name", "description", "version", "token"):
        value = payload.get(key)
        if value is not None and not isinstance(value, str):
            raise InvalidInput(f"{key} must be a string")
        fields[key] = value
    return AnnounceRequest(domain=clean, **fields)


class AnnounceService:
    """Регистрация, heartbeat и удаление нод; чтение для публичного API."""

    def __init__(
        self,
        store: NodeStorePort,
        probe: ProbePort,
        *,
        bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = utcnow,
        token_factory: Callable[[], str] = generate_token,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        self.store = store
        self.probe = probe
        self.bus = bus
        self.clock = clock
        self.token_factory = token_factory
        self.id_factory = id_factory

    async def announce(self, payload: Any) -> AnnounceResult:
        req = parse_announce(payload)
        # пустой token трактуем как отсутствующий
        if req.token:
            return await self.heartbeat(req)
        return await self.register(req)

    async def heartbeat(self, req: AnnounceRequest) -> AnnounceResult:
        node = self.store.get_by_token(req.token or "")
        if node is None:
            raise Unauthorized("invalid token")
        if node.domain != req.domain:
            raise Forbidden("token does not match domain")

        info = await self.probe.fetch_info(req.domain)
        # перечитываем после await: sweeper мог записать свежие поля
        current = self.store.get(node.id) or node
        updated = merge_heartbeat(current, req, info, self.clock())
        if not self.store.update(updated):
            raise NotFound("node not found", hint="The node was removed while processing the heartbeat.")

        if not current.is_online:
            logger.info("node.back_online", extra={"extra": {"domain": req.domain, "via": "heartbeat"}})
        emit(self.bus, "node.updated", {"id": node.id, "domain": node.domain}, source="announce")
        return AnnounceResult(status="updated", id=node.id, domain=node.domain)

    async def register(self, req: AnnounceRequest) -> AnnounceResult:
        if self.store.get_by_domain(req.domain) is not None:
            raise ConflictError("domain already registered", hint=TOKEN_HINT)

        if not await self.probe.probe_health(req.domain):
            raise UnprocessableEntity(
                "node is not reachable",
                hint=f"Could not reach {req.domain}. Ensure your instance is online and accessible.",
            )

        info = await self.probe.fetch_info(req.domain)
        record = build_registration(
            node_id=self.id_factory(),
            token=self.token_factory(),
            domain=req.domain,
            request=req,
            info=info,
            now=self.clock(),
        )
        try:
            self.store.insert(record)
        except ConflictError as e:
            # параллельная регистрация того же домена
            raise ConflictError("domain already registered", hint=TOKEN_HINT) from e

        logger.info("node.registered", extra={"extra": {"domain": record.domain, "id": record.id}})
        emit(self.bus, "node.registered", {"id": record.id, "domain": record.domain}, source="announce")
        return AnnounceResult(status="registered", id=record.id, domain=record.domain, token=record.token, message=SAVE_TOKEN_MESSAGE)

    def remove(self, domain: str, token: Optional[str]) -> str:
        if not token:
            raise Unauthorized("token required")
        clean = normalize_domain(domain)
        node = self.store.get_by_domain_and_token(clean, token)
        if node is None:
            raise NotFound("node not found or invalid token")
        self.store.delete(node.id)
        logger.info("node.removed", extra={"extra": {"domain": clean, "reason": "unregistered"}})
        emit(self.bus, "node.removed", {"id": node.id, "domain": clean, "reason": "unregistered"}, source="announce")
        return clean

    def get_node(self, domain: str) -> NodeRecord:
        node = self.store.get_by_domain(normalize_domain(domain))
        if node is None:
            raise NotFound("node not found")
        return node

    def list_nodes(self, include_offline: bool = False) -> List[NodeRecord]:
        return self.store.list_nodes(include_offline=include_offline)

    def stats(self) -> Dict[str, int]:
        return self.store.stats()
