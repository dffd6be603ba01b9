# src/nodelisting/adapters/db/sqlite_store.py
from __future__ import annotations
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Iterator, List, Optional, Tuple

from nodelisting.adapters.db.sqlite_schema import ensure_schema
from nodelisting.domain import NodeRecord
from nodelisting.ports import NodeStorePort
from nodelisting.services.errors import ConflictError

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id",
    "domain",
    "name",
    "description",
    "version",
    "track_count",
    "user_count",
    "open_registration",
    "p2p_enabled",
    "p2p_node_id",
    "country",
    "token",
    "first_seen",
    "last_seen",
    "last_healthy",
    "is_online",
    "down_since",
)
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM nodes"


def _ts_to_db(ts: Optional[datetime]) -> Optional[str]:
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat()


def _ts_from_db(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    ts = datetime.fromisoformat(raw)
    # старые записи (datetime('now')) хранились без зоны: это UTC
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _row_to_record(row: sqlite3.Row) -> NodeRecord:
    """Единственное место, где 0/1 из БД превращаются в bool."""
    return NodeRecord(
        id=row["id"],
        domain=row["domain"],
        token=row["token"],
        name=row["name"] or "",
        description=row["description"] or "",
        version=row["version"] or "",
        track_count=int(row["track_count"] or 0),
        user_count=int(row["user_count"] or 0),
        open_registration=bool(row["open_registration"]),
        p2p_enabled=bool(row["p2p_enabled"]),
        p2p_node_id=row["p2p_node_id"],
        country=row["country"],
        first_seen=_ts_from_db(row["first_seen"]),
        last_seen=_ts_from_db(row["last_seen"]),
        last_healthy=_ts_from_db(row["last_healthy"]),
        is_online=bool(row["is_online"]),
        down_since=_ts_from_db(row["down_since"]),
    )


def _record_to_params(rec: NodeRecord) -> Tuple[Any, ...]:
    return (
        rec.id,
        rec.domain,
        rec.name,
        rec.description,
        rec.version,
        rec.track_count,
        rec.user_count,
        1 if rec.open_registration else 0,
        1 if rec.p2p_enabled else 0,
        rec.p2p_node_id,
        rec.country,
        rec.token,
        _ts_to_db(rec.first_seen),
        _ts_to_db(rec.last_seen),
        _ts_to_db(rec.last_healthy),
        1 if rec.is_online else 0,
        _ts_to_db(rec.down_since),
    )


class SQLiteNodeStore(NodeStorePort):
    """
    Таблица nodes в одном sqlite-файле.
    Каждая запись пишется целиком одной транзакцией; запись сериализуется RLock'ом,
    чтобы heartbeat и sweeper не перемешивали обновления одной ноды.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = RLock()
        with self._connect() as con:
            con.execute("PRAGMA journal_mode = WAL;")
            ensure_schema(con)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        con = sqlite3.connect(str(self.db_path), timeout=30.0)
        con.row_factory = sqlite3.Row
        try:
            yield con
        finally:
            con.close()

    def _fetch_one(self, where: str, params: Tuple[Any, ...]) -> Optional[NodeRecord]:
        with self._connect() as con:
            row = con.execute(f"{_SELECT} WHERE {where}", params).fetchone()
        return _row_to_record(row) if row else None

    # ---------- write ----------

    def insert(self, record: NodeRecord) -> NodeRecord:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        sql = f"INSERT INTO nodes ({', '.join(_COLUMNS)}) VALUES ({placeholders})"
        with self._lock, self._connect() as con:
            try:
                con.execute(sql, _record_to_params(record))
                con.commit()
            except sqlite3.IntegrityError as e:
                logger.warning("store.insert.conflict", extra={"extra": {"domain": record.domain, "error": str(e)}})
                raise ConflictError(hint="Include the token from your initial registration to update.") from e
        return record

    def update(self, record: NodeRecord) -> bool:
        # id/domain/token/first_seen неизменяемы: в SET их нет
        mutable = [c for c in _COLUMNS if c not in ("id", "domain", "token", "first_seen")]
        assignments = ", ".join(f"{c} = ?" for c in mutable)
        values = dict(zip(_COLUMNS, _record_to_params(record)))
        params = tuple(values[c] for c in mutable) + (record.id,)
        with self._lock, self._connect() as con:
            cur = con.execute(f"UPDATE nodes SET {assignments} WHERE id = ?", params)
            con.commit()
            return cur.rowcount > 0

    def delete(self, node_id: str) -> bool:
        with self._lock, self._connect() as con:
            cur = con.execute("DELETE FROM nodes WHERE id = ?", (node_id,))
            con.commit()
            return cur.rowcount > 0

    # ---------- read ----------

    def get(self, node_id: str) -> Optional[NodeRecord]:
        return self._fetch_one("id = ?", (node_id,))

    def get_by_domain(self, domain: str) -> Optional[NodeRecord]:
        return self._fetch_one("domain = ?", (domain,))

    def get_by_token(self, token: str) -> Optional[NodeRecord]:
        return self._fetch_one("token = ?", (token,))

    def get_by_domain_and_token(self, domain: str, token: str) -> Optional[NodeRecord]:
        return self._fetch_one("domain = ? AND token = ?", (domain, token))

    def list_nodes(self, include_offline: bool = False) -> List[NodeRecord]:
        if include_offline:
            sql = f"{_SELECT} ORDER BY is_online DESC, track_count DESC, domain ASC"
        else:
            sql = f"{_SELECT} WHERE is_online = 1 ORDER BY track_count DESC, domain ASC"
        with self._connect() as con:
            rows = con.execute(sql).fetchall()
        return [_row_to_record(r) for r in rows]

    def stats(self) -> Dict[str, int]:
        with self._connect() as con:
            row = con.execute(
                """
                SELECT
                  COUNT(*) AS total_nodes,
                  COALESCE(SUM(CASE WHEN is_online = 1 THEN 1 ELSE 0 END), 0) AS online_nodes,
                  COALESCE(SUM(track_count), 0) AS total_tracks,
                  COALESCE(SUM(user_count), 0) AS total_users
                FROM nodes
                """
            ).fetchone()
        return {k: int(row[k]) for k in ("total_nodes", "online_nodes", "total_tracks", "total_users")}
