# src/nodelisting/adapters/db/sqlite_schema.py
from __future__ import annotations
import sqlite3

_SCHEMA_SQL = (
    """
    CREATE TABLE IF NOT EXISTS nodes (
        id                TEXT PRIMARY KEY,
        domain            TEXT UNIQUE NOT NULL,
        name              TEXT NOT NULL DEFAULT '',
        description       TEXT NOT NULL DEFAULT '',
        version           TEXT NOT NULL DEFAULT '',
        track_count       INTEGER NOT NULL DEFAULT 0,
        user_count        INTEGER NOT NULL DEFAULT 0,
        open_registration INTEGER NOT NULL DEFAULT 1,
        p2p_enabled       INTEGER NOT NULL DEFAULT 0,
        p2p_node_id       TEXT,
        country           TEXT,
        token             TEXT UNIQUE NOT NULL,
        first_seen        TEXT NOT NULL,
        last_seen         TEXT NOT NULL,
        last_healthy      TEXT NOT NULL,
        is_online         INTEGER NOT NULL DEFAULT 1,
        down_since        TEXT
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_nodes_online ON nodes(is_online);",
    "CREATE INDEX IF NOT EXISTS idx_nodes_domain ON nodes(domain);",
)


def ensure_schema(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    for sql in _SCHEMA_SQL:
        cur.execute(sql)
    conn.commit()
