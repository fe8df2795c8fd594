"""DuckDB connection and schema init for the local ledger and evidence backend."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS event_seq START 1;

-- Oracle singleton (one row per program id)
CREATE TABLE IF NOT EXISTS oracle (
    address             VARCHAR PRIMARY KEY,
    authority           VARCHAR NOT NULL,
    active_proposals    BIGINT NOT NULL DEFAULT 0,
    total_resolved      BIGINT NOT NULL DEFAULT 0,
    bond_amount         BIGINT NOT NULL,
    liveness_period     BIGINT NOT NULL
);

-- Events (immutable once created)
CREATE TABLE IF NOT EXISTS events (
    address             VARCHAR PRIMARY KEY,
    event_id            BIGINT NOT NULL DEFAULT nextval('event_seq'),
    description         VARCHAR NOT NULL,
    resolution_type     INTEGER NOT NULL,
    market_address      VARCHAR,
    category            VARCHAR NOT NULL,
    created_at          BIGINT NOT NULL,
    creator             VARCHAR NOT NULL
);

-- Proposals: append-only history per proposal address, latest round is current
CREATE TABLE IF NOT EXISTS proposals (
    address                 VARCHAR NOT NULL,
    round                   INTEGER NOT NULL,
    event_address           VARCHAR NOT NULL,
    proposer                VARCHAR NOT NULL,
    outcome                 BOOLEAN NOT NULL,
    evidence_digest         BLOB NOT NULL,
    submitted_at            BIGINT NOT NULL,
    liveness_end            BIGINT NOT NULL,
    bonded_amount           BIGINT NOT NULL,
    resolved                BOOLEAN NOT NULL DEFAULT FALSE,
    disputed                BOOLEAN NOT NULL DEFAULT FALSE,
    dispute_bond            BIGINT NOT NULL DEFAULT 0,
    disputer                VARCHAR,
    dispute_evidence_digest BLOB,
    resolver                VARCHAR,
    final_outcome           BOOLEAN,
    PRIMARY KEY (address, round)
);

-- Evidence blobs (durable backend for EvidenceStore)
CREATE TABLE IF NOT EXISTS evidence_blobs (
    content_id          VARCHAR PRIMARY KEY,
    data                BLOB NOT NULL,
    tags                JSON,
    stored_at           BIGINT NOT NULL
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager.
    ":memory:" opens an in-process database."""
    if str(db_path) == ":memory:":
        return duckdb.connect(":memory:")
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables and sequences if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise
