"""SQLite storage for snapshot streams."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .errors import DuplicateTimestamp
from .models import Snapshot, Stream
from .serialization import dump_snapshot, load_snapshot

logger = logging.getLogger(__name__)

# Fixed width so that text order equals time order.
DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"

BUSY_TIMEOUT_SECONDS = 10.0


def open_database(path: Path) -> sqlite3.Connection:
    """Open (and initialize) the snapshot database."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, isolation_level=None, timeout=BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(path: Path) -> Iterator[sqlite3.Connection]:
    conn = open_database(path)
    try:
        yield conn
    finally:
        conn.close()


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS snapshots (
            time TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
        """
    )


def format_key(time: datetime) -> str:
    return time.astimezone(timezone.utc).strftime(DATETIME_FMT)


def append_snapshot(conn: sqlite3.Connection, snapshot: Snapshot) -> None:
    """Insert one snapshot; a colliding timestamp fails without writing."""
    key = format_key(snapshot.time)
    try:
        conn.execute(
            "INSERT INTO snapshots (time, value) VALUES (?, ?)",
            (key, dump_snapshot(snapshot)),
        )
    except sqlite3.IntegrityError as exc:
        raise DuplicateTimestamp(snapshot.time) from exc
    logger.debug("Stored snapshot %s with %d open windows.", key, len(snapshot.open_windows))


def load_stream(conn: sqlite3.Connection) -> Stream:
    """Read every stored snapshot inside a single read transaction."""
    conn.execute("BEGIN")
    try:
        rows = conn.execute("SELECT time, value FROM snapshots ORDER BY time").fetchall()
    finally:
        conn.execute("COMMIT")
    snapshots = [load_snapshot(row["value"], key=row["time"]) for row in rows]
    logger.debug("Loaded %d snapshots.", len(snapshots))
    return Stream.from_snapshots(snapshots)


def count_snapshots(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM snapshots").fetchone()[0]
