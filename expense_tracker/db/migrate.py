"""Database migration utilities.

Schema evolution is keyed by an integer `schema_version` stored in the
metadata table. `apply_migrations` is safe to run on every startup.
"""

from __future__ import annotations
from pathlib import Path
import sqlite3
from typing import Callable, Dict, Optional

from . import schema as schema_def
from .schema import init_db

CURRENT_SCHEMA_VERSION = 1
SCHEMA_VERSION_KEY = "schema_version"

# version -> step upgrading from (version - 1); v1 is the baseline built by init_db
MIGRATIONS: Dict[int, Callable[[sqlite3.Connection], None]] = {}


class SchemaTooNewError(RuntimeError):
    pass


def get_schema_version(conn: sqlite3.Connection) -> Optional[int]:
    try:
        cur = conn.cursor()
        cur.execute("SELECT value FROM metadata WHERE key=?", (SCHEMA_VERSION_KEY,))
        row = cur.fetchone()
        if row:
            return int(row[0])
    except sqlite3.OperationalError:
        # metadata table may not exist yet (first run before init_db)
        return None
    return None


def apply_migrations(db_path: Path) -> int:
    """Apply required migrations and return resulting schema version."""
    init_db(db_path)
    conn = sqlite3.connect(db_path)
    try:
        version = get_schema_version(conn) or 1
        if version > CURRENT_SCHEMA_VERSION:
            raise SchemaTooNewError(
                f"Database schema version {version} is newer than supported "
                f"version {CURRENT_SCHEMA_VERSION}"
            )
        while version < CURRENT_SCHEMA_VERSION:
            version += 1
            MIGRATIONS[version](conn)
        _set_schema_version(conn, version)
        conn.commit()
        return version
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    cur = conn.cursor()
    cur.execute(
        "INSERT INTO metadata (key, value) VALUES (?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value=excluded.value, "
        f"updated_at=({schema_def.BASIC_UTC_NOW})",
        (SCHEMA_VERSION_KEY, str(version)),
    )
