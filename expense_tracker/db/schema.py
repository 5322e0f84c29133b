"""Database schema DDL definitions and initialization utilities.

Tables:
  - expenses: individual expense records; idempotency_key is UNIQUE and is the
    store-level guarantee that one submission creates at most one row
  - idempotency_keys: ledger mapping a client key to the expense it produced
  - metadata: key/value store (schema_version)
"""

from __future__ import annotations
import sqlite3
from typing import Sequence
from pathlib import Path

BASIC_UTC_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

EXPENSES_DDL = f"""
CREATE TABLE IF NOT EXISTS expenses (
    id TEXT PRIMARY KEY,
    amount_minor INTEGER NOT NULL CHECK (amount_minor > 0),
    category TEXT NOT NULL CHECK (length(trim(category)) > 0),
    description TEXT CHECK (description IS NULL OR length(description) <= 500),
    date TEXT NOT NULL, -- ISO date (YYYY-MM-DD)
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    idempotency_key TEXT NOT NULL UNIQUE
);
"""

IDEMPOTENCY_KEYS_DDL = f"""
CREATE TABLE IF NOT EXISTS idempotency_keys (
    key TEXT PRIMARY KEY,
    expense_id TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    FOREIGN KEY (expense_id) REFERENCES expenses(id)
);
"""

METADATA_DDL = f"""
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

EXPENSES_CATEGORY_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_expenses_category ON expenses(category);"
)
EXPENSES_DATE_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_expenses_date ON expenses(date, created_at);"
)
EXPENSES_CREATED_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_expenses_created ON expenses(created_at);"
)

DDL_ORDER: Sequence[str] = (
    EXPENSES_DDL,
    IDEMPOTENCY_KEYS_DDL,
    METADATA_DDL,
    EXPENSES_CATEGORY_INDEX_DDL,
    EXPENSES_DATE_INDEX_DDL,
    EXPENSES_CREATED_INDEX_DDL,
)


def init_db(path: Path) -> None:
    """Create all tables and indexes idempotently.

    Parameters
    ----------
    path: Path to SQLite database file.
    """
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        for ddl in DDL_ORDER:
            cur.execute(ddl)
        conn.commit()
    finally:
        conn.close()
