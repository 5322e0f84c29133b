"""Data Access Layer for expenses and the idempotency ledger.

Responsibilities
----------------
- Own the single process-scoped SQLite connection (created once by the
  application factory, closed on shutdown) and serialize access to it.
- Persist expenses; the UNIQUE ``idempotency_key`` column is what makes a
  submission create at most one row, whatever the callers raced on.
- Build and run the filtered, sorted listing query.
- Translate driver errors: unique-constraint hits become
  ``ConstraintViolation``, everything else ``PersistenceFailure``.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import sqlite3
import threading
import uuid
from typing import Any, Dict, Iterator, List, Optional, Tuple

from expense_tracker.core.errors import (
    ConstraintViolation,
    KeyConflict,
    PersistenceFailure,
)
from expense_tracker.models.constants import ExpenseSort
from expense_tracker.models.expense import Expense, NormalizedExpense
from . import migrate


EXPENSE_COLUMNS = "id, amount_minor, category, description, date, created_at"

# rowid breaks created_at ties (same millisecond) in insertion order
_ORDER_BY: Dict[ExpenseSort, str] = {
    ExpenseSort.CREATED_DESC: "created_at DESC, rowid DESC",
    ExpenseSort.DATE_DESC: "date DESC, created_at DESC, rowid DESC",
}


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


def build_expense_query(
    category: Optional[str] = None,
    sort: ExpenseSort = ExpenseSort.CREATED_DESC,
) -> Tuple[str, List[Any]]:
    """Return (sql, params) for the expense listing.

    ``category`` matches case-insensitively anywhere in the stored category;
    blank means no filter.
    """
    clauses: List[str] = []
    params: List[Any] = []
    needle = (category or "").strip()
    if needle:
        clauses.append("instr(casefold(category), ?) > 0")
        params.append(needle.casefold())
    where = " WHERE " + " AND ".join(clauses) if clauses else ""
    sql = f"SELECT {EXPENSE_COLUMNS} FROM expenses{where} ORDER BY {_ORDER_BY[sort]}"
    return sql, params


class Database:
    def __init__(self, db_path: Path, timeout: float = 5.0):
        self.db_path = db_path
        self._lock = threading.RLock()
        self._conn = self._connect(timeout)

    # ------------------------------------------------------------------
    # Connection helpers
    def _connect(self, timeout: float) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.db_path, timeout=timeout, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute("PRAGMA journal_mode=WAL")
            conn.create_function("casefold", 1, _casefold, deterministic=True)
        except sqlite3.Error as e:
            raise PersistenceFailure(f"cannot open database {self.db_path}") from e
        return conn

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Yield a cursor inside a transaction, translating driver errors."""
        with self._lock:
            try:
                with self._conn:
                    yield self._conn.cursor()
            except sqlite3.IntegrityError as e:
                if "UNIQUE constraint failed" in str(e):
                    raise ConstraintViolation(str(e)) from e
                raise PersistenceFailure(str(e)) from e
            except sqlite3.Error as e:
                raise PersistenceFailure(str(e)) from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def ping(self) -> None:
        with self._cursor() as cur:
            cur.execute("SELECT 1")
            cur.fetchone()

    def schema_version(self) -> Optional[int]:
        with self._lock:
            try:
                return migrate.get_schema_version(self._conn)
            except sqlite3.Error as e:
                raise PersistenceFailure(str(e)) from e

    # ------------------------------------------------------------------
    # Expenses
    def insert_expense(
        self, expense: NormalizedExpense, idempotency_key: str
    ) -> Expense:
        """Persist a new expense and return it with id and created_at assigned.

        Raises ConstraintViolation when ``idempotency_key`` is already taken.
        """
        expense_id = str(uuid.uuid4())
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO expenses (id, amount_minor, category, description, date, idempotency_key)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    expense_id,
                    expense.amount_minor,
                    expense.category,
                    expense.description,
                    expense.date.isoformat(),
                    idempotency_key,
                ),
            )
            cur.execute(
                f"SELECT {EXPENSE_COLUMNS} FROM expenses WHERE id = ?", (expense_id,)
            )
            row = cur.fetchone()
        return Expense.from_row(dict(row))

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {EXPENSE_COLUMNS} FROM expenses WHERE id = ?", (expense_id,)
            )
            row = cur.fetchone()
        return Expense.from_row(dict(row)) if row else None

    def get_expense_by_idempotency_key(self, key: str) -> Optional[Expense]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {EXPENSE_COLUMNS} FROM expenses WHERE idempotency_key = ?",
                (key,),
            )
            row = cur.fetchone()
        return Expense.from_row(dict(row)) if row else None

    def list_expenses(
        self,
        category: Optional[str] = None,
        sort: ExpenseSort = ExpenseSort.CREATED_DESC,
    ) -> List[Expense]:
        sql, params = build_expense_query(category=category, sort=sort)
        with self._cursor() as cur:
            cur.execute(sql, params)
            rows = cur.fetchall()
        return [Expense.from_row(dict(r)) for r in rows]

    def count_expenses(self) -> int:
        with self._cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM expenses")
            row = cur.fetchone()
        return int(row[0] if row and row[0] is not None else 0)

    # ------------------------------------------------------------------
    # Idempotency ledger rows
    def get_idempotency_record(self, key: str) -> Optional[Dict[str, Any]]:
        with self._cursor() as cur:
            cur.execute(
                "SELECT key, expense_id, created_at FROM idempotency_keys WHERE key = ?",
                (key,),
            )
            row = cur.fetchone()
        return dict(row) if row else None

    def insert_idempotency_record(self, key: str, expense_id: str) -> None:
        """Write key -> expense_id; an existing mapping is never overwritten."""
        try:
            with self._cursor() as cur:
                cur.execute(
                    "INSERT INTO idempotency_keys (key, expense_id) VALUES (?, ?)",
                    (key, expense_id),
                )
        except ConstraintViolation as e:
            raise KeyConflict(key) from e
