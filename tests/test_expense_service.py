"""Orchestration tests for ExpenseService.submit / list_expenses."""

import logging
import threading

import pytest

from expense_tracker.core.errors import (
    ConstraintViolation,
    InvalidAmount,
    MissingIdempotencyKey,
    PersistenceFailure,
)
from expense_tracker.models.expense import ExpenseIn
from expense_tracker.services.expense_service import ExpenseService
from expense_tracker.services.idempotency import IdempotencyLedger


def _body(**overrides) -> ExpenseIn:
    data = {"amount": "105.50", "category": "Food", "date": "2024-03-01"}
    data.update(overrides)
    return ExpenseIn(**data)


@pytest.fixture
def insert_calls(db, monkeypatch):
    calls = []
    original = db.insert_expense

    def spy(expense, key):
        calls.append(key)
        return original(expense, key)

    monkeypatch.setattr(db, "insert_expense", spy)
    return calls


def test_repeated_key_replays_original(db, insert_calls):
    service = ExpenseService(db)
    first = service.submit("k-1", _body())
    second = service.submit("k-1", _body())

    assert first.created is True
    assert second.created is False
    assert second.expense.id == first.expense.id
    assert insert_calls == ["k-1"]
    assert db.get_idempotency_record("k-1")["expense_id"] == first.expense.id


def test_replay_ignores_changed_body(db):
    service = ExpenseService(db)
    first = service.submit("k-1", _body(amount="10"))
    second = service.submit("k-1", _body(amount="99"))
    assert second.expense.amount_minor == first.expense.amount_minor == 1000


def test_distinct_keys_with_identical_bodies_are_distinct_expenses(db):
    service = ExpenseService(db)
    a = service.submit("k-1", _body())
    b = service.submit("k-2", _body())
    assert a.created and b.created
    assert a.expense.id != b.expense.id
    assert db.count_expenses() == 2


def test_missing_key_checked_before_anything_else(db, insert_calls):
    with pytest.raises(MissingIdempotencyKey):
        ExpenseService(db).submit(None, _body(amount="abc"))
    assert insert_calls == []


def test_validation_failure_skips_persistence(db, insert_calls):
    class ExplodingLedger(IdempotencyLedger):
        def lookup(self, key):
            raise AssertionError("ledger must not be consulted")

    with pytest.raises(InvalidAmount):
        ExpenseService(db, ExplodingLedger(db)).submit("k-1", _body(amount="-5"))
    assert insert_calls == []


def test_lost_race_replays_winner(db, make_expense):
    winner = db.insert_expense(make_expense(amount_minor=777), "k-1")

    class StaleLedger(IdempotencyLedger):
        """Misses on the pre-check, as if the winner committed just after it."""

        calls = 0

        def lookup(self, key):
            self.calls += 1
            if self.calls == 1:
                return None
            return super().lookup(key)

    result = ExpenseService(db, StaleLedger(db)).submit("k-1", _body())
    assert result.created is False
    assert result.expense.id == winner.id
    assert db.count_expenses() == 1


def test_conflict_without_readable_winner_is_persistence_failure(db, monkeypatch, caplog):
    class BlindLedger(IdempotencyLedger):
        def lookup(self, key):
            return None

    def conflicting_insert(expense, key):
        raise ConstraintViolation("UNIQUE constraint failed: expenses.idempotency_key")

    monkeypatch.setattr(db, "insert_expense", conflicting_insert)
    with caplog.at_level(logging.ERROR):
        with pytest.raises(PersistenceFailure):
            ExpenseService(db, BlindLedger(db)).submit("k-1", _body())
    assert "no expense is readable" in caplog.text


def test_ledger_record_failure_is_soft(db, monkeypatch, caplog):
    def broken_record(key, expense_id):
        raise PersistenceFailure("disk full")

    monkeypatch.setattr(db, "insert_idempotency_record", broken_record)
    service = ExpenseService(db)
    with caplog.at_level(logging.WARNING):
        result = service.submit("k-1", _body())

    assert result.created is True
    assert "failed to record idempotency key" in caplog.text
    # the expense row still carries the key, so a retry replays it
    retry = service.submit("k-1", _body())
    assert retry.created is False
    assert retry.expense.id == result.expense.id


def test_concurrent_same_key_submissions_create_one_expense(db):
    workers = 6
    barrier = threading.Barrier(workers)
    local = threading.local()

    class RacingLedger(IdempotencyLedger):
        """Holds every caller after its pre-check so all of them miss it."""

        def lookup(self, key):
            found = super().lookup(key)
            if not getattr(local, "waited", False):
                local.waited = True
                barrier.wait(timeout=5)
            return found

    service = ExpenseService(db, RacingLedger(db))
    results = []
    lock = threading.Lock()

    def worker():
        result = service.submit("race", _body())
        with lock:
            results.append(result)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == workers
    assert sum(r.created for r in results) == 1
    assert len({r.expense.id for r in results}) == 1
    assert db.count_expenses() == 1


def test_list_expenses_parses_sort(db):
    service = ExpenseService(db)
    older = service.submit("k-1", _body(date="2024-05-01")).expense
    newer = service.submit("k-2", _body(date="2024-01-01")).expense

    assert [e.id for e in service.list_expenses()] == [newer.id, older.id]
    assert [e.id for e in service.list_expenses(sort="date_desc")] == [older.id, newer.id]
    assert [e.id for e in service.list_expenses(sort="bogus")] == [newer.id, older.id]
