import pytest

from expense_tracker.core.errors import KeyConflict, MissingIdempotencyKey
from expense_tracker.services.idempotency import IdempotencyLedger, require_idempotency_key


@pytest.mark.parametrize("value", [None, "", "   "])
def test_missing_key(value):
    with pytest.raises(MissingIdempotencyKey, match="Idempotency-Key"):
        require_idempotency_key(value)


def test_key_is_stripped():
    assert require_idempotency_key("  abc-123 ") == "abc-123"


def test_lookup_unknown_key(db):
    assert IdempotencyLedger(db).lookup("unknown") is None


def test_record_then_lookup(db, make_expense):
    ledger = IdempotencyLedger(db)
    expense = db.insert_expense(make_expense(), "k-1")
    ledger.record("k-1", expense.id)
    assert ledger.lookup("k-1") == expense


def test_lookup_falls_back_to_expense_row_when_record_missing(db, make_expense):
    expense = db.insert_expense(make_expense(), "k-1")
    assert db.get_idempotency_record("k-1") is None
    assert IdempotencyLedger(db).lookup("k-1") == expense


def test_record_rejects_second_mapping(db, make_expense):
    ledger = IdempotencyLedger(db)
    first = db.insert_expense(make_expense(), "k-1")
    other = db.insert_expense(make_expense(), "k-2")
    ledger.record("k-1", first.id)
    with pytest.raises(KeyConflict):
        ledger.record("k-1", other.id)
    assert ledger.lookup("k-1") == first
