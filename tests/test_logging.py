import json
import logging
import sys

from expense_tracker.core.logging import JsonFormatter, RequestIdFilter, request_id_ctx


def _record(msg="hello", **extra):
    record = logging.LogRecord("expense_tracker.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields():
    record = _record(expense_id="abc", status=201)
    RequestIdFilter().filter(record)
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "expense_tracker.test"
    assert payload["request_id"] == "-"
    assert payload["expense_id"] == "abc"
    assert payload["status"] == 201
    assert "args" not in payload


def test_request_id_filter_uses_context():
    token = request_id_ctx.set("req-42")
    try:
        record = _record()
        RequestIdFilter().filter(record)
    finally:
        request_id_ctx.reset(token)
    assert json.loads(JsonFormatter().format(record))["request_id"] == "req-42"


def test_exception_info_is_serialized():
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord(
            "expense_tracker.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
        )
    payload = json.loads(JsonFormatter().format(record))
    assert "ValueError: boom" in payload["exc_info"]
