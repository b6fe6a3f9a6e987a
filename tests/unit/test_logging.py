"""Unit tests for log record context and formatting."""

import json
import logging

from showcase.logging_config import (
    JsonFormatter,
    RequestContextFilter,
    actor_var,
    bind_actor,
    request_id_var,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("showcase.test", logging.INFO, __file__, 1, "Invite %s", ("sent",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_filter_stamps_placeholders_outside_a_request():
    record = make_record()
    assert RequestContextFilter().filter(record) is True
    assert record.request_id == "-"
    assert record.actor == "-"


def test_json_carries_context_and_extra_fields():
    req_token = request_id_var.set("req-123")
    actor_token = actor_var.set(None)
    try:
        bind_actor("creator:42")
        record = make_record(invite_id="inv-1", project=object())
        RequestContextFilter().filter(record)
        payload = json.loads(JsonFormatter().format(record))
    finally:
        actor_var.reset(actor_token)
        request_id_var.reset(req_token)

    assert payload["message"] == "Invite sent"
    assert payload["level"] == "INFO"
    assert payload["request_id"] == "req-123"
    assert payload["actor"] == "creator:42"
    assert payload["invite_id"] == "inv-1"
    assert isinstance(payload["project"], str)
    assert "args" not in payload
