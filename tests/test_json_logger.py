import json
import logging

from services.json_logger import MAX_FIELD_CHARS, JsonFormatter, get_json_logger


def _record(extra):
    record = logging.LogRecord("statement_ingest.test", logging.INFO, __file__, 1, "parsed", None, None)
    record.extra = extra
    return record


def test_formatter_emits_json_with_extra_fields():
    line = JsonFormatter().format(_record({"page": 2, "expenses": 3, "note": None}))
    payload = json.loads(line)
    assert payload["msg"] == "parsed"
    assert payload["level"] == "INFO"
    assert payload["page"] == 2 and payload["expenses"] == 3
    assert "note" not in payload
    assert payload["ts"].endswith("Z")


def test_formatter_bounds_long_strings():
    payload = json.loads(JsonFormatter().format(_record({"sample": "x" * (MAX_FIELD_CHARS + 50)})))
    assert payload["sample"].startswith("x" * MAX_FIELD_CHARS)
    assert payload["sample"].endswith("...(+50)")


def test_child_loggers_share_package_handler():
    a = get_json_logger("statement_ingest.alpha")
    b = get_json_logger("statement_ingest.beta")
    root = logging.getLogger("statement_ingest")
    assert a.handlers == [] and b.handlers == []
    assert len(root.handlers) == 1
    assert root.propagate is False
