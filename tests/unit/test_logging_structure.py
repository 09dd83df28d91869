import json
import logging

import pytest

pytest.importorskip("pythonjsonlogger")

from paper_search.core.logging import (
    clear_request_context,
    clear_run_context,
    configure_logging,
    get_request_id,
    get_run_id,
    log_event,
    set_request_context,
    set_run_context,
)


REQUIRED_FIELDS = {"ts", "levelname", "service", "env", "event_type", "request_id", "run_id", "plane", "version", "message"}


def _last_json_line(stderr: str) -> dict:
    lines = [line for line in stderr.splitlines() if line.strip()]
    assert lines
    return json.loads(lines[-1])


def test_configure_logging_includes_envelope(capsys):
    configure_logging()
    logging.getLogger("test.logging").info("event_without_context")

    payload = _last_json_line(capsys.readouterr().err)
    assert REQUIRED_FIELDS.issubset(payload.keys())
    assert payload["message"] == "event_without_context"
    assert payload["service"] == "paper-search-service"


def test_log_event_uses_request_and_run_context(capsys):
    configure_logging()
    set_request_context(request_id="req-42")
    set_run_context("run-7")
    log_event("sync.batch.completed", payload={"indexed": 20}, plane="control")

    payload = _last_json_line(capsys.readouterr().err)
    assert payload["event_type"] == "sync.batch.completed"
    assert payload["request_id"] == "req-42"
    assert payload["run_id"] == "run-7"
    assert payload["plane"] == "control"
    assert payload["indexed"] == 20
    clear_request_context()
    clear_run_context()


def test_context_lifecycle():
    clear_request_context()
    clear_run_context()
    assert get_request_id() is None
    assert get_run_id() is None
    set_request_context(request_id="req-abc")
    set_run_context("run-abc")
    assert get_request_id() == "req-abc"
    assert get_run_id() == "run-abc"
    clear_request_context()
    clear_run_context()
    assert get_request_id() is None
    assert get_run_id() is None
