"""Structured logging helpers."""
from __future__ import annotations

import json
import logging

from sutra_client.base.log_support import JsonFormatter, LogContext
from sutra_client.base.logging import ROOT_LOGGER_NAME, get_logger, log_event, normalized_log_event
from sutra_client.base.models import Usage


def test_child_loggers_live_under_the_shared_root():
    logger = get_logger("custom.component")
    assert logger.name == f"{ROOT_LOGGER_NAME}.custom.component"  # nosec B101 test assertion
    assert get_logger(ROOT_LOGGER_NAME).propagate is False  # nosec B101 test assertion


def test_log_event_prunes_none_and_merges_context(log_events):
    logger = get_logger("sutra.test")
    ctx = LogContext(provider="p", model=None, extra={"tenant": "t"})
    log_event(logger, "thing.happened", ctx, count=2, skipped=None)
    assert log_events[-1] == {  # nosec B101 test assertion
        "event": "thing.happened",
        "provider": "p",
        "tenant": "t",
        "count": 2,
        "level": "INFO",
    }


def test_normalized_event_always_carries_canonical_keys(log_events):
    logger = get_logger("sutra.test")
    normalized_log_event(logger, "chat.end", phase="finalize", tokens=Usage(1, 2, 3))
    payload = log_events[-1]
    assert payload["phase"] == "finalize" and payload["attempt"] is None  # nosec B101
    assert "error_code" not in payload  # nosec B101 test assertion
    assert payload["tokens"]["total_tokens"] == 3  # nosec B101 test assertion


def test_disabled_level_skips_serialization(log_events):
    logger = get_logger("sutra.quiet")
    logger.setLevel(logging.ERROR)
    try:
        log_event(logger, "noisy", level=logging.DEBUG, obj=object())
    finally:
        logger.setLevel(logging.NOTSET)
    assert not [e for e in log_events if e.get("event") == "noisy"]  # nosec B101 test assertion


def test_json_formatter_hoists_structured_message():
    record = logging.LogRecord("sutra.x", logging.INFO, __file__, 1, json.dumps({"event": "e", "n": 1}), None, None)
    line = json.loads(JsonFormatter().format(record))
    assert line["event"] == "e" and line["n"] == 1 and "msg" not in line  # nosec B101
    assert line["logger"] == "sutra.x" and line["level"] == "INFO"  # nosec B101 test assertion
