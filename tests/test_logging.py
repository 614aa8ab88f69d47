"""Tests for structured logging."""

import logging

from capa_tracker.core.logging import StructuredFormatter, get_logger, log_with_context


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "capa_tracker.core.capa_lifecycle", logging.INFO, __file__, 1, "CAPA created", None, None
    )
    record.__dict__.update(extra)
    return record


def test_capa_id_follows_message_and_values_are_quoted():
    line = StructuredFormatter().format(
        _record(capa_id="abc", context={"folio": "CAPA-0001", "note": "two words"})
    )

    assert "message='CAPA created'" in line
    assert line.index("capa_id=abc") < line.index("folio=CAPA-0001")
    assert "note='two words'" in line


def test_loggers_share_package_namespace():
    logger = get_logger("tests.something")

    assert logger.name == "capa_tracker.tests.something"
    assert get_logger("capa_tracker.api.capas").name == "capa_tracker.api.capas"
    assert len(logging.getLogger("capa_tracker").handlers) == 1


def test_log_with_context_moves_capa_id(monkeypatch):
    logger = get_logger("capa_tracker.test")
    seen = []
    monkeypatch.setattr(logger, "handle", seen.append)
    monkeypatch.setattr(logger, "isEnabledFor", lambda level: True)

    log_with_context(logger, logging.INFO, "CAPA deleted", capa_id="abc", folio="CAPA-0003")

    assert seen[0].capa_id == "abc"
    assert seen[0].context == {"folio": "CAPA-0003"}
