"""Structured JSON logging."""

from __future__ import annotations

import io
import json
import uuid
from decimal import Decimal

from parlor.logger import AUDIT_PREFIX, StructuredLogger


def _fresh_logger(**kwargs) -> tuple[StructuredLogger, io.StringIO]:
    stream = io.StringIO()
    log = StructuredLogger(name=f"parlor.test.{uuid.uuid4().hex}", stream=stream, **kwargs)
    return log, stream


def _lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def test_record_is_one_json_object():
    log, stream = _fresh_logger(log_file="")

    log.info("Sold %d bottles", 3, extra={"sale_id": "s-1", "quantity": 3, "total": Decimal("3.5")})

    [entry] = _lines(stream)
    assert entry["level"] == "INFO"
    assert entry["message"] == "Sold 3 bottles"
    assert entry["extra"] == {"sale_id": "s-1", "quantity": 3, "total": "3.5"}
    assert entry["timestamp"].endswith("+00:00")


def test_exception_is_included():
    log, stream = _fresh_logger(log_file="")

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        log.error("failed", exc_info=True)

    [entry] = _lines(stream)
    assert "RuntimeError: boom" in entry["exception"]


def test_audit_line_is_prefixed_json():
    log, stream = _fresh_logger(log_file="")

    log.audit({"user_id": "1", "action": "LOGOUT"})

    [entry] = _lines(stream)
    assert entry["message"].startswith(AUDIT_PREFIX)
    assert json.loads(entry["message"][len(AUDIT_PREFIX):]) == {
        "user_id": "1",
        "action": "LOGOUT",
    }
    assert entry["extra"]["event"] == "AUDIT"


def test_same_name_does_not_duplicate_handlers():
    first, stream = _fresh_logger(log_file="")
    second = StructuredLogger(name=first.logger.name, stream=io.StringIO(), log_file="")

    second.info("once")

    assert len(first.logger.handlers) == 1
    assert len(_lines(stream)) == 1


def test_writes_rotating_log_file(tmp_path):
    log_file = tmp_path / "logs" / "parlor.log"
    log, _ = _fresh_logger(log_file=str(log_file))

    log.warning("on disk")
    for handler in log.logger.handlers:
        handler.flush()

    assert json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])["message"] == "on disk"
