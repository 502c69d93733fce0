"""
Tests for the in-memory log buffer behind /api/logs.
"""

import logging
import pytest
from datetime import datetime, timedelta, timezone

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from cosmodrom.server.log_buffer import LogBuffer


@pytest.fixture
def buffered_logger(request):
    """A private logger with a LogBuffer attached."""
    log = logging.getLogger(f"cosmodrom.test.{request.node.name}")
    log.setLevel(logging.DEBUG)
    log.propagate = False
    buffer = LogBuffer(capacity=3)
    log.addHandler(buffer)
    yield log, buffer
    log.removeHandler(buffer)


class TestLogBuffer:
    """Tests for LogBuffer."""

    def test_captures_level_and_message(self, buffered_logger):
        log, buffer = buffered_logger
        log.info("Rocket %s registered", "r1")
        log.warning("careful")
        entries = buffer.get_all()
        assert [(e.level, e.message) for e in entries] == [
            ("info", "Rocket r1 registered"),
            ("warning", "careful"),
        ]

    def test_debug_not_captured_by_default(self, buffered_logger):
        log, buffer = buffered_logger
        log.debug("noise")
        assert len(buffer) == 0

    def test_oldest_evicted(self, buffered_logger):
        log, buffer = buffered_logger
        for i in range(5):
            log.info(f"line {i}")
        assert [e.message for e in buffer.get_all()] == ["line 2", "line 3", "line 4"]

    def test_get_since(self, buffered_logger):
        log, buffer = buffered_logger
        log.info("one")
        log.error("two")
        entries = buffer.get_all()
        assert buffer.get_since(entries[-1].timestamp) == []
        assert buffer.get_since(entries[0].timestamp - timedelta(seconds=1)) == entries

    def test_get_since_naive_is_utc(self, buffered_logger):
        log, buffer = buffered_logger
        log.info("one")
        assert len(buffer.get_since(datetime(2000, 1, 1))) == 1

    def test_entry_dict(self, buffered_logger):
        log, buffer = buffered_logger
        log.error("boom")
        data = buffer.get_all()[0].to_dict()
        assert data["level"] == "error"
        assert data["message"] == "boom"
        assert data["timestamp"].endswith("Z")

    def test_timestamps_are_utc(self, buffered_logger):
        log, buffer = buffered_logger
        before = datetime.now(timezone.utc) - timedelta(seconds=1)
        log.info("now")
        assert buffer.get_all()[0].timestamp >= before

    def test_clear(self, buffered_logger):
        log, buffer = buffered_logger
        log.info("one")
        buffer.clear()
        assert buffer.get_all() == []

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            LogBuffer(capacity=0)
