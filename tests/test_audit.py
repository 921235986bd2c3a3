"""Tests for the hash-chained audit log."""

import json

from toolwarden.audit import AuditLog
from toolwarden.core.models import AuditEvent, RiskClass


def _log_with_events(n: int = 3) -> AuditLog:
    log = AuditLog()
    for i in range(n):
        log.append(
            AuditEvent(
                session_id="sess-1",
                call_id=f"call-{i}",
                event_type="TOOL_EXECUTED" if i % 2 == 0 else "GATE_DECISION",
                description=f"event {i}",
                risk_class=RiskClass.READ_ONLY,
            )
        )
    return log


class TestHashChain:
    def test_empty_log_is_valid(self):
        log = AuditLog()
        assert log.verify_integrity() == (True, "Empty log, no events to verify")
        assert log.head_hash == AuditLog.GENESIS_HASH

    def test_events_are_chained(self):
        log = _log_with_events(3)
        events = log.get_events()
        assert events[0].previous_hash == AuditLog.GENESIS_HASH
        assert events[1].previous_hash == events[0].hash
        assert events[2].previous_hash == events[1].hash
        assert [e.sequence for e in events] == [0, 1, 2]
        assert log.head_hash == events[2].hash
        assert len(log) == 3

    def test_intact_chain_verifies(self):
        valid, message = _log_with_events(4).verify_integrity()
        assert valid
        assert "All 4 events verified" in message

    def test_tampering_is_detected(self):
        log = _log_with_events(3)
        log.get_events()[1].event.description = "rewritten"
        valid, message = log.verify_integrity()
        assert not valid
        assert "Tampered event at 1" in message

    def test_record_shorthand(self):
        log = AuditLog()
        hashed = log.record("SESSION_START", "started", session_id="sess-9")
        assert hashed.event.session_id == "sess-9"
        assert hashed.event.event_type == "SESSION_START"


class TestQueries:
    def test_filters(self):
        log = _log_with_events(4)
        log.record("SESSION_END", "done", session_id="other")

        assert len(log.get_events(session_id="sess-1")) == 4
        assert [e.event.call_id for e in log.get_events(call_id="call-2")] == ["call-2"]
        assert len(log.get_events(event_type="GATE_DECISION")) == 2
        assert len(log.get_events(session_id="sess-1", event_type="TOOL_EXECUTED")) == 2

    def test_export_json(self, tmp_path):
        log = _log_with_events(2)
        path = tmp_path / "audit.json"
        log.export_json(path)

        data = json.loads(path.read_text())
        assert data["total_events"] == 2
        assert data["chain_head"] == log.head_hash
        assert data["events"][1]["previous_hash"] == data["events"][0]["hash"]
        assert data["events"][0]["event"]["risk_class"] == "READ_ONLY"

    def test_summary_table(self):
        table = _log_with_events(3).summary_table()
        assert table.row_count == 3
        assert "chain intact" in str(table.title)
