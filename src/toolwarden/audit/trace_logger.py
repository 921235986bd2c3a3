"""
Toolwarden Audit Log

Append-only, tamper-evident record of what happened in a session: model
turns, gate decisions, confirmations and tool executions. Every event is
linked to the previous one via SHA-256 hash chaining, so any modification
breaks the chain.

Features:
- Append-only: events can never be modified or deleted
- Tamper-evident: verify_integrity() recomputes the whole chain
- Exportable: JSON export for external review
"""

import hashlib
import json
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field
from rich.table import Table

from toolwarden.core.models import AuditEvent


class HashedEvent(BaseModel):
    """An audit event with its position in the hash chain."""

    event: AuditEvent
    hash: str = Field(..., description="SHA-256 hash of this event + previous hash")
    previous_hash: str = Field(..., description="Hash of the previous event")
    sequence: int = Field(0, description="Sequential event number")


def _event_digest(event: AuditEvent, previous_hash: str, sequence: int) -> str:
    content = json.dumps(
        {
            "id": event.id,
            "timestamp": event.timestamp.isoformat(),
            "session_id": event.session_id,
            "call_id": event.call_id,
            "event_type": event.event_type,
            "description": event.description,
            "details": event.details,
            "risk_class": event.risk_class.value if event.risk_class else None,
            "previous_hash": previous_hash,
            "sequence": sequence,
        },
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(content.encode()).hexdigest()


class AuditLog:
    """Append-only, hash-chained audit log."""

    GENESIS_HASH = "0" * 64

    def __init__(self):
        self._events: list[HashedEvent] = []
        self._current_hash: str = self.GENESIS_HASH

    def append(self, event: AuditEvent) -> HashedEvent:
        """Append an event, chaining it to the current head."""
        sequence = len(self._events)
        event_hash = _event_digest(event, self._current_hash, sequence)

        hashed = HashedEvent(
            event=event,
            hash=event_hash,
            previous_hash=self._current_hash,
            sequence=sequence,
        )
        self._events.append(hashed)
        self._current_hash = event_hash
        return hashed

    def record(self, event_type: str, description: str, **fields) -> HashedEvent:
        """Shorthand for ``append(AuditEvent(event_type=..., description=..., ...))``."""
        return self.append(AuditEvent(event_type=event_type, description=description, **fields))

    def verify_integrity(self) -> tuple[bool, str]:
        """Verify the entire chain is intact.

        Returns (is_valid, message).
        """
        if not self._events:
            return True, "Empty log, no events to verify"

        expected_prev = self.GENESIS_HASH
        for i, hashed in enumerate(self._events):
            if hashed.previous_hash != expected_prev:
                return False, (
                    f"Chain broken at event {i}: "
                    f"expected previous_hash={expected_prev[:16]}..., "
                    f"got {hashed.previous_hash[:16]}..."
                )

            recomputed = _event_digest(hashed.event, hashed.previous_hash, hashed.sequence)
            if recomputed != hashed.hash:
                return False, (
                    f"Tampered event at {i}: "
                    f"stored hash={hashed.hash[:16]}..., "
                    f"recomputed={recomputed[:16]}..."
                )
            expected_prev = hashed.hash

        return True, f"All {len(self._events)} events verified, chain intact"

    def get_events(
        self,
        session_id: str | None = None,
        call_id: str | None = None,
        event_type: str | None = None,
    ) -> list[HashedEvent]:
        """Query events with optional filters."""
        results = self._events
        if session_id:
            results = [e for e in results if e.event.session_id == session_id]
        if call_id:
            results = [e for e in results if e.event.call_id == call_id]
        if event_type:
            results = [e for e in results if e.event.event_type == event_type]
        return list(results)

    def export_json(self, path: str | Path) -> None:
        """Export the full log as JSON."""
        data = {
            "exported_at": datetime.now(UTC).isoformat(),
            "total_events": len(self._events),
            "chain_head": self._current_hash,
            "events": [
                {
                    "sequence": e.sequence,
                    "hash": e.hash,
                    "previous_hash": e.previous_hash,
                    "event": e.event.model_dump(mode="json"),
                }
                for e in self._events
            ],
        }
        Path(path).write_text(json.dumps(data, indent=2, default=str))

    def summary_table(self) -> Table:
        """Render the log as a rich table."""
        valid, msg = self.verify_integrity()
        table = Table(title=f"Audit log: {len(self._events)} events ({msg})")
        table.add_column("#", justify="right")
        table.add_column("Hash")
        table.add_column("Risk")
        table.add_column("Event")
        table.add_column("Description")
        for e in self._events:
            risk = e.event.risk_class.value if e.event.risk_class else "---"
            table.add_row(
                str(e.sequence),
                e.hash[:8],
                risk,
                e.event.event_type,
                e.event.description[:60],
            )
        if not valid:
            table.caption = "[red]Chain integrity check failed[/red]"
        return table

    @property
    def head_hash(self) -> str:
        return self._current_hash

    def __len__(self) -> int:
        return len(self._events)
