"""Audit events.

Each successful state-changing command writes exactly one
:class:`AuditEvent`, inside the same transaction and after the change
itself. Events are append-only: the store offers no way to edit or delete
them.
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum

from agent_provenance.custody.chain import utcnow


class AuditAction(str, Enum):
    """Kinds of state change recorded in the audit log."""

    MARK_SOURCE = "mark_source"
    POLICY_ADD = "policy_add"
    POLICY_REMOVE = "policy_remove"
    POLICY_IMPORT = "policy_import"
    QUARANTINE = "quarantine"


@dataclass(frozen=True)
class AuditEvent:
    """A single audit log entry.

    Attributes
    ----------
    action:
        What kind of change happened.
    content_id:
        Content id the change applied to; None for policy administration.
    details:
        Free-form ``key=value`` summary of the change.
    timestamp:
        When the change was committed.
    event_id:
        Store-assigned sequence number; None until persisted.
    """

    action: AuditAction
    content_id: str | None
    details: str
    timestamp: datetime.datetime = field(default_factory=utcnow)
    event_id: int | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "action": self.action.value,
            "content_id": self.content_id,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


def format_details(**fields: object) -> str:
    """Render keyword fields as ``key=value`` pairs joined by commas."""
    return ", ".join(f"{key}={value}" for key, value in fields.items())


__all__ = [
    "AuditAction",
    "AuditEvent",
    "format_details",
]
