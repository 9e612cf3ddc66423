"""Audit sub-package for agent-provenance."""
from __future__ import annotations

from agent_provenance.audit.events import AuditAction, AuditEvent

__all__ = [
    "AuditAction",
    "AuditEvent",
]
