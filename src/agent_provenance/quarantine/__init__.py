"""Quarantine sub-package for agent-provenance."""
from __future__ import annotations

from agent_provenance.quarantine.manager import DEFAULT_REASON, QuarantineEntry, QuarantineManager

__all__ = [
    "DEFAULT_REASON",
    "QuarantineEntry",
    "QuarantineManager",
]
