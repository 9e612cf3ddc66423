"""Storage sub-package for agent-provenance.

Provides the SQLite-backed transactional record store.
"""
from __future__ import annotations

from agent_provenance.store.sqlite import RecordStore, StoreTransaction

__all__ = [
    "RecordStore",
    "StoreTransaction",
]
