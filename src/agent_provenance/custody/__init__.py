"""Custody chain sub-package for agent-provenance.

Provides the provenance record model and the append-only custody chain
manager that records every source/trust assertion made for a content id.
"""
from __future__ import annotations

from agent_provenance.custody.chain import CustodyChainManager, CustodyEntry, ProvenanceRecord

__all__ = [
    "CustodyChainManager",
    "CustodyEntry",
    "ProvenanceRecord",
]
