"""agent-provenance — Content origin tracking and trust policy for multi-agent environments.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import agent_provenance
>>> agent_provenance.__version__
'0.1.0'

Marking and verifying
---------------------
>>> from agent_provenance import ProvenanceConfig, ProvenanceService
>>> service = ProvenanceService.from_config(ProvenanceConfig.from_env())
>>> service.mark_source("msg-123", "moltbook:@randomagent", "untrusted")

Policies
--------
>>> from agent_provenance import PolicyRule, glob_match
>>> glob_match("internal:*", "internal:collaborator")
True

Quarantine
----------
>>> from agent_provenance import QuarantineEntry, QuarantineManager
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ---------------------------------------------------------------------------
# Configuration and errors
# ---------------------------------------------------------------------------
from agent_provenance.config import ProvenanceConfig
from agent_provenance.errors import (
    ConflictError,
    NotFoundError,
    ProvenanceError,
    StoreError,
    ValidationError,
)

# ---------------------------------------------------------------------------
# Trust
# ---------------------------------------------------------------------------
from agent_provenance.trust.levels import TrustLevel, Verdict, parse_trust_level
from agent_provenance.trust.resolver import TrustResolver, VerdictReason, VerificationResult

# ---------------------------------------------------------------------------
# Custody, policy, quarantine, audit
# ---------------------------------------------------------------------------
from agent_provenance.audit.events import AuditAction, AuditEvent
from agent_provenance.custody.chain import CustodyChainManager, CustodyEntry, ProvenanceRecord
from agent_provenance.policy.engine import PolicyEngine, PolicyRule, glob_match
from agent_provenance.quarantine.manager import QuarantineEntry, QuarantineManager

# ---------------------------------------------------------------------------
# Store and command layer
# ---------------------------------------------------------------------------
from agent_provenance.store.sqlite import RecordStore, StoreTransaction
from agent_provenance.service import (
    ImportSummary,
    MarkResult,
    PolicyChange,
    ProvenanceReport,
    ProvenanceService,
    ProvenanceStats,
    QuarantinedItem,
)

__all__ = [
    "__version__",
    # Configuration and errors
    "ConflictError",
    "NotFoundError",
    "ProvenanceConfig",
    "ProvenanceError",
    "StoreError",
    "ValidationError",
    # Trust
    "TrustLevel",
    "TrustResolver",
    "Verdict",
    "VerdictReason",
    "VerificationResult",
    "parse_trust_level",
    # Custody, policy, quarantine, audit
    "AuditAction",
    "AuditEvent",
    "CustodyChainManager",
    "CustodyEntry",
    "PolicyEngine",
    "PolicyRule",
    "ProvenanceRecord",
    "QuarantineEntry",
    "QuarantineManager",
    "glob_match",
    # Store and command layer
    "ImportSummary",
    "MarkResult",
    "PolicyChange",
    "ProvenanceReport",
    "ProvenanceService",
    "ProvenanceStats",
    "QuarantinedItem",
    "RecordStore",
    "StoreTransaction",
]
