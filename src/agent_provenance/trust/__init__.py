"""Trust sub-package for agent-provenance.

Provides trust levels, verdicts, and the resolver that turns stored trust
state and quarantine status into a verdict.
"""
from __future__ import annotations

from agent_provenance.trust.levels import TrustLevel, Verdict, parse_trust_level
from agent_provenance.trust.resolver import TrustResolver, VerdictReason, VerificationResult

__all__ = [
    "TrustLevel",
    "TrustResolver",
    "Verdict",
    "VerdictReason",
    "VerificationResult",
    "parse_trust_level",
]
