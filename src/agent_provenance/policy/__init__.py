"""Policy sub-package for agent-provenance.

Provides the first-match glob policy engine and YAML policy file
import/export.
"""
from __future__ import annotations

from agent_provenance.policy.engine import PolicyEngine, PolicyRule, glob_match
from agent_provenance.policy.loader import (
    PolicyFile,
    PolicyFileEntry,
    dump_policies,
    load_policy_file,
    parse_policies,
)

__all__ = [
    "PolicyEngine",
    "PolicyFile",
    "PolicyFileEntry",
    "PolicyRule",
    "dump_policies",
    "glob_match",
    "load_policy_file",
    "parse_policies",
]
