#!/usr/bin/env python3
"""Example: Quickstart for agent-provenance

Minimal working example: add a trust policy, mark two pieces of content,
quarantine one of them and verify both.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install agent-provenance
"""
from __future__ import annotations

import tempfile
from pathlib import Path

import agent_provenance
from agent_provenance import ProvenanceConfig, ProvenanceService


def main() -> None:
    print(f"agent-provenance version: {agent_provenance.__version__}")

    with tempfile.TemporaryDirectory() as data_dir:
        service = ProvenanceService.from_config(ProvenanceConfig(data_dir=Path(data_dir)))
        try:
            # Step 1: Internal collaborators are trusted by policy
            change = service.add_policy("internal:*", "trusted")
            print(f"Policy: {change.rule.pattern} -> {change.rule.trust_level.value}")

            # Step 2: Mark content from two sources
            doc = service.mark_source("doc-456", "internal:collaborator")
            msg = service.mark_source("msg-123", "moltbook:@randomagent", "untrusted")
            for result in (doc, msg):
                line = (
                    f"  {result.record.content_id}: requested {result.requested_trust.value}, "
                    f"effective {result.effective_trust.value}"
                )
                if result.applied_policy is not None:
                    line += f" (policy {result.applied_policy.pattern})"
                print(line)

            # Step 3: Quarantine the suspicious message
            entry = service.quarantine("msg-123", "prompt injection attempt")
            print(f"\nQuarantined {entry.content_id}: {entry.reason}")

            # Step 4: Verify before acting
            print("\nVerification:")
            for content_id in ("doc-456", "msg-123", "never-seen"):
                print(f"  {content_id}: {service.verify(content_id).message}")
        finally:
            service.close()


if __name__ == "__main__":
    main()
