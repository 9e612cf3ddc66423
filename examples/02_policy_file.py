#!/usr/bin/env python3
"""Example: Policy files and custody chains

Loads trust policies from YAML, shows that the first matching policy in
creation order wins, and prints the custody chain of a re-marked item.

Usage:
    python examples/02_policy_file.py
"""
from __future__ import annotations

import tempfile
from pathlib import Path

from agent_provenance import ProvenanceConfig, ProvenanceService

POLICY_YAML = """\
version: "1.0"
policies:
  - pattern: "a:*"
    trust_level: trusted
  - pattern: "a:b*"
    trust_level: untrusted
  - pattern: "moltbook:*"
    trust_level: untrusted
"""


def main() -> None:
    with tempfile.TemporaryDirectory() as data_dir:
        root = Path(data_dir)
        policy_file = root / "policies.yaml"
        policy_file.write_text(POLICY_YAML, encoding="utf-8")

        service = ProvenanceService.from_config(ProvenanceConfig(data_dir=root))
        try:
            summary = service.import_policies(policy_file)
            print(f"Imported {summary.total} policies")

            # "a:*" was created first, so it decides "a:b1" even though "a:b*" is more specific
            rule = service.resolve_source("a:b1")
            print(f"a:b1 resolves via {rule.pattern if rule else None}")

            service.mark_source("m1", "a:b1", "unknown")
            service.mark_source("m1", "moltbook:@x", "trusted")
            report = service.check_provenance("m1")
            print(f"\nm1 is now {report.record.trust_level.value}")
            print("Custody chain:")
            for index, entry in enumerate(report.record.custody_chain, start=1):
                print(f"  {index}. {entry.source} ({entry.trust_level.value})")

            print("\nExported policies:")
            print(service.export_policies())
        finally:
            service.close()


if __name__ == "__main__":
    main()
