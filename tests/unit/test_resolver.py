"""Tests for trust verdict evaluation."""
from __future__ import annotations

import datetime

import pytest

from agent_provenance.custody.chain import ProvenanceRecord
from agent_provenance.quarantine.manager import QuarantineEntry
from agent_provenance.trust.levels import TrustLevel, Verdict
from agent_provenance.trust.resolver import VerdictReason, evaluate

_T0 = datetime.datetime(2026, 5, 1, tzinfo=datetime.timezone.utc)


def _record(level: TrustLevel, policy: str | None = None) -> ProvenanceRecord:
    return ProvenanceRecord(
        content_id="m1",
        source="internal:bot",
        trust_level=level,
        marked_at=_T0,
        applied_policy=policy,
    )


class TestEvaluate:
    def test_no_record_is_unknown(self) -> None:
        result = evaluate("ghost", None, None)
        assert result.verdict is Verdict.UNKNOWN
        assert result.reason is VerdictReason.NO_RECORD
        assert result.message == "UNKNOWN: No provenance record for 'ghost'"
        assert not result.passed

    @pytest.mark.parametrize(
        ("level", "verdict"),
        [
            (TrustLevel.TRUSTED, Verdict.PASS),
            (TrustLevel.UNTRUSTED, Verdict.FAIL),
            (TrustLevel.UNKNOWN, Verdict.UNKNOWN),
        ],
    )
    def test_level_maps_to_verdict(self, level: TrustLevel, verdict: Verdict) -> None:
        result = evaluate("m1", _record(level), None)
        assert result.verdict is verdict
        assert result.reason is VerdictReason.TRUST_LEVEL

    @pytest.mark.parametrize("level", list(TrustLevel))
    def test_quarantine_overrides_every_level(self, level: TrustLevel) -> None:
        quarantine = QuarantineEntry(content_id="m1", reason="injection", quarantined_at=_T0)
        result = evaluate("m1", _record(level), quarantine)
        assert result.verdict is Verdict.FAIL
        assert result.reason is VerdictReason.QUARANTINED
        assert result.message == "FAIL: Content is quarantined (injection)"

    def test_policy_reason_and_message(self) -> None:
        result = evaluate("m1", _record(TrustLevel.TRUSTED, policy="internal:*"), None)
        assert result.passed
        assert result.reason is VerdictReason.POLICY
        assert result.message == (
            "PASS: Content is trusted (source: internal:bot) via policy internal:*"
        )

    def test_to_dict_uppercases_verdict(self) -> None:
        data = evaluate("m1", _record(TrustLevel.UNTRUSTED), None).to_dict()
        assert data["verdict"] == "FAIL"
        assert data["trust_level"] == "untrusted"
        assert data["message"].startswith("FAIL: ")
