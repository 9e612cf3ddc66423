"""Trust resolver.

Combines a record's stored trust level with its quarantine status into a
single verdict. Checks run in a fixed order:

1. No provenance record            -> UNKNOWN
2. Active quarantine entry         -> FAIL (overrides any stored level)
3. Stored trust level trusted      -> PASS
   Stored trust level untrusted    -> FAIL
   Stored trust level unknown      -> UNKNOWN

Verification is a pure read.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from agent_provenance.trust.levels import TrustLevel, Verdict

if TYPE_CHECKING:
    from agent_provenance.custody.chain import ProvenanceRecord
    from agent_provenance.quarantine.manager import QuarantineEntry
    from agent_provenance.store.sqlite import StoreTransaction


class VerdictReason(str, Enum):
    """Which rule produced a verdict."""

    NO_RECORD = "no_record"
    QUARANTINED = "quarantined"
    POLICY = "policy"
    TRUST_LEVEL = "trust_level"


_LEVEL_VERDICTS: dict[TrustLevel, Verdict] = {
    TrustLevel.TRUSTED: Verdict.PASS,
    TrustLevel.UNTRUSTED: Verdict.FAIL,
    TrustLevel.UNKNOWN: Verdict.UNKNOWN,
}


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verifying one content id.

    Attributes
    ----------
    content_id:
        The id that was verified.
    verdict:
        PASS, FAIL or UNKNOWN.
    reason:
        Which rule decided the verdict.
    source:
        Current source of the record, or None when there is no record.
    trust_level:
        Stored trust level, or None when there is no record.
    policy_pattern:
        Pattern of the policy that set the stored level, when one did.
    quarantine_reason:
        Reason text of the active quarantine, when quarantined.
    """

    content_id: str
    verdict: Verdict
    reason: VerdictReason
    source: str | None = None
    trust_level: TrustLevel | None = None
    policy_pattern: str | None = None
    quarantine_reason: str | None = None

    @property
    def passed(self) -> bool:
        return self.verdict is Verdict.PASS

    @property
    def message(self) -> str:
        """One-line human-readable explanation, prefixed with the verdict."""
        label = self.verdict.value.upper()
        if self.reason is VerdictReason.NO_RECORD:
            return f"{label}: No provenance record for '{self.content_id}'"
        if self.reason is VerdictReason.QUARANTINED:
            return f"{label}: Content is quarantined ({self.quarantine_reason})"
        level = self.trust_level.value if self.trust_level is not None else "unknown"
        text = f"{label}: Content is {level} (source: {self.source})"
        if self.reason is VerdictReason.POLICY:
            text += f" via policy {self.policy_pattern}"
        return text

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.content_id,
            "verdict": self.verdict.value.upper(),
            "reason": self.reason.value,
            "source": self.source,
            "trust_level": self.trust_level.value if self.trust_level is not None else None,
            "policy_pattern": self.policy_pattern,
            "quarantine_reason": self.quarantine_reason,
            "message": self.message,
        }


def evaluate(
    content_id: str,
    record: ProvenanceRecord | None,
    quarantine: QuarantineEntry | None,
) -> VerificationResult:
    """Apply the resolution rules to already-loaded state."""
    if record is None:
        return VerificationResult(
            content_id=content_id,
            verdict=Verdict.UNKNOWN,
            reason=VerdictReason.NO_RECORD,
        )

    if quarantine is not None:
        return VerificationResult(
            content_id=content_id,
            verdict=Verdict.FAIL,
            reason=VerdictReason.QUARANTINED,
            source=record.source,
            trust_level=record.trust_level,
            quarantine_reason=quarantine.reason,
        )

    return VerificationResult(
        content_id=content_id,
        verdict=_LEVEL_VERDICTS[record.trust_level],
        reason=VerdictReason.POLICY if record.applied_policy else VerdictReason.TRUST_LEVEL,
        source=record.source,
        trust_level=record.trust_level,
        policy_pattern=record.applied_policy,
    )


class TrustResolver:
    """Verifies content ids against stored trust state."""

    def verify(self, tx: StoreTransaction, content_id: str) -> VerificationResult:
        """Return the verdict for ``content_id``.

        Parameters
        ----------
        tx:
            Open store transaction; only read from.
        content_id:
            The content to verify.

        Returns
        -------
        VerificationResult
            Verdict plus the reason it was reached.
        """
        record = tx.get(content_id)
        quarantine = tx.get_quarantine(content_id) if record is not None else None
        return evaluate(content_id, record, quarantine)


__all__ = [
    "TrustResolver",
    "VerdictReason",
    "VerificationResult",
    "evaluate",
]
