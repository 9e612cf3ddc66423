"""Command layer for agent-provenance.

:class:`ProvenanceService` is what the CLI (and library callers) talk to.
Each public method is one logical command: it validates its arguments,
runs all of its reads and writes plus its single audit event inside one
store transaction, and returns a result object describing what happened.

Example
-------
::

    from agent_provenance import ProvenanceConfig, ProvenanceService

    service = ProvenanceService.from_config(ProvenanceConfig.from_env())
    service.add_policy("internal:*", "trusted")
    result = service.mark_source("m1", "internal:bot")
    result.applied_policy.pattern        # 'internal:*'
    service.verify("m1").verdict         # Verdict.PASS
"""
from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from agent_provenance.audit.events import AuditAction, AuditEvent, format_details
from agent_provenance.config import ProvenanceConfig
from agent_provenance.custody.chain import CustodyChainManager, ProvenanceRecord, utcnow
from agent_provenance.errors import NotFoundError, ValidationError
from agent_provenance.policy.engine import PolicyEngine, PolicyRule
from agent_provenance.policy.loader import dump_policies, load_policy_file
from agent_provenance.quarantine.manager import QuarantineEntry, QuarantineManager
from agent_provenance.store.sqlite import RecordStore, StoreTransaction
from agent_provenance.trust.levels import (
    DEFAULT_TRUST_LEVEL,
    TrustLevel,
    ensure_utf8,
    parse_trust_level,
)
from agent_provenance.trust.resolver import TrustResolver, VerificationResult

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 5


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MarkResult:
    """Outcome of a mark-source command.

    Attributes
    ----------
    record:
        The record as committed.
    created:
        True if this was the first assertion for the id.
    requested_trust:
        Trust level the caller asked for (what the custody chain recorded).
    applied_policy:
        The policy rule that overrode the requested level, if any.
    """

    record: ProvenanceRecord
    created: bool
    requested_trust: TrustLevel
    applied_policy: PolicyRule | None = None

    @property
    def effective_trust(self) -> TrustLevel:
        return self.record.trust_level

    @property
    def policy_overrode(self) -> bool:
        """True when a policy changed the level away from the requested one."""
        return self.applied_policy is not None and self.effective_trust is not self.requested_trust


@dataclass(frozen=True)
class ProvenanceReport:
    """A record plus its quarantine status, as shown by check-provenance."""

    record: ProvenanceRecord
    quarantine: QuarantineEntry | None = None

    @property
    def quarantined(self) -> bool:
        return self.quarantine is not None

    def to_dict(self) -> dict[str, object]:
        output = self.record.to_dict()
        output["quarantine"] = self.quarantine.to_dict() if self.quarantine is not None else None
        return output


@dataclass(frozen=True)
class QuarantinedItem:
    """A quarantine entry joined with the current source of its record."""

    entry: QuarantineEntry
    source: str

    def to_dict(self) -> dict[str, str]:
        output = self.entry.to_dict()
        output["source"] = self.source
        return output


@dataclass(frozen=True)
class PolicyChange:
    """Outcome of adding or updating a single policy rule."""

    rule: PolicyRule
    created: bool


@dataclass(frozen=True)
class ImportSummary:
    """Outcome of importing a policy file."""

    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.updated)


@dataclass(frozen=True)
class ProvenanceStats:
    """Store-wide counts and recent activity."""

    total: int
    by_trust_level: dict[TrustLevel, int]
    quarantined: int
    policies: int
    recent_activity: list[AuditEvent]

    def to_dict(self) -> dict[str, object]:
        return {
            "content_tracked": self.total,
            "by_trust_level": {level.value: count for level, count in self.by_trust_level.items()},
            "quarantined": self.quarantined,
            "policies": self.policies,
            "recent_activity": [event.to_dict() for event in self.recent_activity],
        }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


def _require(value: str, name: str) -> str:
    if not value:
        raise ValidationError(f"Missing required argument: {name}")
    return ensure_utf8(value, name)


class ProvenanceService:
    """Provenance bookkeeping and trust evaluation over a record store.

    Parameters
    ----------
    store:
        The transactional record store to operate on.
    clock:
        Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self._store = store
        self._clock = clock
        self._custody = CustodyChainManager()
        self._policies = PolicyEngine()
        self._quarantine = QuarantineManager()
        self._resolver = TrustResolver()

    @classmethod
    def from_config(cls, config: ProvenanceConfig) -> "ProvenanceService":
        """Open the store described by ``config`` and wrap it in a service."""
        return cls(RecordStore(config))

    @property
    def store(self) -> RecordStore:
        return self._store

    def close(self) -> None:
        self._store.close()

    # ------------------------------------------------------------------
    # Assertions
    # ------------------------------------------------------------------

    def mark_source(
        self,
        content_id: str,
        source: str,
        trust_level: Union[str, TrustLevel] = DEFAULT_TRUST_LEVEL,
    ) -> MarkResult:
        """Assert a source (and trust level) for a piece of content.

        The custody chain records exactly what was asked for. Policies are
        then evaluated against the new source; when one matches, its trust
        level replaces the record's effective level and the rule is reported
        back in :attr:`MarkResult.applied_policy`.

        Raises
        ------
        ValidationError
            If the id or source is empty, or the trust level is not valid.
        """
        _require(content_id, "id")
        _require(source, "source")
        requested = parse_trust_level(trust_level)
        now = self._clock()

        def command(tx: StoreTransaction) -> MarkResult:
            record, created = self._custody.append(tx, content_id, source, requested, at=now)

            rule = self._policies.resolve(tx, source)
            if rule is not None:
                record.trust_level = rule.trust_level
                record.applied_policy = rule.pattern
                tx.put(record)

            details = {"source": source, "trust": requested.value}
            if rule is not None:
                details["policy"] = f"{rule.pattern} -> {rule.trust_level.value}"
            tx.append_audit(
                AuditEvent(
                    action=AuditAction.MARK_SOURCE,
                    content_id=content_id,
                    details=format_details(**details),
                    timestamp=now,
                )
            )
            return MarkResult(
                record=record,
                created=created,
                requested_trust=requested,
                applied_policy=rule,
            )

        result = self._store.run(command)
        logger.info(
            "%s provenance for %s (source=%s, requested=%s, effective=%s)",
            "Marked" if result.created else "Updated",
            content_id,
            source,
            requested.value,
            result.effective_trust.value,
        )
        if result.applied_policy is not None:
            logger.info(
                "Policy %r applied to %s -> %s",
                result.applied_policy.pattern,
                content_id,
                result.applied_policy.trust_level.value,
            )
        return result

    def check_provenance(self, content_id: str) -> ProvenanceReport:
        """Return the full record and quarantine status for ``content_id``.

        Raises
        ------
        NotFoundError
            If no record exists.
        """
        _require(content_id, "id")

        def query(tx: StoreTransaction) -> ProvenanceReport:
            record = tx.get(content_id)
            if record is None:
                raise NotFoundError(f"No provenance record found for '{content_id}'", key=content_id)
            return ProvenanceReport(record=record, quarantine=self._quarantine.get(tx, content_id))

        return self._store.run(query, write=False)

    def verify(self, content_id: str) -> VerificationResult:
        """Return the trust verdict for ``content_id`` (pure read)."""
        _require(content_id, "id")
        return self._store.run(lambda tx: self._resolver.verify(tx, content_id), write=False)

    # ------------------------------------------------------------------
    # Quarantine
    # ------------------------------------------------------------------

    def quarantine(self, content_id: str, reason: str | None = None) -> QuarantineEntry:
        """Quarantine ``content_id``.

        Raises
        ------
        NotFoundError
            If the content has never been marked.
        ConflictError
            If it is already quarantined. Nothing is changed.
        """
        _require(content_id, "id")
        if reason:
            ensure_utf8(reason, "reason")
        now = self._clock()

        def command(tx: StoreTransaction) -> QuarantineEntry:
            entry = self._quarantine.quarantine(tx, content_id, reason, at=now)
            tx.append_audit(
                AuditEvent(
                    action=AuditAction.QUARANTINE,
                    content_id=content_id,
                    details=format_details(reason=entry.reason),
                    timestamp=now,
                )
            )
            return entry

        return self._store.run(command)

    def list_quarantine(self) -> list[QuarantinedItem]:
        """Return every quarantined item with its current source, newest first."""

        def query(tx: StoreTransaction) -> list[QuarantinedItem]:
            items: list[QuarantinedItem] = []
            for entry in self._quarantine.list_entries(tx):
                record = tx.get(entry.content_id)
                items.append(
                    QuarantinedItem(entry=entry, source=record.source if record else "")
                )
            return items

        return self._store.run(query, write=False)

    # ------------------------------------------------------------------
    # Policy administration
    # ------------------------------------------------------------------

    def add_policy(self, pattern: str, trust_level: Union[str, TrustLevel]) -> PolicyChange:
        """Add a policy rule, or update the trust level of an existing pattern."""
        _require(pattern, "pattern")
        level = parse_trust_level(trust_level)
        now = self._clock()

        def command(tx: StoreTransaction) -> PolicyChange:
            rule, created = self._policies.add(tx, pattern, level, at=now)
            tx.append_audit(
                AuditEvent(
                    action=AuditAction.POLICY_ADD,
                    content_id=None,
                    details=format_details(pattern=pattern, trust=level.value),
                    timestamp=now,
                )
            )
            return PolicyChange(rule=rule, created=created)

        return self._store.run(command)

    def remove_policy(self, pattern: str) -> PolicyRule:
        """Remove the policy rule with ``pattern``.

        Raises
        ------
        NotFoundError
            If no rule has that pattern; the policy set is unchanged.
        """
        _require(pattern, "pattern")
        now = self._clock()

        def command(tx: StoreTransaction) -> PolicyRule:
            rule = self._policies.remove(tx, pattern)
            tx.append_audit(
                AuditEvent(
                    action=AuditAction.POLICY_REMOVE,
                    content_id=None,
                    details=format_details(pattern=pattern),
                    timestamp=now,
                )
            )
            return rule

        return self._store.run(command)

    def list_policies(self) -> list[PolicyRule]:
        """Return all policy rules ordered by creation time."""
        return self._store.run(self._policies.list_rules, write=False)

    def resolve_source(self, source: str) -> PolicyRule | None:
        """Return the rule that would decide ``source`` right now, if any."""
        _require(source, "source")
        return self._store.run(lambda tx: self._policies.resolve(tx, source), write=False)

    def import_policies(self, path: Union[str, Path]) -> ImportSummary:
        """Upsert every rule from a YAML policy file in one transaction.

        The whole file is validated before anything is written.

        Raises
        ------
        ValidationError
            If the file is unreadable or malformed.
        """
        entries = load_policy_file(path)
        now = self._clock()

        def command(tx: StoreTransaction) -> ImportSummary:
            summary = ImportSummary()
            for pattern, level in entries:
                _rule, created = self._policies.add(tx, pattern, level, at=now)
                (summary.added if created else summary.updated).append(pattern)
            tx.append_audit(
                AuditEvent(
                    action=AuditAction.POLICY_IMPORT,
                    content_id=None,
                    details=format_details(
                        file=Path(path).name,
                        added=len(summary.added),
                        updated=len(summary.updated),
                    ),
                    timestamp=now,
                )
            )
            return summary

        return self._store.run(command)

    def export_policies(self) -> str:
        """Render the current rules, in creation order, as a YAML policy file."""
        return dump_policies(self.list_policies())

    # ------------------------------------------------------------------
    # Overview
    # ------------------------------------------------------------------

    def stats(self) -> ProvenanceStats:
        """Return counts by trust level, quarantine and policy totals, and recent activity."""

        def query(tx: StoreTransaction) -> ProvenanceStats:
            return ProvenanceStats(
                total=tx.count_records(),
                by_trust_level=tx.count_by_trust_level(),
                quarantined=tx.count_quarantine(),
                policies=tx.count_policies(),
                recent_activity=tx.recent_audit(RECENT_ACTIVITY_LIMIT),
            )

        return self._store.run(query, write=False)


__all__ = [
    "ImportSummary",
    "MarkResult",
    "PolicyChange",
    "ProvenanceReport",
    "ProvenanceService",
    "ProvenanceStats",
    "QuarantinedItem",
]
