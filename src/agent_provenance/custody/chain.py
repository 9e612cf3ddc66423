"""Custody chain for provenance records.

Every source/trust assertion made for a content id is appended to that
record's custody chain, oldest first. Entries are never edited or removed;
the record's flat ``source`` and ``trust_level`` fields are a cache of the
most recent assertion (``trust_level`` may later be adjusted by a policy or
a quarantine without a new chain entry).
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from agent_provenance.trust.levels import DEFAULT_TRUST_LEVEL, TrustLevel

if TYPE_CHECKING:
    from agent_provenance.store.sqlite import StoreTransaction

logger = logging.getLogger(__name__)


def utcnow() -> datetime.datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class CustodyEntry:
    """One assertion in a custody chain.

    Attributes
    ----------
    source:
        The source string asserted by the caller.
    trust_level:
        The trust level the caller asked for (before any policy applied).
    at:
        When the assertion was made.
    """

    source: str
    trust_level: TrustLevel
    at: datetime.datetime

    def to_dict(self) -> dict[str, str]:
        """Serialise to the ``{source, trust, at}`` wire shape."""
        return {
            "source": self.source,
            "trust": self.trust_level.value,
            "at": self.at.isoformat(),
        }


@dataclass
class ProvenanceRecord:
    """Current and historical trust state for one content id.

    Attributes
    ----------
    content_id:
        Caller-supplied identity of the content.
    source:
        Source of the most recent assertion.
    trust_level:
        Effective trust level (after policy or quarantine adjustment).
    marked_at:
        Timestamp of the most recent assertion.
    custody_chain:
        Every assertion ever made for this id, oldest first.
    applied_policy:
        Pattern of the policy rule that set ``trust_level`` at the most
        recent assertion, or None if the caller's level was kept.
    """

    content_id: str
    source: str
    trust_level: TrustLevel = DEFAULT_TRUST_LEVEL
    marked_at: datetime.datetime = field(default_factory=utcnow)
    custody_chain: list[CustodyEntry] = field(default_factory=list)
    applied_policy: str | None = None

    @property
    def latest_entry(self) -> CustodyEntry | None:
        """The most recent custody entry, or None for an empty chain."""
        return self.custody_chain[-1] if self.custody_chain else None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.content_id,
            "source": self.source,
            "trust_level": self.trust_level.value,
            "marked_at": self.marked_at.isoformat(),
            "applied_policy": self.applied_policy,
            "custody_chain": [entry.to_dict() for entry in self.custody_chain],
        }


class CustodyChainManager:
    """Appends assertions to provenance records inside a store transaction."""

    def append(
        self,
        tx: StoreTransaction,
        content_id: str,
        source: str,
        trust_level: TrustLevel,
        at: datetime.datetime | None = None,
    ) -> tuple[ProvenanceRecord, bool]:
        """Record an assertion for ``content_id``.

        Creates the record on first assertion; otherwise appends a new entry
        to the existing chain, leaving prior entries untouched, and moves the
        flat fields to the new values.

        Parameters
        ----------
        tx:
            Open write transaction on the record store.
        content_id:
            Identity of the content being asserted.
        source:
            Asserted source string.
        trust_level:
            Caller-requested trust level.
        at:
            Assertion timestamp; defaults to now.

        Returns
        -------
        tuple[ProvenanceRecord, bool]
            The persisted record and True if it was newly created.
        """
        timestamp = at if at is not None else utcnow()
        entry = CustodyEntry(source=source, trust_level=trust_level, at=timestamp)

        record = tx.get(content_id)
        created = record is None
        if record is None:
            record = ProvenanceRecord(
                content_id=content_id,
                source=source,
                trust_level=trust_level,
                marked_at=timestamp,
                custody_chain=[entry],
            )
        else:
            record.custody_chain.append(entry)
            record.source = source
            record.trust_level = trust_level
            record.marked_at = timestamp
            record.applied_policy = None

        tx.put(record)
        logger.debug(
            "Custody chain for %s now has %d entries", content_id, len(record.custody_chain)
        )
        return record, created


__all__ = [
    "CustodyChainManager",
    "CustodyEntry",
    "ProvenanceRecord",
    "utcnow",
]
