"""Quarantine manager.

Quarantine isolates a content id: it records why, and forces the record's
effective trust level to ``untrusted``. While a quarantine entry exists,
verification fails regardless of the stored trust level. Records are never
deleted; quarantine is the way to take content out of circulation.
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from agent_provenance.custody.chain import utcnow
from agent_provenance.errors import ConflictError, NotFoundError, ValidationError
from agent_provenance.trust.levels import TrustLevel

if TYPE_CHECKING:
    from agent_provenance.store.sqlite import StoreTransaction

logger = logging.getLogger(__name__)

DEFAULT_REASON = "No reason provided"


@dataclass(frozen=True)
class QuarantineEntry:
    """An active quarantine for one content id.

    Attributes
    ----------
    content_id:
        The quarantined content; must have a provenance record.
    reason:
        Why the content was quarantined.
    quarantined_at:
        When the quarantine was put in place.
    """

    content_id: str
    reason: str = DEFAULT_REASON
    quarantined_at: datetime.datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, str]:
        return {
            "content_id": self.content_id,
            "reason": self.reason,
            "quarantined_at": self.quarantined_at.isoformat(),
        }


class QuarantineManager:
    """Creates and looks up quarantine entries inside a store transaction."""

    def quarantine(
        self,
        tx: StoreTransaction,
        content_id: str,
        reason: str | None = None,
        at: datetime.datetime | None = None,
    ) -> QuarantineEntry:
        """Quarantine ``content_id`` and force its trust level to untrusted.

        The trust level change is a direct update of the record; it does not
        add a custody chain entry.

        Parameters
        ----------
        tx:
            Open write transaction.
        content_id:
            Content to quarantine.
        reason:
            Free-form reason; blank or None uses :data:`DEFAULT_REASON`.
        at:
            Quarantine timestamp; defaults to now.

        Returns
        -------
        QuarantineEntry
            The new entry.

        Raises
        ------
        NotFoundError
            If no provenance record exists for ``content_id``.
        ConflictError
            If ``content_id`` is already quarantined.
        """
        if not content_id:
            raise ValidationError("Content id must not be empty")

        record = tx.get(content_id)
        if record is None:
            raise NotFoundError(
                f"No provenance record for '{content_id}'. "
                "Mark the content first with mark-source.",
                key=content_id,
            )

        if tx.get_quarantine(content_id) is not None:
            raise ConflictError(f"Content '{content_id}' is already quarantined", key=content_id)

        entry = QuarantineEntry(
            content_id=content_id,
            reason=reason.strip() if reason and reason.strip() else DEFAULT_REASON,
            quarantined_at=at if at is not None else utcnow(),
        )
        tx.put_quarantine(entry)

        record.trust_level = TrustLevel.UNTRUSTED
        tx.put(record)
        logger.info("Quarantined %s: %s", content_id, entry.reason)
        return entry

    def get(self, tx: StoreTransaction, content_id: str) -> QuarantineEntry | None:
        """Return the active quarantine for ``content_id``, if any."""
        return tx.get_quarantine(content_id)

    def list_entries(self, tx: StoreTransaction) -> list[QuarantineEntry]:
        """Return all quarantine entries, most recent first."""
        return tx.list_quarantine()


__all__ = [
    "DEFAULT_REASON",
    "QuarantineEntry",
    "QuarantineManager",
]
