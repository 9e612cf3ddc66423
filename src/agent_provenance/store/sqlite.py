"""SQLite-backed record store.

Holds provenance records, their custody chains, trust policies, quarantine
entries and the audit log in a single database file. Every logical command
runs inside one transaction via :meth:`RecordStore.run`, so a crash can
never leave a custody chain updated while the record's flat fields are
stale, or the other way round.

Concurrency
-----------
Each CLI invocation is its own process with its own connection. Writers
take the database lock up front (``BEGIN IMMEDIATE``) so two concurrent
assertions on the same id serialise instead of interleaving. SQLite waits
up to ``busy_timeout_seconds`` for a competing writer; if the lock is still
held the whole transaction is rolled back and retried with exponential
backoff, up to ``max_retries`` attempts, before a :class:`StoreError` is
raised.

Policy reads see whatever was committed when the transaction started, so a
policy added by another process mid-command may or may not apply to that
command.
"""
from __future__ import annotations

import datetime
import logging
import sqlite3
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from agent_provenance.audit.events import AuditAction, AuditEvent
from agent_provenance.config import ProvenanceConfig
from agent_provenance.custody.chain import CustodyEntry, ProvenanceRecord
from agent_provenance.errors import ConflictError, NotFoundError, StoreError
from agent_provenance.policy.engine import PolicyRule
from agent_provenance.quarantine.manager import QuarantineEntry
from agent_provenance.trust.levels import TrustLevel

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS content (
    id TEXT PRIMARY KEY,
    source TEXT NOT NULL,
    trust_level TEXT NOT NULL DEFAULT 'unknown',
    marked_at TEXT NOT NULL,
    applied_policy TEXT
);
CREATE INDEX IF NOT EXISTS idx_content_source ON content(source);
CREATE INDEX IF NOT EXISTS idx_content_trust ON content(trust_level);

CREATE TABLE IF NOT EXISTS custody_chain (
    content_id TEXT NOT NULL REFERENCES content(id),
    seq INTEGER NOT NULL,
    source TEXT NOT NULL,
    trust_level TEXT NOT NULL,
    at TEXT NOT NULL,
    PRIMARY KEY (content_id, seq)
);

CREATE TABLE IF NOT EXISTS policies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pattern TEXT NOT NULL UNIQUE,
    trust_level TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS quarantine (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    content_id TEXT NOT NULL UNIQUE REFERENCES content(id),
    reason TEXT NOT NULL,
    quarantined_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    action TEXT NOT NULL,
    content_id TEXT,
    details TEXT NOT NULL,
    timestamp TEXT NOT NULL
);

CREATE TRIGGER IF NOT EXISTS custody_chain_no_update
BEFORE UPDATE ON custody_chain
BEGIN
    SELECT RAISE(ABORT, 'custody chain entries are immutable');
END;

CREATE TRIGGER IF NOT EXISTS custody_chain_no_delete
BEFORE DELETE ON custody_chain
BEGIN
    SELECT RAISE(ABORT, 'custody chain entries are immutable');
END;

CREATE TRIGGER IF NOT EXISTS audit_log_no_update
BEFORE UPDATE ON audit_log
BEGIN
    SELECT RAISE(ABORT, 'audit events are immutable');
END;

CREATE TRIGGER IF NOT EXISTS audit_log_no_delete
BEFORE DELETE ON audit_log
BEGIN
    SELECT RAISE(ABORT, 'audit events are immutable');
END;
"""


def _to_ts(value: datetime.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc).isoformat()


def _from_ts(value: str) -> datetime.datetime:
    parsed = datetime.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


def _is_lock_error(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def _row_to_policy(row: sqlite3.Row) -> PolicyRule:
    return PolicyRule(
        pattern=row["pattern"],
        trust_level=TrustLevel(row["trust_level"]),
        created_at=_from_ts(row["created_at"]),
        rule_id=row["id"],
    )


def _row_to_quarantine(row: sqlite3.Row) -> QuarantineEntry:
    return QuarantineEntry(
        content_id=row["content_id"],
        reason=row["reason"],
        quarantined_at=_from_ts(row["quarantined_at"]),
    )


def _row_to_audit(row: sqlite3.Row) -> AuditEvent:
    return AuditEvent(
        action=AuditAction(row["action"]),
        content_id=row["content_id"],
        details=row["details"],
        timestamp=_from_ts(row["timestamp"]),
        event_id=row["id"],
    )


class StoreTransaction:
    """Record-level operations bound to one open transaction.

    Instances are handed out by :meth:`RecordStore.transaction` and must not
    be used after the ``with`` block exits.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Provenance records
    # ------------------------------------------------------------------

    def get(self, content_id: str) -> ProvenanceRecord | None:
        """Load a record together with its full custody chain."""
        row = self._conn.execute(
            "SELECT id, source, trust_level, marked_at, applied_policy "
            "FROM content WHERE id = ?",
            (content_id,),
        ).fetchone()
        if row is None:
            return None

        chain_rows = self._conn.execute(
            "SELECT source, trust_level, at FROM custody_chain "
            "WHERE content_id = ? ORDER BY seq",
            (content_id,),
        ).fetchall()
        return ProvenanceRecord(
            content_id=row["id"],
            source=row["source"],
            trust_level=TrustLevel(row["trust_level"]),
            marked_at=_from_ts(row["marked_at"]),
            custody_chain=[
                CustodyEntry(
                    source=chain_row["source"],
                    trust_level=TrustLevel(chain_row["trust_level"]),
                    at=_from_ts(chain_row["at"]),
                )
                for chain_row in chain_rows
            ],
            applied_policy=row["applied_policy"],
        )

    def put(self, record: ProvenanceRecord) -> None:
        """Upsert a record's flat fields and append any new chain entries.

        Entries already persisted are left exactly as stored; only the tail
        beyond the stored chain length is inserted.

        Raises
        ------
        StoreError
            If the record has an empty chain, or a chain shorter than the one
            already stored.
        """
        if not record.custody_chain:
            raise StoreError(f"Record '{record.content_id}' has an empty custody chain")

        stored = self._conn.execute(
            "SELECT COUNT(*) FROM custody_chain WHERE content_id = ?",
            (record.content_id,),
        ).fetchone()[0]
        if len(record.custody_chain) < stored:
            raise StoreError(
                f"Custody chain for '{record.content_id}' cannot shrink "
                f"({stored} stored, {len(record.custody_chain)} given)"
            )

        self._conn.execute(
            "INSERT INTO content (id, source, trust_level, marked_at, applied_policy) "
            "VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "source = excluded.source, "
            "trust_level = excluded.trust_level, "
            "marked_at = excluded.marked_at, "
            "applied_policy = excluded.applied_policy",
            (
                record.content_id,
                record.source,
                record.trust_level.value,
                _to_ts(record.marked_at),
                record.applied_policy,
            ),
        )
        self._conn.executemany(
            "INSERT INTO custody_chain (content_id, seq, source, trust_level, at) "
            "VALUES (?, ?, ?, ?, ?)",
            [
                (record.content_id, seq, entry.source, entry.trust_level.value, _to_ts(entry.at))
                for seq, entry in enumerate(record.custody_chain[stored:], start=stored + 1)
            ],
        )

    def count_records(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM content").fetchone()[0]

    def count_by_trust_level(self) -> dict[TrustLevel, int]:
        """Return the number of records at each trust level (zero-filled)."""
        counts = {level: 0 for level in TrustLevel}
        rows = self._conn.execute(
            "SELECT trust_level, COUNT(*) AS n FROM content GROUP BY trust_level"
        ).fetchall()
        for row in rows:
            counts[TrustLevel(row["trust_level"])] = row["n"]
        return counts

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def list_policies(self) -> list[PolicyRule]:
        """Return all rules in creation (sequence) order."""
        rows = self._conn.execute(
            "SELECT id, pattern, trust_level, created_at FROM policies ORDER BY id"
        ).fetchall()
        return [_row_to_policy(row) for row in rows]

    def get_policy(self, pattern: str) -> PolicyRule | None:
        row = self._conn.execute(
            "SELECT id, pattern, trust_level, created_at FROM policies WHERE pattern = ?",
            (pattern,),
        ).fetchone()
        return _row_to_policy(row) if row is not None else None

    def put_policy(self, rule: PolicyRule) -> PolicyRule:
        """Insert a rule, or update the trust level of the rule with its pattern.

        Returns
        -------
        PolicyRule
            The rule as stored, including its sequence number.
        """
        self._conn.execute(
            "INSERT INTO policies (pattern, trust_level, created_at) VALUES (?, ?, ?) "
            "ON CONFLICT(pattern) DO UPDATE SET trust_level = excluded.trust_level",
            (rule.pattern, rule.trust_level.value, _to_ts(rule.created_at)),
        )
        stored = self.get_policy(rule.pattern)
        if stored is None:
            raise StoreError(f"Policy {rule.pattern!r} vanished during write")
        return stored

    def delete_policy(self, pattern: str) -> bool:
        """Delete the rule with ``pattern``; return False if there was none."""
        cursor = self._conn.execute("DELETE FROM policies WHERE pattern = ?", (pattern,))
        return cursor.rowcount > 0

    def count_policies(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM policies").fetchone()[0]

    # ------------------------------------------------------------------
    # Quarantine
    # ------------------------------------------------------------------

    def put_quarantine(self, entry: QuarantineEntry) -> None:
        """Insert a quarantine entry.

        Raises
        ------
        ConflictError
            If the content id is already quarantined.
        NotFoundError
            If the content id has no provenance record.
        """
        try:
            self._conn.execute(
                "INSERT INTO quarantine (content_id, reason, quarantined_at) VALUES (?, ?, ?)",
                (entry.content_id, entry.reason, _to_ts(entry.quarantined_at)),
            )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc).upper():
                raise ConflictError(
                    f"Content '{entry.content_id}' is already quarantined",
                    key=entry.content_id,
                ) from exc
            raise NotFoundError(
                f"No provenance record for '{entry.content_id}'", key=entry.content_id
            ) from exc

    def get_quarantine(self, content_id: str) -> QuarantineEntry | None:
        row = self._conn.execute(
            "SELECT content_id, reason, quarantined_at FROM quarantine WHERE content_id = ?",
            (content_id,),
        ).fetchone()
        return _row_to_quarantine(row) if row is not None else None

    def list_quarantine(self) -> list[QuarantineEntry]:
        """Return all quarantine entries, most recent first."""
        rows = self._conn.execute(
            "SELECT content_id, reason, quarantined_at FROM quarantine "
            "ORDER BY quarantined_at DESC, id DESC"
        ).fetchall()
        return [_row_to_quarantine(row) for row in rows]

    def count_quarantine(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM quarantine").fetchone()[0]

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def append_audit(self, event: AuditEvent) -> AuditEvent:
        """Append an event to the audit log and return it with its sequence number."""
        cursor = self._conn.execute(
            "INSERT INTO audit_log (action, content_id, details, timestamp) VALUES (?, ?, ?, ?)",
            (event.action.value, event.content_id, event.details, _to_ts(event.timestamp)),
        )
        return AuditEvent(
            action=event.action,
            content_id=event.content_id,
            details=event.details,
            timestamp=event.timestamp,
            event_id=cursor.lastrowid,
        )

    def recent_audit(self, limit: int = 5) -> list[AuditEvent]:
        """Return the ``limit`` most recent audit events, newest first."""
        rows = self._conn.execute(
            "SELECT id, action, content_id, details, timestamp FROM audit_log "
            "ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [_row_to_audit(row) for row in rows]


class RecordStore:
    """Transactional store for provenance state.

    Parameters
    ----------
    config:
        Storage location and lock-wait tuning. The data directory is created
        if it does not exist.
    sleep:
        Function used to wait between retries; injectable for tests.
    """

    def __init__(
        self,
        config: ProvenanceConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._sleep = sleep
        self._lock = threading.RLock()
        config.ensure_data_dir()
        try:
            self._conn = sqlite3.connect(
                str(config.db_path),
                timeout=config.busy_timeout_seconds,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open provenance database {config.db_path}: {exc}") from exc
        self._conn.row_factory = sqlite3.Row
        self._with_retry(self._init_schema, "schema initialisation")
        logger.debug("Opened provenance store at %s", config.db_path)

    @property
    def config(self) -> ProvenanceConfig:
        return self._config

    def _init_schema(self) -> None:
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.executescript(_SCHEMA)

    @contextmanager
    def transaction(self, write: bool = True) -> Iterator[StoreTransaction]:
        """Open a transaction; commit on success, roll back on any exception.

        Parameters
        ----------
        write:
            Take the write lock immediately (``BEGIN IMMEDIATE``). Read-only
            callers pass False for a deferred snapshot transaction.
        """
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            logger.debug("Began %s transaction", "write" if write else "read")
            try:
                yield StoreTransaction(self._conn)
                self._conn.execute("COMMIT")
            except BaseException:
                if self._conn.in_transaction:
                    self._conn.execute("ROLLBACK")
                    logger.debug("Rolled back transaction")
                raise
            logger.debug("Committed transaction")

    def run(self, fn: Callable[[StoreTransaction], T], write: bool = True) -> T:
        """Run ``fn`` inside a single transaction, retrying on lock contention.

        Domain errors raised by ``fn`` roll the transaction back and
        propagate unchanged; they are never retried.

        Raises
        ------
        StoreError
            If the database stays locked for every attempt, or any other
            SQLite failure occurs.
        """

        def attempt() -> T:
            with self.transaction(write=write) as tx:
                return fn(tx)

        return self._with_retry(attempt, "write transaction" if write else "read transaction")

    def _with_retry(self, operation: Callable[[], T], description: str) -> T:
        max_attempts = max(1, self._config.max_retries)
        attempt = 1
        while True:
            try:
                return operation()
            except sqlite3.OperationalError as exc:
                if not _is_lock_error(exc):
                    raise StoreError(f"{description} failed: {exc}", attempts=attempt) from exc
                if attempt >= max_attempts:
                    logger.error(
                        "Provenance store still locked after %d attempts (%s)",
                        attempt,
                        description,
                    )
                    raise StoreError(
                        f"Provenance store is locked by another writer; "
                        f"gave up after {attempt} attempts",
                        attempts=attempt,
                    ) from exc
                delay = self._config.retry_backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "Provenance store locked during %s (attempt %d/%d); retrying in %.3fs",
                    description,
                    attempt,
                    max_attempts,
                    delay,
                )
                self._sleep(delay)
                attempt += 1
            except sqlite3.Error as exc:
                raise StoreError(f"{description} failed: {exc}", attempts=attempt) from exc

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "RecordStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "RecordStore",
    "StoreTransaction",
]
