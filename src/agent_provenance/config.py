"""Runtime configuration for the provenance store.

The storage location is resolved once, when the CLI starts, and passed
explicitly into :class:`~agent_provenance.store.sqlite.RecordStore`:

1. ``PROVENANCE_DIR`` if set and non-empty.
2. ``~/.provenance`` otherwise.

Lock-wait tuning can be adjusted with ``PROVENANCE_BUSY_TIMEOUT`` (seconds)
and ``PROVENANCE_MAX_RETRIES``.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from agent_provenance.errors import ValidationError

logger = logging.getLogger(__name__)

ENV_DATA_DIR = "PROVENANCE_DIR"
ENV_BUSY_TIMEOUT = "PROVENANCE_BUSY_TIMEOUT"
ENV_MAX_RETRIES = "PROVENANCE_MAX_RETRIES"

DEFAULT_DIR_NAME = ".provenance"
DEFAULT_DB_FILENAME = "trust.db"


def default_data_dir() -> Path:
    """Return the platform default storage directory (``~/.provenance``)."""
    return Path.home() / DEFAULT_DIR_NAME


@dataclass(frozen=True)
class ProvenanceConfig:
    """Where and how the record store keeps its data.

    Attributes
    ----------
    data_dir:
        Directory holding the SQLite database file.
    db_filename:
        Name of the database file inside ``data_dir``.
    busy_timeout_seconds:
        How long SQLite waits on a lock held by another writer before the
        attempt fails.
    max_retries:
        Number of transaction attempts before a lock failure becomes a
        :class:`~agent_provenance.errors.StoreError`.
    retry_backoff_seconds:
        Base delay between attempts; doubled after each failure.
    """

    data_dir: Path
    db_filename: str = DEFAULT_DB_FILENAME
    busy_timeout_seconds: float = 5.0
    max_retries: int = 5
    retry_backoff_seconds: float = 0.05

    @property
    def db_path(self) -> Path:
        """Full path of the SQLite database file."""
        return self.data_dir / self.db_filename

    def ensure_data_dir(self) -> Path:
        """Create ``data_dir`` if it does not exist yet and return it."""
        if not self.data_dir.exists():
            logger.info("Creating provenance directory %s", self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.data_dir

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ProvenanceConfig":
        """Build a config from environment variables.

        Parameters
        ----------
        environ:
            Mapping to read from; defaults to ``os.environ``.

        Returns
        -------
        ProvenanceConfig
            The resolved configuration.

        Raises
        ------
        ValidationError
            If a numeric override cannot be parsed or is out of range.
        """
        env = os.environ if environ is None else environ

        raw_dir = env.get(ENV_DATA_DIR, "")
        data_dir = Path(raw_dir).expanduser() if raw_dir else default_data_dir()

        busy_timeout = cls.busy_timeout_seconds
        raw_timeout = env.get(ENV_BUSY_TIMEOUT)
        if raw_timeout:
            try:
                busy_timeout = float(raw_timeout)
            except ValueError:
                raise ValidationError(
                    f"{ENV_BUSY_TIMEOUT} must be a number of seconds, got {raw_timeout!r}"
                ) from None
            if busy_timeout < 0:
                raise ValidationError(f"{ENV_BUSY_TIMEOUT} must not be negative")

        max_retries = cls.max_retries
        raw_retries = env.get(ENV_MAX_RETRIES)
        if raw_retries:
            try:
                max_retries = int(raw_retries)
            except ValueError:
                raise ValidationError(
                    f"{ENV_MAX_RETRIES} must be an integer, got {raw_retries!r}"
                ) from None
            if max_retries < 1:
                raise ValidationError(f"{ENV_MAX_RETRIES} must be at least 1")

        return cls(
            data_dir=data_dir,
            busy_timeout_seconds=busy_timeout,
            max_retries=max_retries,
        )


__all__ = [
    "DEFAULT_DB_FILENAME",
    "ENV_BUSY_TIMEOUT",
    "ENV_DATA_DIR",
    "ENV_MAX_RETRIES",
    "ProvenanceConfig",
    "default_data_dir",
]
