"""Trust levels and verification verdicts.

Trust levels
------------
trusted   : Content may be acted on.
untrusted : Content must not be acted on.
unknown   : No decision has been made for the content's source (default).

Verdicts
--------
PASS    : The record is trusted and not quarantined.
FAIL    : The record is untrusted or quarantined.
UNKNOWN : No record exists, or its trust level is unknown.
"""
from __future__ import annotations

from enum import Enum

from agent_provenance.errors import ValidationError


class TrustLevel(str, Enum):
    """Trust level attached to a provenance record or policy rule."""

    TRUSTED = "trusted"
    UNTRUSTED = "untrusted"
    UNKNOWN = "unknown"


class Verdict(str, Enum):
    """Outcome of trust verification for a content id."""

    PASS = "pass"
    FAIL = "fail"
    UNKNOWN = "unknown"


DEFAULT_TRUST_LEVEL: TrustLevel = TrustLevel.UNKNOWN

VALID_TRUST_LEVELS: tuple[str, ...] = tuple(level.value for level in TrustLevel)


def parse_trust_level(value: str | TrustLevel) -> TrustLevel:
    """Convert a trust-level literal into a :class:`TrustLevel`.

    Matching is exact and case-sensitive, so ``"Trusted"`` is rejected.

    Parameters
    ----------
    value:
        One of ``trusted``, ``untrusted`` or ``unknown``, or a TrustLevel.

    Returns
    -------
    TrustLevel
        The parsed level.

    Raises
    ------
    ValidationError
        If ``value`` is not a recognised trust level.
    """
    if isinstance(value, TrustLevel):
        return value
    try:
        return TrustLevel(value)
    except ValueError:
        raise ValidationError(
            f"Invalid trust level {value!r}. "
            f"Valid levels: {', '.join(VALID_TRUST_LEVELS)}"
        ) from None


def ensure_utf8(value: str, name: str) -> str:
    """Reject text that cannot be stored as UTF-8.

    Command-line arguments that were not valid UTF-8 arrive as strings
    holding lone surrogates; SQLite cannot bind those.

    Raises
    ------
    ValidationError
        If ``value`` does not encode as UTF-8.
    """
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise ValidationError(f"Argument {name} is not valid UTF-8 text: {value!r}") from None
    return value


__all__ = [
    "DEFAULT_TRUST_LEVEL",
    "TrustLevel",
    "VALID_TRUST_LEVELS",
    "Verdict",
    "ensure_utf8",
    "parse_trust_level",
]
