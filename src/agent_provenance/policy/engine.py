"""Pattern-based trust policy engine.

A policy rule maps a glob pattern over source strings to a trust level.
Rules are consulted in creation order and the first rule whose pattern
matches wins; later rules are never looked at once one matches, however
specific they are.

Pattern syntax
--------------
``*``  matches any run of characters, including none.
``?``  matches exactly one character.
Every other character matches itself, case-sensitively. Matching is
anchored at both ends.
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from agent_provenance.custody.chain import utcnow
from agent_provenance.errors import NotFoundError, ValidationError
from agent_provenance.trust.levels import TrustLevel, ensure_utf8, parse_trust_level

if TYPE_CHECKING:
    from agent_provenance.store.sqlite import StoreTransaction

logger = logging.getLogger(__name__)


def glob_match(pattern: str, text: str) -> bool:
    """Return True if ``text`` matches ``pattern`` in full.

    Greedy two-pointer wildcard match with single-star backtracking, so the
    cost is O(len(pattern) * len(text)) in the worst case and no regular
    expression engine is involved.

    Parameters
    ----------
    pattern:
        Glob pattern using ``*`` and ``?``.
    text:
        The string to test.

    Returns
    -------
    bool
        True when the whole of ``text`` matches.
    """
    p_idx = 0
    t_idx = 0
    star_idx = -1
    star_text_idx = 0

    while t_idx < len(text):
        if p_idx < len(pattern) and (pattern[p_idx] == "?" or pattern[p_idx] == text[t_idx]):
            p_idx += 1
            t_idx += 1
        elif p_idx < len(pattern) and pattern[p_idx] == "*":
            star_idx = p_idx
            star_text_idx = t_idx
            p_idx += 1
        elif star_idx != -1:
            # Let the last star absorb one more character and retry.
            p_idx = star_idx + 1
            star_text_idx += 1
            t_idx = star_text_idx
        else:
            return False

    while p_idx < len(pattern) and pattern[p_idx] == "*":
        p_idx += 1
    return p_idx == len(pattern)


@dataclass
class PolicyRule:
    """A pattern-to-trust-level mapping.

    Attributes
    ----------
    pattern:
        Glob pattern over source strings; unique across rules.
    trust_level:
        Trust level assigned to matching sources.
    created_at:
        When the rule was first added. Used for display ordering only.
    rule_id:
        Store-assigned sequence number; defines resolution order.
    """

    pattern: str
    trust_level: TrustLevel
    created_at: datetime.datetime = field(default_factory=utcnow)
    rule_id: int | None = None

    def matches(self, source: str) -> bool:
        """Return True if this rule's pattern matches ``source``."""
        return glob_match(self.pattern, source)

    def to_dict(self) -> dict[str, str]:
        return {
            "pattern": self.pattern,
            "trust_level": self.trust_level.value,
            "created_at": self.created_at.isoformat(),
        }


def resolution_order(rules: list[PolicyRule]) -> list[PolicyRule]:
    """Order rules for matching: oldest rule (lowest sequence) first."""
    return sorted(rules, key=lambda rule: rule.rule_id if rule.rule_id is not None else 0)


def display_order(rules: list[PolicyRule]) -> list[PolicyRule]:
    """Order rules for listing: by creation time, sequence as tie-break."""
    return sorted(
        rules,
        key=lambda rule: (rule.created_at, rule.rule_id if rule.rule_id is not None else 0),
    )


def first_match(rules: list[PolicyRule], source: str) -> PolicyRule | None:
    """Return the first rule in resolution order that matches ``source``."""
    for rule in resolution_order(rules):
        if rule.matches(source):
            return rule
    return None


def _require_pattern(pattern: str) -> str:
    if not pattern:
        raise ValidationError("Policy pattern must not be empty")
    return ensure_utf8(pattern, "pattern")


class PolicyEngine:
    """Resolves sources to trust levels and administers policy rules.

    All methods operate on an open store transaction so that rule changes
    and their audit events commit together.
    """

    def resolve(self, tx: StoreTransaction, source: str) -> PolicyRule | None:
        """Find the rule that decides the trust level for ``source``.

        Parameters
        ----------
        tx:
            Open store transaction.
        source:
            Source string to match.

        Returns
        -------
        PolicyRule | None
            The first matching rule in creation order, or None when no rule
            matches.
        """
        rule = first_match(tx.list_policies(), source)
        if rule is None:
            logger.debug("No policy matched source %r", source)
        else:
            logger.debug("Policy %r matched source %r", rule.pattern, source)
        return rule

    def add(
        self,
        tx: StoreTransaction,
        pattern: str,
        trust_level: str | TrustLevel,
        at: datetime.datetime | None = None,
    ) -> tuple[PolicyRule, bool]:
        """Add a rule, or update the level of an existing rule in place.

        An update keeps the rule's position in resolution order and its
        creation time.

        Returns
        -------
        tuple[PolicyRule, bool]
            The stored rule and True if it was newly created.

        Raises
        ------
        ValidationError
            If the pattern is empty or the trust level is not recognised.
        """
        _require_pattern(pattern)
        level = parse_trust_level(trust_level)

        existing = tx.get_policy(pattern)
        if existing is not None:
            existing.trust_level = level
            rule = tx.put_policy(existing)
            logger.info("Updated policy %r -> %s", pattern, level.value)
            return rule, False

        rule = tx.put_policy(
            PolicyRule(
                pattern=pattern,
                trust_level=level,
                created_at=at if at is not None else utcnow(),
            )
        )
        logger.info("Added policy %r -> %s", pattern, level.value)
        return rule, True

    def remove(self, tx: StoreTransaction, pattern: str) -> PolicyRule:
        """Delete the rule with ``pattern``.

        Raises
        ------
        NotFoundError
            If no rule has that pattern.
        """
        _require_pattern(pattern)
        rule = tx.get_policy(pattern)
        if rule is None:
            raise NotFoundError(f"No policy found matching: {pattern}", key=pattern)
        tx.delete_policy(pattern)
        logger.info("Removed policy %r", pattern)
        return rule

    def list_rules(self, tx: StoreTransaction) -> list[PolicyRule]:
        """Return every rule in display order (creation time)."""
        return display_order(tx.list_policies())


__all__ = [
    "PolicyEngine",
    "PolicyRule",
    "display_order",
    "first_match",
    "glob_match",
    "resolution_order",
]
