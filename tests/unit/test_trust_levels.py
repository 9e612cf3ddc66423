"""Tests for TrustLevel, Verdict and parse_trust_level."""
from __future__ import annotations

import pytest

from agent_provenance.errors import ValidationError
from agent_provenance.trust.levels import (
    DEFAULT_TRUST_LEVEL,
    VALID_TRUST_LEVELS,
    TrustLevel,
    Verdict,
    ensure_utf8,
    parse_trust_level,
)


class TestTrustLevel:
    def test_values(self) -> None:
        assert [level.value for level in TrustLevel] == ["trusted", "untrusted", "unknown"]

    def test_default_is_unknown(self) -> None:
        assert DEFAULT_TRUST_LEVEL is TrustLevel.UNKNOWN

    def test_valid_levels_tuple(self) -> None:
        assert VALID_TRUST_LEVELS == ("trusted", "untrusted", "unknown")

    def test_str_enum_compares_to_literal(self) -> None:
        assert TrustLevel.TRUSTED == "trusted"


class TestVerdict:
    def test_values(self) -> None:
        assert {verdict.value for verdict in Verdict} == {"pass", "fail", "unknown"}


class TestParseTrustLevel:
    @pytest.mark.parametrize("literal", ["trusted", "untrusted", "unknown"])
    def test_accepts_valid_literals(self, literal: str) -> None:
        assert parse_trust_level(literal).value == literal

    def test_passes_enum_through(self) -> None:
        assert parse_trust_level(TrustLevel.UNTRUSTED) is TrustLevel.UNTRUSTED

    @pytest.mark.parametrize("literal", ["Trusted", "TRUSTED", "maybe", "", " trusted"])
    def test_rejects_invalid_literals(self, literal: str) -> None:
        with pytest.raises(ValidationError):
            parse_trust_level(literal)

    def test_error_lists_valid_levels(self) -> None:
        with pytest.raises(ValidationError, match="trusted, untrusted, unknown"):
            parse_trust_level("bogus")


class TestEnsureUtf8:
    def test_accepts_non_ascii_text(self) -> None:
        assert ensure_utf8("quelle:été", "source") == "quelle:été"

    def test_rejects_lone_surrogate(self) -> None:
        with pytest.raises(ValidationError, match="source"):
            ensure_utf8("src-\udcff", "source")
