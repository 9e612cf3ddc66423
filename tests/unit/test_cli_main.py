"""Tests for CLI commands in agent_provenance.cli.main.

Uses Click's CliRunner for full in-process invocation; every test gets its
own store directory through ``PROVENANCE_DIR``.
"""
from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner, Result

from agent_provenance.cli.main import cli


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def invoke(runner: CliRunner, tmp_path: Path):
    env = {"PROVENANCE_DIR": str(tmp_path / "prov")}

    def _invoke(*args: str) -> Result:
        return runner.invoke(cli, list(args), env=env)

    return _invoke


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


class TestVersionCommand:
    def test_version_prints_package_name(self, invoke) -> None:
        result = invoke("version")
        assert result.exit_code == 0
        assert "agent-provenance" in result.output

    def test_version_option(self, invoke) -> None:
        result = invoke("--version")
        assert result.exit_code == 0
        assert "0.1.0" in result.output


# ---------------------------------------------------------------------------
# mark-source
# ---------------------------------------------------------------------------


class TestMarkSourceCommand:
    def test_marks_new_content(self, invoke) -> None:
        result = invoke("mark-source", "msg-123", "moltbook:@randomagent", "untrusted")
        assert result.exit_code == 0
        assert "Marked provenance for 'msg-123'" in result.output
        assert "trust: untrusted" in result.output

    def test_second_mark_says_updated(self, invoke) -> None:
        invoke("mark-source", "m1", "a")
        result = invoke("mark-source", "m1", "b")
        assert result.exit_code == 0
        assert "Updated provenance" in result.output

    def test_default_trust_level(self, invoke) -> None:
        result = invoke("mark-source", "m1", "somewhere")
        assert "trust: unknown" in result.output

    def test_invalid_level_exits_nonzero(self, invoke) -> None:
        result = invoke("mark-source", "m1", "s", "sorta")
        assert result.exit_code == 1
        assert "Invalid trust level" in result.output
        assert invoke("check-provenance", "m1").exit_code == 1

    def test_missing_source_is_usage_error(self, invoke) -> None:
        result = invoke("mark-source", "m1")
        assert result.exit_code != 0

    def test_applied_policy_is_reported(self, invoke) -> None:
        invoke("trust-policy", "add", "internal:*", "trusted")
        result = invoke("mark-source", "doc-456", "internal:collaborator")
        assert result.exit_code == 0
        assert "Applied policy: internal:* -> trusted" in result.output

    def test_json_output(self, invoke) -> None:
        invoke("trust-policy", "add", "moltbook:*", "untrusted")
        result = invoke("mark-source", "m1", "moltbook:@x", "trusted", "--json-output")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["requested_trust"] == "trusted"
        assert data["effective_trust"] == "untrusted"
        assert data["applied_policy"]["pattern"] == "moltbook:*"
        assert data["custody_chain_length"] == 1

    def test_alias(self, invoke) -> None:
        result = invoke("mark", "m1", "s", "trusted")
        assert result.exit_code == 0
        assert "Marked provenance" in result.output


# ---------------------------------------------------------------------------
# check-provenance
# ---------------------------------------------------------------------------


class TestCheckProvenanceCommand:
    def test_shows_record_and_chain(self, invoke) -> None:
        invoke("mark-source", "m1", "first:src", "unknown")
        invoke("mark-source", "m1", "second:src", "trusted")
        result = invoke("check-provenance", "m1")
        assert result.exit_code == 0
        assert "Provenance Record" in result.output
        assert "second:src" in result.output
        assert "Custody chain:" in result.output
        assert "1. first:src (unknown)" in result.output
        assert "2. second:src (trusted)" in result.output
        assert "quarantined" not in result.output

    def test_missing_record(self, invoke) -> None:
        result = invoke("check-provenance", "ghost")
        assert result.exit_code == 1
        assert "No provenance record found for 'ghost'" in result.output

    def test_quarantine_warning(self, invoke) -> None:
        invoke("mark-source", "m1", "s", "trusted")
        invoke("quarantine", "m1", "bad", "vibes")
        result = invoke("prov", "m1")
        assert result.exit_code == 0
        assert "WARNING: This content is quarantined" in result.output
        assert "Reason: bad vibes" in result.output

    def test_json_output(self, invoke) -> None:
        invoke("mark-source", "m1", "s", "trusted")
        result = invoke("check", "m1", "--json-output")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["id"] == "m1"
        assert data["custody_chain"][0] == {
            "source": "s",
            "trust": "trusted",
            "at": data["marked_at"],
        }
        assert data["quarantine"] is None


# ---------------------------------------------------------------------------
# trust-policy
# ---------------------------------------------------------------------------


class TestTrustPolicyCommand:
    def test_add_and_update(self, invoke) -> None:
        first = invoke("trust-policy", "add", "internal:*", "trusted")
        assert first.exit_code == 0
        assert "Added policy: internal:* -> trusted" in first.output

        second = invoke("policy", "add", "internal:*", "unknown")
        assert second.exit_code == 0
        assert "Updated policy: internal:* -> unknown" in second.output

    def test_add_invalid_level(self, invoke) -> None:
        result = invoke("trust-policy", "add", "x:*", "high")
        assert result.exit_code == 1
        assert "Invalid trust level" in result.output

    def test_remove(self, invoke) -> None:
        invoke("trust-policy", "add", "x:*", "trusted")
        result = invoke("trust-policy", "remove", "x:*")
        assert result.exit_code == 0
        assert "Removed policy: x:*" in result.output

    def test_remove_missing(self, invoke) -> None:
        result = invoke("trust-policy", "remove", "nothing:*")
        assert result.exit_code == 1
        assert "No policy found matching: nothing:*" in result.output

    def test_list_empty(self, invoke) -> None:
        result = invoke("trust-policy", "list")
        assert result.exit_code == 0
        assert "No policies defined." in result.output

    def test_list_table(self, invoke) -> None:
        invoke("trust-policy", "add", "internal:*", "trusted")
        invoke("trust-policy", "add", "moltbook:*", "untrusted")
        result = invoke("trust-policy", "list")
        assert result.exit_code == 0
        assert "Trust Policies" in result.output
        assert result.output.index("internal:*") < result.output.index("moltbook:*")

    def test_list_json(self, invoke) -> None:
        invoke("trust-policy", "add", "a:*", "trusted")
        result = invoke("trust-policy", "list", "--json-output")
        data = json.loads(result.output)
        assert [(rule["pattern"], rule["trust_level"]) for rule in data] == [("a:*", "trusted")]

    def test_import_then_export(self, invoke, tmp_path: Path) -> None:
        policy_file = tmp_path / "policies.yaml"
        policy_file.write_text(
            "version: '1.0'\n"
            "policies:\n"
            "  - {pattern: 'internal:*', trust_level: trusted}\n"
            "  - {pattern: 'moltbook:*', trust_level: untrusted}\n",
            encoding="utf-8",
        )
        imported = invoke("trust-policy", "import", str(policy_file))
        assert imported.exit_code == 0
        assert "Imported 2 policies" in imported.output

        exported = invoke("trust-policy", "export")
        assert exported.exit_code == 0
        document = yaml.safe_load(exported.output)
        assert [entry["pattern"] for entry in document["policies"]] == [
            "internal:*",
            "moltbook:*",
        ]

    def test_export_to_file(self, invoke, tmp_path: Path) -> None:
        invoke("trust-policy", "add", "a:*", "trusted")
        target = tmp_path / "out.yaml"
        result = invoke("trust-policy", "export", "-o", str(target))
        assert result.exit_code == 0
        assert yaml.safe_load(target.read_text(encoding="utf-8"))["policies"] == [
            {"pattern": "a:*", "trust_level": "trusted"}
        ]

    def test_import_invalid_file(self, invoke, tmp_path: Path) -> None:
        policy_file = tmp_path / "bad.yaml"
        policy_file.write_text("nothing: here\n", encoding="utf-8")
        result = invoke("trust-policy", "import", str(policy_file))
        assert result.exit_code == 1
        assert "Error:" in result.output


# ---------------------------------------------------------------------------
# quarantine / quarantine-list
# ---------------------------------------------------------------------------


class TestQuarantineCommands:
    def test_quarantine_joins_reason_words(self, invoke) -> None:
        invoke("mark-source", "msg-123", "moltbook:@x")
        result = invoke("quarantine", "msg-123", "prompt", "injection", "attempt")
        assert result.exit_code == 0
        assert "Quarantined 'msg-123': prompt injection attempt" in result.output

    def test_default_reason(self, invoke) -> None:
        invoke("mark-source", "m1", "s")
        result = invoke("quarantine", "m1")
        assert "No reason provided" in result.output

    def test_unmarked_content(self, invoke) -> None:
        result = invoke("quarantine", "ghost", "why")
        assert result.exit_code == 1
        assert "No provenance record for 'ghost'" in result.output

    def test_already_quarantined(self, invoke) -> None:
        invoke("mark-source", "m1", "s")
        invoke("quarantine", "m1")
        result = invoke("quarantine", "m1")
        assert result.exit_code == 1
        assert "already quarantined" in result.output
        assert "Error:" not in result.output

    def test_list_empty(self, invoke) -> None:
        result = invoke("quarantine-list")
        assert result.exit_code == 0
        assert "No content is currently quarantined." in result.output

    def test_list_table_and_total(self, invoke) -> None:
        invoke("mark-source", "m1", "src:one")
        invoke("quarantine", "m1", "r1")
        result = invoke("qlist")
        assert result.exit_code == 0
        assert "m1" in result.output
        assert "src:one" in result.output
        assert "Total: 1 items" in result.output

    def test_list_json(self, invoke) -> None:
        invoke("mark-source", "m1", "src:one")
        invoke("quarantine", "m1", "r1")
        data = json.loads(invoke("quarantine-list", "--json-output").output)
        assert data[0]["content_id"] == "m1"
        assert data[0]["source"] == "src:one"
        assert data[0]["reason"] == "r1"


# ---------------------------------------------------------------------------
# verify-trust
# ---------------------------------------------------------------------------


class TestVerifyTrustCommand:
    def test_pass_exits_zero(self, invoke) -> None:
        invoke("mark-source", "m1", "internal:bot", "trusted")
        result = invoke("verify-trust", "m1")
        assert result.exit_code == 0
        assert "PASS" in result.output

    def test_fail_exits_one(self, invoke) -> None:
        invoke("mark-source", "m1", "s", "untrusted")
        result = invoke("verify-trust", "m1")
        assert result.exit_code == 1
        assert "FAIL" in result.output

    def test_unknown_exits_one_with_hint(self, invoke) -> None:
        invoke("mark-source", "m1", "s")
        result = invoke("verify", "m1")
        assert result.exit_code == 1
        assert "UNKNOWN" in result.output
        assert "Consider adding a trust policy" in result.output

    def test_no_record_is_unknown_without_hint(self, invoke) -> None:
        result = invoke("verify-trust", "ghost")
        assert result.exit_code == 1
        assert "UNKNOWN: No provenance record for 'ghost'" in result.output
        assert "Consider adding" not in result.output

    def test_quarantine_beats_trusted(self, invoke) -> None:
        invoke("mark-source", "m1", "s", "trusted")
        invoke("quarantine", "m1", "injection")
        result = invoke("verify-trust", "m1")
        assert result.exit_code == 1
        assert "FAIL: Content is quarantined (injection)" in result.output

    def test_json_output(self, invoke) -> None:
        invoke("mark-source", "m1", "s", "trusted")
        result = invoke("verify-trust", "m1", "--json-output")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["verdict"] == "PASS"
        assert data["reason"] == "trust_level"

    def test_end_to_end_policy_scenario(self, invoke) -> None:
        invoke("mark-source", "m1", "internal:bot", "unknown")
        assert invoke("verify-trust", "m1").exit_code == 1
        invoke("trust-policy", "add", "internal:*", "trusted")
        invoke("mark-source", "m1", "internal:bot", "unknown")
        result = invoke("verify-trust", "m1")
        assert result.exit_code == 0
        assert "via policy internal:*" in result.output


# ---------------------------------------------------------------------------
# stats
# ---------------------------------------------------------------------------


class TestStatsCommand:
    def test_empty_store(self, invoke) -> None:
        result = invoke("stats")
        assert result.exit_code == 0
        assert "Content tracked : 0" in result.output
        assert "(none)" in result.output

    def test_counts_and_activity(self, invoke) -> None:
        invoke("mark-source", "a", "s", "trusted")
        invoke("mark-source", "b", "s", "untrusted")
        invoke("quarantine", "b", "r")
        invoke("trust-policy", "add", "x:*", "trusted")
        result = invoke("stats")
        assert result.exit_code == 0
        assert "Content tracked : 2" in result.output
        assert "Quarantined     : 1" in result.output
        assert "Policies        : 1" in result.output
        assert "quarantine on b" in result.output
        assert "policy_add on -" in result.output

    def test_json_output(self, invoke) -> None:
        invoke("mark-source", "a", "s", "trusted")
        data = json.loads(invoke("stats", "--json-output").output)
        assert data["content_tracked"] == 1
        assert data["by_trust_level"] == {"trusted": 1, "untrusted": 0, "unknown": 0}
        assert data["recent_activity"][0]["action"] == "mark_source"


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class TestConfigErrors:
    def test_bad_retry_setting(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(
            cli,
            ["stats"],
            env={"PROVENANCE_DIR": str(tmp_path), "PROVENANCE_MAX_RETRIES": "zero"},
        )
        assert result.exit_code == 1
        assert "PROVENANCE_MAX_RETRIES" in result.output


# ---------------------------------------------------------------------------
# Output layout
# ---------------------------------------------------------------------------


class TestOutputLayout:
    def test_long_summary_stays_on_one_line(self, invoke) -> None:
        source = "moltbook:@" + "a" * 90
        result = invoke("mark-source", "msg-123", source, "untrusted")
        assert result.exit_code == 0
        assert (
            f"Marked provenance for 'msg-123' (source: {source}, trust: untrusted)\n"
            in result.output
        )

    def test_long_verdict_stays_on_one_line(self, invoke) -> None:
        source = "internal:" + "b" * 90
        invoke("trust-policy", "add", "internal:*", "trusted")
        invoke("mark-source", "m1", source)
        result = invoke("verify-trust", "m1")
        assert result.exit_code == 0
        assert (
            f"PASS: Content is trusted (source: {source}) via policy internal:*\n"
            in result.output
        )

    def test_long_reason_stays_on_one_line(self, invoke) -> None:
        invoke("mark-source", "m1", "s")
        words = ["suspicious"] * 12
        result = invoke("quarantine", "m1", *words)
        assert f"Quarantined 'm1': {' '.join(words)}\n" in result.output


# ---------------------------------------------------------------------------
# Arguments that are not valid UTF-8
# ---------------------------------------------------------------------------


_BAD_TEXT = os.fsdecode(b"id-\xff")


class TestUndecodableArguments:
    def test_mark_source_bad_id(self, invoke) -> None:
        result = invoke("mark-source", _BAD_TEXT, "internal:x")
        assert result.exit_code == 1
        assert not isinstance(result.exception, UnicodeError)
        assert "Error:" in result.output
        assert "not valid UTF-8" in result.output

    def test_mark_source_bad_source(self, invoke) -> None:
        result = invoke("mark-source", "m1", _BAD_TEXT)
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert invoke("stats", "--json-output").exit_code == 0
        assert json.loads(invoke("stats", "--json-output").output)["content_tracked"] == 0

    @pytest.mark.parametrize(
        "args",
        [
            ("check-provenance", _BAD_TEXT),
            ("verify-trust", _BAD_TEXT),
            ("quarantine", _BAD_TEXT),
            ("trust-policy", "add", _BAD_TEXT, "trusted"),
            ("trust-policy", "remove", _BAD_TEXT),
        ],
    )
    def test_other_commands_report_error(self, invoke, args: tuple[str, ...]) -> None:
        result = invoke(*args)
        assert result.exit_code == 1
        assert not isinstance(result.exception, UnicodeError)
        assert "Error:" in result.output

    def test_quarantine_bad_reason(self, invoke) -> None:
        invoke("mark-source", "m1", "s")
        result = invoke("quarantine", "m1", _BAD_TEXT)
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "No content is currently quarantined." in invoke("quarantine-list").output
