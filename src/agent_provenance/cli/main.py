"""CLI entry point for agent-provenance.

Invoked as::

    agent-provenance [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m agent_provenance.cli.main

Commands
--------
- ``mark-source``       Mark content with a source and trust level (alias: ``mark``).
- ``check-provenance``  Show a record, its custody chain and quarantine status
                        (aliases: ``check``, ``prov``).
- ``trust-policy``      Add, remove, list, import or export trust policies (alias: ``policy``).
- ``quarantine``        Quarantine content.
- ``quarantine-list``   List quarantined content (alias: ``qlist``).
- ``verify-trust``      Exit 0 if content passes trust, 1 otherwise (alias: ``verify``).
- ``stats``             Counts and recent activity.

The store lives in ``$PROVENANCE_DIR`` (default ``~/.provenance``).
"""
from __future__ import annotations

import datetime
import json
import logging
import sys
from contextlib import closing
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from agent_provenance import __version__
from agent_provenance.config import ProvenanceConfig
from agent_provenance.errors import ConflictError, ProvenanceError
from agent_provenance.service import ProvenanceService
from agent_provenance.trust.levels import TrustLevel, Verdict
from agent_provenance.trust.resolver import VerdictReason

console = Console(soft_wrap=True)

_ALIASES: dict[str, str] = {
    "mark": "mark-source",
    "check": "check-provenance",
    "prov": "check-provenance",
    "policy": "trust-policy",
    "qlist": "quarantine-list",
    "verify": "verify-trust",
}

_TRUST_STYLES: dict[TrustLevel, str] = {
    TrustLevel.TRUSTED: "green",
    TrustLevel.UNTRUSTED: "red",
    TrustLevel.UNKNOWN: "yellow",
}


class AliasedGroup(click.Group):
    """Click group that also accepts the short command aliases."""

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        return super().get_command(ctx, _ALIASES.get(cmd_name, cmd_name))


def _open_service() -> ProvenanceService:
    return ProvenanceService.from_config(ProvenanceConfig.from_env())


def _abort(exc: ProvenanceError) -> NoReturn:
    if isinstance(exc, ConflictError):
        console.print(f"[yellow]{escape(str(exc))}[/yellow]")
    else:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
    sys.exit(1)


def _fmt_ts(value: datetime.datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _styled(level: TrustLevel) -> str:
    colour = _TRUST_STYLES[level]
    return f"[{colour}]{level.value}[/{colour}]"


@click.group(cls=AliasedGroup)
@click.version_option(version=__version__, prog_name="agent-provenance")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Log debug output to stderr.",
)
def cli(verbose: bool) -> None:
    """Content origin tracking and trust policy for AI agents"""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    console.print(f"[bold]agent-provenance[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# mark-source
# ---------------------------------------------------------------------------


@cli.command(name="mark-source")
@click.argument("content_id")
@click.argument("source")
@click.argument("trust_level", required=False, default=TrustLevel.UNKNOWN.value)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output results as JSON.",
)
def mark_source_command(
    content_id: str,
    source: str,
    trust_level: str,
    json_output: bool,
) -> None:
    """Mark content with its source and a trust level.

    TRUST_LEVEL is one of trusted, untrusted, unknown (default: unknown).
    A matching trust policy may override the requested level.

    Examples:

    \b
        provenance mark-source msg-123 "moltbook:@randomagent" untrusted
        provenance mark-source doc-456 "internal:collaborator" trusted
    """
    try:
        with closing(_open_service()) as service:
            result = service.mark_source(content_id, source, trust_level)
    except ProvenanceError as exc:
        _abort(exc)

    if json_output:
        output = {
            "id": result.record.content_id,
            "created": result.created,
            "source": result.record.source,
            "requested_trust": result.requested_trust.value,
            "effective_trust": result.effective_trust.value,
            "applied_policy": (
                result.applied_policy.to_dict() if result.applied_policy is not None else None
            ),
            "custody_chain_length": len(result.record.custody_chain),
        }
        console.print_json(json.dumps(output, indent=2))
        return

    verb = "Marked" if result.created else "Updated"
    console.print(
        f"{verb} provenance for '{escape(content_id)}' "
        f"(source: {escape(source)}, trust: {result.requested_trust.value})"
    )
    if result.applied_policy is not None:
        console.print(
            f"  Applied policy: {escape(result.applied_policy.pattern)} -> "
            f"{_styled(result.applied_policy.trust_level)}"
        )


# ---------------------------------------------------------------------------
# check-provenance
# ---------------------------------------------------------------------------


@cli.command(name="check-provenance")
@click.argument("content_id")
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output results as JSON.",
)
def check_provenance_command(content_id: str, json_output: bool) -> None:
    """Show the provenance record and full custody chain for content.

    Examples:

    \b
        provenance check-provenance msg-123
        provenance prov doc-456 --json-output
    """
    try:
        with closing(_open_service()) as service:
            report = service.check_provenance(content_id)
    except ProvenanceError as exc:
        _abort(exc)

    if json_output:
        console.print_json(json.dumps(report.to_dict(), indent=2))
        return

    record = report.record
    console.print(
        Panel(
            f"[bold]{escape(record.content_id)}[/bold]",
            title="Provenance Record",
            expand=False,
        )
    )
    console.print(f"  Source         : {escape(record.source)}")
    console.print(f"  Trust level    : {_styled(record.trust_level)}")
    console.print(f"  Last marked    : {_fmt_ts(record.marked_at)}")
    if record.applied_policy:
        console.print(f"  Applied policy : {escape(record.applied_policy)}")

    console.print("\n[bold]Custody chain:[/bold]")
    for index, entry in enumerate(record.custody_chain, start=1):
        console.print(
            f"  {index}. {escape(entry.source)} ({entry.trust_level.value}) at {_fmt_ts(entry.at)}"
        )

    if report.quarantine is not None:
        console.print("\n[bold red]WARNING: This content is quarantined[/bold red]")
        console.print(
            f"  Reason: {escape(report.quarantine.reason)} "
            f"(at {_fmt_ts(report.quarantine.quarantined_at)})"
        )


# ---------------------------------------------------------------------------
# trust-policy
# ---------------------------------------------------------------------------


@cli.group(name="trust-policy")
def trust_policy_group() -> None:
    """Manage glob-pattern trust policies.

    Policies are checked in the order they were created; the first pattern
    matching a source decides its trust level.

    Examples:

    \b
        provenance trust-policy add "internal:*" trusted
        provenance trust-policy add "moltbook:*" untrusted
        provenance trust-policy list
        provenance trust-policy remove "moltbook:*"
    """


@trust_policy_group.command(name="add")
@click.argument("pattern")
@click.argument("trust_level")
def policy_add_command(pattern: str, trust_level: str) -> None:
    """Add a policy, or update the trust level of an existing PATTERN.

    PATTERN uses glob matching: * matches any run of characters,
    ? matches exactly one.
    """
    try:
        with closing(_open_service()) as service:
            change = service.add_policy(pattern, trust_level)
    except ProvenanceError as exc:
        _abort(exc)

    verb = "Added" if change.created else "Updated"
    console.print(
        f"{verb} policy: {escape(change.rule.pattern)} -> {_styled(change.rule.trust_level)}"
    )


@trust_policy_group.command(name="remove")
@click.argument("pattern")
def policy_remove_command(pattern: str) -> None:
    """Remove the policy with PATTERN."""
    try:
        with closing(_open_service()) as service:
            rule = service.remove_policy(pattern)
    except ProvenanceError as exc:
        _abort(exc)

    console.print(f"Removed policy: {escape(rule.pattern)}")


@trust_policy_group.command(name="list")
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output results as JSON.",
)
def policy_list_command(json_output: bool) -> None:
    """List all policies in creation order."""
    try:
        with closing(_open_service()) as service:
            rules = service.list_policies()
    except ProvenanceError as exc:
        _abort(exc)

    if json_output:
        console.print_json(json.dumps([rule.to_dict() for rule in rules], indent=2))
        return

    if not rules:
        console.print("No policies defined.")
        console.print("\n[dim]Add policies with:[/dim] trust-policy add <pattern> <trust-level>")
        return

    table = Table(title="Trust Policies", show_header=True)
    table.add_column("Pattern", style="cyan")
    table.add_column("Trust")
    table.add_column("Created", style="dim")
    for rule in rules:
        table.add_row(escape(rule.pattern), _styled(rule.trust_level), _fmt_ts(rule.created_at))
    console.print(table)


@trust_policy_group.command(name="import")
@click.argument(
    "policy_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
def policy_import_command(policy_file: Path) -> None:
    """Add or update every policy listed in a YAML POLICY_FILE.

    \b
    File format:
        version: "1.0"
        policies:
          - pattern: "internal:*"
            trust_level: trusted
    """
    try:
        with closing(_open_service()) as service:
            summary = service.import_policies(policy_file)
    except ProvenanceError as exc:
        _abort(exc)

    console.print(
        f"Imported {summary.total} policies from {escape(str(policy_file))} "
        f"([green]{len(summary.added)} added[/green], "
        f"[yellow]{len(summary.updated)} updated[/yellow])"
    )


@trust_policy_group.command(name="export")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the policy YAML to this file path instead of stdout.",
)
def policy_export_command(output: Path | None) -> None:
    """Export all policies, in creation order, as YAML."""
    try:
        with closing(_open_service()) as service:
            document = service.export_policies()
    except ProvenanceError as exc:
        _abort(exc)

    if output is None:
        click.echo(document, nl=False)
        return
    output.write_text(document, encoding="utf-8")
    console.print(f"[green]Policies written to:[/green] {escape(str(output))}")


# ---------------------------------------------------------------------------
# quarantine
# ---------------------------------------------------------------------------


@cli.command(name="quarantine")
@click.argument("content_id")
@click.argument("reason", nargs=-1)
def quarantine_command(content_id: str, reason: tuple[str, ...]) -> None:
    """Quarantine content so it always fails trust verification.

    Content must be marked with mark-source first.

    Examples:

    \b
        provenance quarantine msg-123 prompt injection attempt
    """
    try:
        with closing(_open_service()) as service:
            entry = service.quarantine(content_id, " ".join(reason))
    except ProvenanceError as exc:
        _abort(exc)

    console.print(f"Quarantined '{escape(entry.content_id)}': {escape(entry.reason)}")


@cli.command(name="quarantine-list")
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output results as JSON.",
)
def quarantine_list_command(json_output: bool) -> None:
    """List quarantined content, most recent first."""
    try:
        with closing(_open_service()) as service:
            items = service.list_quarantine()
    except ProvenanceError as exc:
        _abort(exc)

    if json_output:
        console.print_json(json.dumps([item.to_dict() for item in items], indent=2))
        return

    if not items:
        console.print("No content is currently quarantined.")
        return

    table = Table(title="Quarantined Content", show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Source")
    table.add_column("Reason")
    table.add_column("Quarantined", style="dim")
    for item in items:
        table.add_row(
            escape(item.entry.content_id),
            escape(item.source),
            escape(item.entry.reason),
            _fmt_ts(item.entry.quarantined_at),
        )
    console.print(table)
    console.print(f"Total: {len(items)} items")


# ---------------------------------------------------------------------------
# verify-trust
# ---------------------------------------------------------------------------


@cli.command(name="verify-trust")
@click.argument("content_id")
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output results as JSON.",
)
def verify_trust_command(content_id: str, json_output: bool) -> None:
    """Check whether content passes trust.

    Exits 0 on PASS and 1 on FAIL or UNKNOWN.

    Examples:

    \b
        provenance verify-trust msg-123 && act-on msg-123
    """
    try:
        with closing(_open_service()) as service:
            result = service.verify(content_id)
    except ProvenanceError as exc:
        _abort(exc)

    if json_output:
        console.print_json(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.passed else 1)

    colour = {Verdict.PASS: "green", Verdict.FAIL: "red", Verdict.UNKNOWN: "yellow"}[
        result.verdict
    ]
    console.print(f"[{colour}]{escape(result.message)}[/{colour}]")
    if result.verdict is Verdict.UNKNOWN and result.reason is not VerdictReason.NO_RECORD:
        console.print("[dim]Consider adding a trust policy for this source pattern[/dim]")

    sys.exit(0 if result.passed else 1)


# ---------------------------------------------------------------------------
# stats
# ---------------------------------------------------------------------------


@cli.command(name="stats")
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output results as JSON.",
)
def stats_command(json_output: bool) -> None:
    """Show counts by trust level, quarantine and policy totals, and recent activity."""
    try:
        with closing(_open_service()) as service:
            stats = service.stats()
    except ProvenanceError as exc:
        _abort(exc)

    if json_output:
        console.print_json(json.dumps(stats.to_dict(), indent=2))
        return

    console.print(Panel("[bold]Provenance Statistics[/bold]", expand=False))
    console.print(f"  Content tracked : {stats.total}")
    for level in TrustLevel:
        console.print(f"    {level.value.capitalize():<10}: {stats.by_trust_level[level]}")
    console.print(f"  Quarantined     : {stats.quarantined}")
    console.print(f"  Policies        : {stats.policies}")

    console.print("\n[bold]Recent activity:[/bold]")
    if not stats.recent_activity:
        console.print("  (none)")
    for event in stats.recent_activity:
        console.print(
            f"  {event.action.value} on {escape(event.content_id or '-')} "
            f"at {_fmt_ts(event.timestamp)}"
        )


if __name__ == "__main__":
    cli()
