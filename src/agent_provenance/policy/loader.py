"""YAML policy files.

Lets operators keep trust policies under version control and seed a fresh
store from them. File format::

    version: "1.0"
    policies:
      - pattern: "internal:*"
        trust_level: trusted
      - pattern: "moltbook:*"
        trust_level: untrusted

Rules are applied in file order, so for patterns not yet in the store the
file order becomes their resolution order.

Classes
-------
- PolicyFileEntry   Pydantic model for one ``{pattern, trust_level}`` item.
- PolicyFile        Pydantic model for the whole document.
"""
from __future__ import annotations

import io
from pathlib import Path
from typing import Union

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from agent_provenance.errors import ValidationError
from agent_provenance.policy.engine import PolicyRule
from agent_provenance.trust.levels import TrustLevel, parse_trust_level

POLICY_FILE_VERSION = "1.0"


# ---------------------------------------------------------------------------
# Document schema
# ---------------------------------------------------------------------------


class PolicyFileEntry(BaseModel):
    """One policy as written in a policy file."""

    pattern: str = Field(min_length=1)
    trust_level: str


class PolicyFile(BaseModel):
    """A complete policy document.

    Attributes
    ----------
    version:
        Format version; numbers such as ``1.0`` are read as strings.
    policies:
        Policies in the order they should be applied.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True)

    version: str = POLICY_FILE_VERSION
    policies: list[PolicyFileEntry]


def _describe(exc: SchemaError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]


# ---------------------------------------------------------------------------
# Parsing and rendering
# ---------------------------------------------------------------------------


def parse_policies(yaml_text: str) -> list[tuple[str, TrustLevel]]:
    """Parse and validate a policy document.

    Parameters
    ----------
    yaml_text:
        YAML document in the policy file format.

    Returns
    -------
    list[tuple[str, TrustLevel]]
        ``(pattern, trust_level)`` pairs in file order. A pattern repeated
        later in the file overrides the level of its first occurrence.

    Raises
    ------
    ValidationError
        If the document is not valid YAML or does not follow the format.
    """
    try:
        data = yaml.safe_load(io.StringIO(yaml_text))
    except yaml.YAMLError as exc:
        raise ValidationError(f"Policy file is not valid YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise ValidationError("Policy file must be a mapping with a top-level 'policies' key.")
    try:
        document = PolicyFile.model_validate(data)
    except SchemaError as exc:
        raise ValidationError(f"Invalid policy file: {_describe(exc)}") from exc

    parsed: dict[str, TrustLevel] = {}
    for entry in document.policies:
        parsed[entry.pattern] = parse_trust_level(entry.trust_level)
    return list(parsed.items())


def load_policy_file(path: Union[str, Path]) -> list[tuple[str, TrustLevel]]:
    """Read and parse a policy file from disk.

    Raises
    ------
    ValidationError
        If the file cannot be read or is malformed.
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ValidationError(f"Cannot read policy file {path}: {exc}") from exc
    return parse_policies(content)


def dump_policies(rules: list[PolicyRule]) -> str:
    """Render rules as a policy document, preserving the given order."""
    document = PolicyFile(
        policies=[
            PolicyFileEntry(pattern=rule.pattern, trust_level=rule.trust_level.value)
            for rule in rules
        ],
    )
    return yaml.safe_dump(document.model_dump(), sort_keys=False, default_flow_style=False)


__all__ = [
    "POLICY_FILE_VERSION",
    "PolicyFile",
    "PolicyFileEntry",
    "dump_policies",
    "load_policy_file",
    "parse_policies",
]
