"""Command-line interface for agent-provenance."""
