"""Command line interface for natfwd."""

from natfwd.cli.main import cli, main

__all__ = ["cli", "main"]
