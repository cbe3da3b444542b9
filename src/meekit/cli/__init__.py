"""meekit command-line interface."""

from meekit.cli.main import cli, main

__all__ = ["cli", "main"]
