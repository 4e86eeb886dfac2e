"""pod-logger command-line interface.

Exposes:
    cli -- Click command entry point (registered as ``pod-logger`` script).
"""

from podlogger.cli.main import cli

__all__ = ["cli"]
