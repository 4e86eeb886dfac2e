"""Entry point for `python -m podlogger`.

Usage:
    python -m podlogger
    python -m podlogger --once --log-file /tmp/pods.log
"""

from __future__ import annotations

from podlogger.cli import cli

cli()
