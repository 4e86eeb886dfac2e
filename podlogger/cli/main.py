"""Click entry point.

Environment variables provide every setting (see ``podlogger.config``);
the options here override them for local runs.
"""

from __future__ import annotations

import asyncio

import click

from podlogger import __version__
from podlogger.app import main
from podlogger.config import load_config
from podlogger.models.config import PodLoggerConfig


def _apply_overrides(
    config: PodLoggerConfig,
    kubeconfig: str | None,
    log_file: str | None,
    log_level: str | None,
    once: bool,
) -> PodLoggerConfig:
    if kubeconfig:
        config.cluster.kubeconfig = kubeconfig
    if log_file:
        config.output.log_file = log_file
    if log_level:
        config.log.level = log_level.lower()
    config.run_once = once
    return config


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--kubeconfig",
    type=click.Path(dir_okay=False),
    default=None,
    help="Absolute path to the kubeconfig file (used only outside a cluster).",
)
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="File pod status lines are appended to.")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Diagnostic log level.",
)
@click.option("--once", is_flag=True, default=False, help="Exit after the local pass instead of waiting for a signal.")
@click.version_option(__version__, prog_name="pod-logger")
def cli(kubeconfig: str | None, log_file: str | None, log_level: str | None, once: bool) -> None:
    """Log the name, node and phase of every pod in the cluster."""
    try:
        config = load_config()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    asyncio.run(main(_apply_overrides(config, kubeconfig, log_file, log_level, once)))
