# Copyright (c) Syntropy Systems
"""Main CLI entry point for expctl."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from expctl.cli.apply import apply
from expctl.cli.create_trial import create_trial
from expctl.cli.delete import delete
from expctl.cli.init_cmd import init
from expctl.cli.render import render
from expctl.cli.trials import trials
from expctl.config import load_config
from expctl.errors import ConfigurationError

app = typer.Typer(
    name="expctl",
    help="Experiment controller. Turn experiments into trials, tear them down cleanly.",
    no_args_is_help=True,
    add_completion=False,
)


def configure_logging(level: str) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable debug logging",
    ),
) -> None:
    """Experiment controller command line."""
    level = "DEBUG"
    if not verbose:
        try:
            level = load_config().log_level
        except ConfigurationError:
            level = "INFO"
    configure_logging(level)


# Register commands
_ = app.command()(init)
_ = app.command()(apply)
_ = app.command()(delete)
_ = app.command(name="create-trial")(create_trial)
_ = app.command()(render)
_ = app.command()(trials)


if __name__ == "__main__":
    app()
