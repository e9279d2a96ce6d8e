# Copyright (c) Syntropy Systems
"""expctl init command."""

from pathlib import Path

import typer
import yaml
from rich.console import Console

from expctl.config import ControllerConfig
from expctl.store import init_db

console = Console()


def init(
    path: Path = typer.Argument(
        Path(),
        help="Directory to initialize (default: current directory)",
    ),
) -> None:
    """Initialize a new expctl project.

    Creates a .expctl directory with configuration and database.
    """
    target = path.resolve()
    expctl_dir = target / ".expctl"

    if expctl_dir.exists():
        console.print(f"[yellow]Already initialized:[/yellow] {expctl_dir}")
        return

    expctl_dir.mkdir(parents=True)

    config_path = expctl_dir / "config.yaml"
    with config_path.open("w") as f:
        yaml.dump(ControllerConfig().to_dict(), f, default_flow_style=False)

    db_path = expctl_dir / "expctl.db"
    init_db(db_path)

    console.print(f"[green]Initialized expctl project:[/green] {expctl_dir}")
    console.print(f"  [dim]config:[/dim] {config_path}")
    console.print(f"  [dim]database:[/dim] {db_path}")
