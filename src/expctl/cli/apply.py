# Copyright (c) Syntropy Systems
"""expctl apply command."""
from __future__ import annotations

from pathlib import Path

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from expctl.config import get_db_path, load_config, require_expctl_dir
from expctl.errors import ExpctlError
from expctl.finalizers import FinalizerLifecycleManager, with_finalizer
from expctl.models.experiment import Experiment
from expctl.store import SQLiteStore

console = Console()


def apply(
    manifest: Path = typer.Argument(
        ...,
        help="Path to an Experiment YAML manifest",
        exists=True,
    ),
) -> None:
    """Create or update an experiment and install the controller finalizer."""
    try:
        expctl_dir = require_expctl_dir()
        config = load_config(expctl_dir)
    except (RuntimeError, ExpctlError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    try:
        experiment = Experiment.from_yaml(manifest)
    except (OSError, yaml.YAMLError, ValidationError) as e:
        console.print(f"[red]Error loading manifest:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    with SQLiteStore(get_db_path(expctl_dir)) as store:
        try:
            stored = store.apply_experiment(experiment)
            requeue = False
            if config.finalizer not in stored.metadata.finalizers:
                result = FinalizerLifecycleManager(store).install_finalizers(
                    stored,
                    with_finalizer(stored.metadata.finalizers, config.finalizer),
                )
                requeue = result.requeue
        except ExpctlError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            raise typer.Exit(1) from e

    console.print(f"[green]Applied experiment[/green] {stored.identity}")
    console.print(f"  [dim]uid:[/dim] {stored.metadata.uid}")
    console.print(f"  [dim]finalizers:[/dim] {', '.join(stored.metadata.finalizers)}")
    if requeue:
        console.print("  [dim]requeue requested[/dim]")
