# Copyright (c) Syntropy Systems
"""expctl delete command."""
from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape

from expctl.config import get_db_path, load_config, require_expctl_dir
from expctl.errors import ExpctlError
from expctl.finalizers import (
    FinalizerLifecycleManager,
    FinalizerState,
    finalizer_state,
    without_finalizer,
)
from expctl.store import SQLiteStore

console = Console()


def delete(
    name: str = typer.Argument(..., help="Experiment name"),
    namespace: str = typer.Option(
        "default",
        "--namespace", "-n",
        help="Experiment namespace",
    ),
) -> None:
    """Delete an experiment, purging its metric history first."""
    try:
        expctl_dir = require_expctl_dir()
        config = load_config(expctl_dir)
    except (RuntimeError, ExpctlError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    with SQLiteStore(get_db_path(expctl_dir)) as store:
        try:
            experiment = store.request_deletion(namespace, name)
            if finalizer_state(experiment) == FinalizerState.DELETION_REQUESTED:
                _ = FinalizerLifecycleManager(store).teardown_and_remove_finalizers(
                    experiment,
                    without_finalizer(experiment.metadata.finalizers, config.finalizer),
                )
        except ExpctlError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            raise typer.Exit(1) from e

    if experiment.metadata.finalizers:
        console.print(
            f"[yellow]Deletion pending[/yellow] {experiment.identity}: "
            f"waiting on {', '.join(experiment.metadata.finalizers)}"
        )
    else:
        console.print(f"[green]Deleted experiment[/green] {experiment.identity}")
