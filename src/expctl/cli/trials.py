# Copyright (c) Syntropy Systems
"""expctl trials command."""
from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from expctl.config import get_db_path, require_expctl_dir
from expctl.store import SQLiteStore

console = Console()


def trials(
    name: str = typer.Argument(..., help="Experiment name"),
    namespace: str = typer.Option(
        "default",
        "--namespace", "-n",
        help="Experiment namespace",
    ),
) -> None:
    """List the trials of an experiment."""
    try:
        expctl_dir = require_expctl_dir()
    except RuntimeError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    with SQLiteStore(get_db_path(expctl_dir)) as store:
        rows = store.list_trials(namespace, name)

    if not rows:
        console.print(f"[dim]No trials for {namespace}/{name}[/dim]")
        return

    table = Table(title=f"Trials: {namespace}/{name}")
    table.add_column("Name")
    table.add_column("Parameters")
    table.add_column("Collector")
    table.add_column("Metrics")

    for trial in rows:
        params = ", ".join(f"{pa.name}={pa.value}" for pa in trial.spec.parameter_assignments)
        collector = trial.spec.metrics_collector
        table.add_row(
            trial.name,
            params or "-",
            collector.collector.kind.value,
            ", ".join(collector.metric_names) or "-",
        )

    console.print(table)
