# Copyright (c) Syntropy Systems
"""expctl create-trial command."""
from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from expctl.collector import MetricsCollectorSpecBuilder
from expctl.config import get_db_path, load_config, require_expctl_dir
from expctl.errors import ExpctlError
from expctl.factory import RandomSuffix, TrialFactory
from expctl.models.trial import ParameterAssignment
from expctl.store import SQLiteStore

console = Console()


def parse_assignments(values: list[str] | None) -> list[ParameterAssignment]:
    """Parse repeated ``name=value`` options, keeping their order."""
    try:
        return [ParameterAssignment.parse(v) for v in values or []]
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--assign") from e


def create_trial(
    name: str = typer.Argument(..., help="Experiment name"),
    namespace: str = typer.Option(
        "default",
        "--namespace", "-n",
        help="Experiment namespace",
    ),
    assign: Optional[list[str]] = typer.Option(
        None,
        "--assign", "-a",
        help="Parameter assignment as name=value (repeatable, order kept)",
    ),
    seed: Optional[int] = typer.Option(
        None,
        "--seed",
        help="Seed for the trial name suffix",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Print the trial without creating it",
    ),
) -> None:
    """Create one trial from a stored experiment."""
    assignments = parse_assignments(assign)

    try:
        expctl_dir = require_expctl_dir()
        config = load_config(expctl_dir)
    except (RuntimeError, ExpctlError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    with SQLiteStore(get_db_path(expctl_dir)) as store:
        experiment = store.get_experiment(namespace, name)
        if experiment is None:
            console.print(f"[red]Error:[/red] experiment {namespace}/{name} not found")
            raise typer.Exit(1)
        if experiment.is_deleting:
            console.print(f"[red]Error:[/red] experiment {namespace}/{name} is being deleted")
            raise typer.Exit(1)

        factory = TrialFactory(
            store,
            collector_builder=MetricsCollectorSpecBuilder(config.default_collector),
            suffix=RandomSuffix(seed),
        )
        try:
            if dry_run:
                trial = factory.build_trial(experiment, assignments)
            else:
                trial = factory.create_trial(experiment, assignments)
        except ExpctlError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            raise typer.Exit(1) from e

    if dry_run:
        console.print(f"[yellow]Dry run[/yellow] - trial {trial.identity} not created")
        console.print(trial.spec.run_spec, markup=False, highlight=False)
        return

    console.print(f"[green]Created trial[/green] {trial.identity}")
    for pa in trial.spec.parameter_assignments:
        console.print(f"  [dim]{escape(pa.name)}:[/dim] {escape(pa.value)}")
