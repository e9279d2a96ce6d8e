# Copyright (c) Syntropy Systems
"""expctl render command."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from expctl.cli.create_trial import parse_assignments
from expctl.errors import RenderError
from expctl.template import render as render_template

console = Console()


def render(
    template_file: Path = typer.Argument(
        ...,
        help="Path to a trial template",
        exists=True,
    ),
    assign: Optional[list[str]] = typer.Option(
        None,
        "--assign", "-a",
        help="Parameter assignment as name=value (repeatable)",
    ),
) -> None:
    """Render a trial template with the given assignments."""
    assignments = parse_assignments(assign)
    try:
        text = render_template(template_file.read_text(), assignments)
    except RenderError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    console.print(text, markup=False, highlight=False, soft_wrap=True)
