# Copyright (c) Syntropy Systems
"""Placeholder substitution for trial templates.

Templates reference values with ``{{ name }}``. Names resolve against the
trial's parameter assignments and a small set of reserved wiring variables
supplied by the caller (``trial.name``, ``trial.namespace``,
``experiment.name``). Rendering is a pure function of its inputs.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from expctl.errors import RenderError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from expctl.models.trial import ParameterAssignment

# Any text between double braces is a placeholder; surrounding blanks are trimmed.
PLACEHOLDER_RE = re.compile(r"\{\{(.*?)\}\}")

TRIAL_NAME = "trial.name"
TRIAL_NAMESPACE = "trial.namespace"
EXPERIMENT_NAME = "experiment.name"
RESERVED_NAMES = frozenset({TRIAL_NAME, TRIAL_NAMESPACE, EXPERIMENT_NAME})


def placeholders(template: str) -> list[str]:
    """Return placeholder names in first-appearance order, without repeats."""
    seen: dict[str, None] = {}
    for match in PLACEHOLDER_RE.finditer(template):
        seen.setdefault(match.group(1).strip(), None)
    return list(seen)


def render(
    template: str,
    assignments: Sequence[ParameterAssignment],
    context: Mapping[str, str] | None = None,
) -> str:
    """Substitute assignments and context variables into a template.

    When an assignment name repeats, the last occurrence wins. Raises
    RenderError for placeholders that resolve to nothing and for assignments
    that shadow a reserved variable.
    """
    values: dict[str, str] = dict(context or {})
    for assignment in assignments:
        if assignment.name in RESERVED_NAMES:
            msg = f"parameter {assignment.name!r} shadows a reserved template variable"
            raise RenderError(msg)
        values[assignment.name] = assignment.value

    names = placeholders(template)
    if "" in names:
        msg = "empty template placeholder"
        raise RenderError(msg)

    unresolved = [name for name in names if name not in values]
    if unresolved:
        msg = "unresolved template placeholders: " + ", ".join(unresolved)
        raise RenderError(msg, unresolved=unresolved)

    return PLACEHOLDER_RE.sub(lambda m: values[m.group(1).strip()], template)


class TemplateRenderer:
    """Callable wrapper around :func:`render` for injection."""

    def render(
        self,
        template: str,
        assignments: Sequence[ParameterAssignment],
        context: Mapping[str, str] | None = None,
    ) -> str:
        return render(template, assignments, context)
