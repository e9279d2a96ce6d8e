# Copyright (c) Syntropy Systems
"""Error types raised by the reconciliation core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from expctl.models.meta import NamespacedName


class ExpctlError(Exception):
    """Base error carrying the identity of the resources involved."""

    experiment: NamespacedName | None
    trial: str | None

    def __init__(
        self,
        message: str,
        *,
        experiment: NamespacedName | None = None,
        trial: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.experiment = experiment
        self.trial = trial

    def __str__(self) -> str:
        context: list[str] = []
        if self.experiment is not None:
            context.append(f"experiment={self.experiment}")
        if self.trial is not None:
            context.append(f"trial={self.trial}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class TemplateValidationError(ExpctlError):
    """Trial template renders to an undecodable or invalid manifest."""


class RenderError(TemplateValidationError):
    """Template substitution failed."""

    def __init__(
        self,
        message: str,
        *,
        unresolved: list[str] | None = None,
        experiment: NamespacedName | None = None,
        trial: str | None = None,
    ) -> None:
        super().__init__(message, experiment=experiment, trial=trial)
        self.unresolved = unresolved or []


class OwnerReferenceError(ExpctlError):
    """Ownership linkage between two resources failed."""


class ConfigurationError(ExpctlError):
    """Incompatible or missing configuration."""


class LifecycleError(ExpctlError):
    """Finalizer operation requested in the wrong lifecycle state."""


class PersistenceError(ExpctlError):
    """A create, update or purge against the resource store failed."""


class AlreadyExistsError(PersistenceError):
    """Create-only write hit an existing resource."""


class NotFoundError(PersistenceError):
    """The addressed resource does not exist."""


class ConflictError(PersistenceError):
    """Update was based on a stale resource version."""
