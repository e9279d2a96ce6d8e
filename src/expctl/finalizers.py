# Copyright (c) Syntropy Systems
"""Finalizer lifecycle of experiments.

An experiment carries the controller's finalizer from the first apply until
teardown has purged its metric history. Only then is the finalizer cleared
and the store allowed to remove the experiment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from expctl.errors import LifecycleError, PersistenceError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from expctl.models.experiment import Experiment
    from expctl.store import ResourceStore

logger = logging.getLogger(__name__)

DEFAULT_FINALIZER = "clean-data-in-db"


class FinalizerState(str, Enum):
    """Where an experiment is in its deletion lifecycle."""

    ACTIVE = "Active"
    DELETION_REQUESTED = "DeletionRequested"
    FINALIZED = "Finalized"


@dataclass(frozen=True)
class ReconcileResult:
    """Signal returned to the scheduler."""

    requeue: bool = False


def finalizer_state(experiment: Experiment) -> FinalizerState:
    """Classify an experiment by deletion timestamp and finalizers."""
    if not experiment.is_deleting:
        return FinalizerState.ACTIVE
    if experiment.metadata.finalizers:
        return FinalizerState.DELETION_REQUESTED
    return FinalizerState.FINALIZED


def with_finalizer(finalizers: Sequence[str], name: str) -> list[str]:
    """Return ``finalizers`` with ``name`` appended if missing."""
    result = list(dict.fromkeys(finalizers))
    if name not in result:
        result.append(name)
    return result


def without_finalizer(finalizers: Sequence[str], name: str) -> list[str]:
    """Return ``finalizers`` with every ``name`` removed, order kept."""
    return [f for f in dict.fromkeys(finalizers) if f != name]


class FinalizerLifecycleManager:
    """Installs finalizers and gates their removal on a successful purge."""

    store: ResourceStore

    def __init__(self, store: ResourceStore) -> None:
        self.store = store

    def install_finalizers(
        self,
        experiment: Experiment,
        finalizers: Sequence[str],
    ) -> ReconcileResult:
        """Set the finalizer set of a live experiment.

        Raises:
            LifecycleError: The experiment is already being deleted.
            PersistenceError: The update was rejected.

        """
        if experiment.is_deleting:
            msg = "cannot install finalizers on an experiment being deleted"
            raise LifecycleError(msg, experiment=experiment.identity)
        return self._update_finalizers(experiment, finalizers)

    def teardown_and_remove_finalizers(
        self,
        experiment: Experiment,
        finalizers: Sequence[str] = (),
    ) -> ReconcileResult:
        """Purge the experiment's history, then set its remaining finalizers.

        On purge failure the finalizers are left untouched so the next
        reconciliation repeats the whole teardown.

        Raises:
            LifecycleError: Deletion has not been requested.
            PersistenceError: Purge or update failed.

        """
        identity = experiment.identity
        if not experiment.is_deleting:
            msg = "teardown requires a deletion timestamp"
            raise LifecycleError(msg, experiment=identity)

        try:
            purged = self.store.purge_experiment(identity.namespace, identity.name)
        except PersistenceError:
            logger.exception("Fail to delete data in DB for %s", identity)
            raise
        logger.info("Purged %d history records of %s", purged, identity)

        return self._update_finalizers(experiment, finalizers)

    def reconcile_finalizers(
        self,
        experiment: Experiment,
        finalizers: Sequence[str],
    ) -> ReconcileResult:
        """Install or tear down depending on the deletion timestamp."""
        if experiment.is_deleting:
            return self.teardown_and_remove_finalizers(experiment, finalizers)
        return self.install_finalizers(experiment, finalizers)

    def _update_finalizers(
        self,
        experiment: Experiment,
        finalizers: Sequence[str],
    ) -> ReconcileResult:
        """Persist a copy with the new finalizers; adopt it on success.

        Finalizer changes do not bump the generation, so a successful update
        always asks the scheduler to requeue.
        """
        identity = experiment.identity
        updated = experiment.model_copy(deep=True)
        updated.metadata.finalizers = list(dict.fromkeys(finalizers))

        try:
            stored = self.store.update_experiment(updated)
        except PersistenceError:
            logger.exception("Fail to update finalizers of %s", identity)
            raise

        experiment.metadata.finalizers = stored.metadata.finalizers
        experiment.metadata.resource_version = stored.metadata.resource_version
        logger.info(
            "Updated finalizers of %s to %s (%s)",
            identity, stored.metadata.finalizers or "[]", finalizer_state(stored).value,
        )
        return ReconcileResult(requeue=True)
