# Copyright (c) Syntropy Systems
"""Trial construction from an experiment and a set of parameter assignments."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Callable, cast

import yaml

from expctl.collector import MetricsCollectorSpecBuilder
from expctl.errors import (
    ConfigurationError,
    ExpctlError,
    OwnerReferenceError,
    PersistenceError,
    TemplateValidationError,
)
from expctl.models.experiment import Experiment
from expctl.models.meta import MAX_NAME_LENGTH, ObjectMeta
from expctl.models.trial import (
    LABEL_EXPERIMENT_NAME,
    ParameterAssignment,
    Trial,
    TrialSpec,
)
from expctl.ownership import ControllerReferenceLinker
from expctl.template import (
    EXPERIMENT_NAME,
    TRIAL_NAME,
    TRIAL_NAMESPACE,
    TemplateRenderer,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from expctl.ownership import OwnerLinker
    from expctl.store import ResourceStore

logger = logging.getLogger(__name__)

SUFFIX_LENGTH = 8
# No vowels and no look-alike characters, so suffixes never spell words.
SUFFIX_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"


class RandomSuffix:
    """Random name suffix generator. Pass a seed for reproducible names."""

    def __init__(self, seed: int | None = None, length: int = SUFFIX_LENGTH) -> None:
        self._rng = random.Random(seed)  # noqa: S311
        self.length = length

    def __call__(self) -> str:
        return "".join(self._rng.choice(SUFFIX_ALPHABET) for _ in range(self.length))


def workload_kind(run_spec: str) -> str:
    """Decode a rendered manifest (YAML or JSON) and return its kind.

    Only the first document is considered.
    """
    try:
        document = next(iter(yaml.safe_load_all(run_spec)), None)
    except yaml.YAMLError as e:
        msg = f"invalid trial template: {e}"
        raise TemplateValidationError(msg) from e

    if not isinstance(document, dict):
        msg = "invalid trial template: manifest is not a mapping"
        raise TemplateValidationError(msg)

    kind = cast("dict[str, object]", document).get("kind")
    if not isinstance(kind, str) or not kind:
        msg = "invalid trial template: manifest has no kind"
        raise TemplateValidationError(msg)
    return kind


class TrialFactory:
    """Turns an experiment plus assignments into one persisted Trial.

    The trial is fully assembled in memory before the single create call, so
    a failure at any step leaves nothing behind in the store.
    """

    store: ResourceStore
    linker: OwnerLinker
    renderer: TemplateRenderer
    collector_builder: MetricsCollectorSpecBuilder
    suffix: Callable[[], str]

    def __init__(
        self,
        store: ResourceStore,
        *,
        linker: OwnerLinker | None = None,
        renderer: TemplateRenderer | None = None,
        collector_builder: MetricsCollectorSpecBuilder | None = None,
        suffix: Callable[[], str] | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            store: Where trials are created
            linker: Ownership capability (defaults to controller references)
            renderer: Template renderer
            collector_builder: Metrics collector resolution
            suffix: Zero-argument callable producing the name suffix

        """
        self.store = store
        self.linker = linker or ControllerReferenceLinker()
        self.renderer = renderer or TemplateRenderer()
        self.collector_builder = collector_builder or MetricsCollectorSpecBuilder()
        self.suffix = suffix or RandomSuffix()

    def build_trial(
        self,
        experiment: Experiment,
        assignments: Sequence[ParameterAssignment] | None = None,
    ) -> Trial:
        """Assemble a trial without persisting it."""
        identity = experiment.identity
        trial_name = f"{experiment.name}-{self.suffix()}"
        if len(trial_name) > MAX_NAME_LENGTH:
            msg = (
                f"trial name would be {len(trial_name)} characters, "
                f"limit is {MAX_NAME_LENGTH}; shorten the experiment name"
            )
            raise ConfigurationError(msg, experiment=identity, trial=trial_name)
        metadata = ObjectMeta(
            name=trial_name,
            namespace=experiment.namespace,
            labels={LABEL_EXPERIMENT_NAME: experiment.name},
        )

        try:
            self.linker.link(experiment.metadata, metadata, Experiment.TYPE)
        except OwnerReferenceError:
            logger.exception("Set controller reference error for %s", identity)
            raise

        spec = experiment.spec
        objective = spec.objective.model_copy(deep=True)
        hps = [ParameterAssignment(name=a.name, value=a.value) for a in assignments or ()]

        template = spec.trial_template
        if template is None:
            msg = "invalid trial template: experiment has no trialTemplate"
            raise TemplateValidationError(msg, experiment=identity, trial=trial_name)

        try:
            run_spec = self.renderer.render(
                template.raw_template,
                hps,
                {
                    TRIAL_NAME: trial_name,
                    TRIAL_NAMESPACE: experiment.namespace,
                    EXPERIMENT_NAME: experiment.name,
                },
            )
            kind = workload_kind(run_spec)
        except TemplateValidationError as e:
            logger.error("Fail to get RunSpec from experiment %s: %s", identity, e.message)
            e.experiment, e.trial = identity, trial_name
            raise

        try:
            collector = self.collector_builder.build(
                experiment.name,
                trial_name,
                kind,
                experiment.namespace,
                objective.metric_names(),
                spec.metrics_collector_spec,
            )
        except ExpctlError as e:
            logger.error("Error getting metrics collector for %s: %s", identity, e.message)
            e.experiment, e.trial = identity, trial_name
            raise

        mc_spec = spec.metrics_collector_spec
        return Trial(
            metadata=metadata,
            spec=TrialSpec(
                objective=objective,
                parameter_assignments=hps,
                run_spec=run_spec,
                metrics_collector=collector,
                retain_run=template.retain,
                retain_metrics_collector=mc_spec.retain if mc_spec is not None else False,
            ),
        )

    def create_trial(
        self,
        experiment: Experiment,
        assignments: Sequence[ParameterAssignment] | None = None,
    ) -> Trial:
        """Build a trial and persist it with one create-only call."""
        trial = self.build_trial(experiment, assignments)
        try:
            self.store.create_trial(trial)
        except PersistenceError as e:
            logger.error("Trial create error for %s: %s", trial.name, e)
            raise
        logger.info(
            "Created trial %s for experiment %s with %d assignments",
            trial.identity, experiment.identity, len(trial.spec.parameter_assignments),
        )
        return trial
