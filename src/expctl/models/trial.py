# Copyright (c) Syntropy Systems
"""Pydantic models for Trial resources."""

from __future__ import annotations

from typing import ClassVar

from pydantic import Field

from .base import ExpctlBaseModel
from .experiment import API_VERSION, CollectorSpec, ObjectiveSpec, SourceSpec
from .meta import NamespacedName, ObjectMeta, TypeDescriptor

# Label binding a trial to the experiment that spawned it.
LABEL_EXPERIMENT_NAME = "experiment-name"


class ParameterAssignment(ExpctlBaseModel):
    """One (hyperparameter name, concrete value) pair."""

    name: str
    value: str

    @classmethod
    def parse(cls, text: str) -> ParameterAssignment:
        """Parse ``name=value``."""
        name, sep, value = text.partition("=")
        if not sep or not name.strip():
            msg = f"expected name=value, got {text!r}"
            raise ValueError(msg)
        return cls(name=name.strip(), value=value)


class TrialMetricsCollector(ExpctlBaseModel):
    """Metrics collection resolved for a single trial."""

    collector: CollectorSpec
    source: SourceSpec | None = None
    metric_names: list[str] = Field(default_factory=list)
    experiment_name: str
    trial_name: str
    namespace: str
    workload_kind: str


class TrialSpec(ExpctlBaseModel):
    """Concrete configuration of one trial."""

    objective: ObjectiveSpec
    parameter_assignments: list[ParameterAssignment] = Field(default_factory=list)
    run_spec: str
    metrics_collector: TrialMetricsCollector
    retain_run: bool = False
    retain_metrics_collector: bool = False


class Trial(ExpctlBaseModel):
    """One runnable configuration spawned from an experiment."""

    TYPE: ClassVar[TypeDescriptor] = TypeDescriptor(API_VERSION, "Trial")

    api_version: str = API_VERSION
    kind: str = "Trial"
    metadata: ObjectMeta
    spec: TrialSpec

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def identity(self) -> NamespacedName:
        return self.metadata.identity

    @property
    def experiment_name(self) -> str | None:
        return self.metadata.labels.get(LABEL_EXPERIMENT_NAME)
