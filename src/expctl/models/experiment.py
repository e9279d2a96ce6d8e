# Copyright (c) Syntropy Systems
"""Pydantic models for Experiment resources."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, ClassVar, cast

import yaml
from pydantic import Field

from .base import ExpctlBaseModel, JSONObject
from .meta import NamespacedName, ObjectMeta, TypeDescriptor

if TYPE_CHECKING:
    from pathlib import Path

API_VERSION = "kubeflow.org/v1alpha3"


class ObjectiveType(str, Enum):
    """Optimization direction."""

    MAXIMIZE = "maximize"
    MINIMIZE = "minimize"


class CollectorKind(str, Enum):
    """How a trial's metrics are collected."""

    STDOUT = "StdOut"
    FILE = "File"
    TF_EVENT = "TensorFlowEvent"
    PROMETHEUS = "PrometheusMetric"
    CUSTOM = "Custom"
    NONE = "None"


class FileSystemKind(str, Enum):
    """Whether a collector path names a file or a directory."""

    FILE = "File"
    DIRECTORY = "Directory"


class ObjectiveSpec(ExpctlBaseModel):
    """What an experiment optimizes and which metrics it reports."""

    type: ObjectiveType | None = None
    goal: float | None = None
    objective_metric_name: str
    additional_metric_names: list[str] = Field(default_factory=list)

    def metric_names(self) -> list[str]:
        """Objective metric followed by additional metrics, duplicates kept."""
        return [self.objective_metric_name, *self.additional_metric_names]


class TrialTemplate(ExpctlBaseModel):
    """Parameterized workload manifest."""

    raw_template: str
    retain: bool = False


class CollectorSpec(ExpctlBaseModel):
    """Collector kind plus the definition used by Custom collectors."""

    kind: CollectorKind = CollectorKind.STDOUT
    custom_collector: JSONObject | None = None


class FileSystemPath(ExpctlBaseModel):
    """Location of metrics written to disk."""

    path: str
    kind: FileSystemKind = FileSystemKind.FILE


class HttpGet(ExpctlBaseModel):
    """HTTP endpoint that exposes metrics."""

    port: int = Field(default=8080, ge=1, le=65535)
    path: str = "/metrics"


class FilterSpec(ExpctlBaseModel):
    """Regular expressions that extract (name, value) pairs from output."""

    metrics_format: list[str] = Field(default_factory=list)


class SourceSpec(ExpctlBaseModel):
    """Where and how a collector reads metrics."""

    file_system_path: FileSystemPath | None = None
    http_get: HttpGet | None = None
    filter: FilterSpec | None = None


class MetricsCollectorSpec(ExpctlBaseModel):
    """Experiment-level collector override."""

    collector: CollectorSpec = Field(default_factory=CollectorSpec)
    source: SourceSpec | None = None
    retain: bool = False
    # Restricts collection to a subset of the objective's metrics.
    metrics: list[str] | None = None


class ExperimentSpec(ExpctlBaseModel):
    """Desired state of an experiment."""

    objective: ObjectiveSpec
    trial_template: TrialTemplate | None = None
    metrics_collector_spec: MetricsCollectorSpec | None = None


class Experiment(ExpctlBaseModel):
    """Hyperparameter-search job specification."""

    TYPE: ClassVar[TypeDescriptor] = TypeDescriptor(API_VERSION, "Experiment")

    api_version: str = API_VERSION
    kind: str = "Experiment"
    metadata: ObjectMeta
    spec: ExperimentSpec

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
    def is_deleting(self) -> bool:
        """True once deletion has been requested."""
        return self.metadata.deletion_timestamp is not None

    @classmethod
    def from_yaml(cls, path: Path) -> Experiment:
        """Load an experiment manifest from a YAML file."""
        with path.open() as f:
            data = cast("dict[str, object]", yaml.safe_load(f) or {})
        return cls.model_validate(data)
