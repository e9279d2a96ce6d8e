# Copyright (c) Syntropy Systems
"""Resource models."""

from .experiment import (
    CollectorKind,
    CollectorSpec,
    Experiment,
    ExperimentSpec,
    FileSystemKind,
    FileSystemPath,
    FilterSpec,
    HttpGet,
    MetricsCollectorSpec,
    ObjectiveSpec,
    ObjectiveType,
    SourceSpec,
    TrialTemplate,
)
from .meta import NamespacedName, ObjectMeta, OwnerReference, TypeDescriptor
from .trial import (
    LABEL_EXPERIMENT_NAME,
    ParameterAssignment,
    Trial,
    TrialMetricsCollector,
    TrialSpec,
)

__all__ = [
    "LABEL_EXPERIMENT_NAME",
    "CollectorKind",
    "CollectorSpec",
    "Experiment",
    "ExperimentSpec",
    "FileSystemKind",
    "FileSystemPath",
    "FilterSpec",
    "HttpGet",
    "MetricsCollectorSpec",
    "NamespacedName",
    "ObjectMeta",
    "ObjectiveSpec",
    "ObjectiveType",
    "OwnerReference",
    "ParameterAssignment",
    "SourceSpec",
    "Trial",
    "TrialMetricsCollector",
    "TrialSpec",
    "TrialTemplate",
    "TypeDescriptor",
]
