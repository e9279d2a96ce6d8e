# Copyright (c) Syntropy Systems
"""Metrics collector resolution for trials."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from expctl.errors import ConfigurationError
from expctl.models.experiment import (
    CollectorKind,
    CollectorSpec,
    FileSystemKind,
    FileSystemPath,
    FilterSpec,
    HttpGet,
    SourceSpec,
)
from expctl.models.trial import TrialMetricsCollector

if TYPE_CHECKING:
    from collections.abc import Sequence

    from expctl.models.experiment import MetricsCollectorSpec

logger = logging.getLogger(__name__)

DEFAULT_METRICS_FORMAT = r"([\w|-]+)\s*=\s*((-?\d+)(\.\d+)?)"
DEFAULT_TF_EVENT_DIR = "/var/log/katib/tfevent/"
MIN_FILTER_GROUPS = 2

# Workloads whose pods a sidecar collector can be injected into.
POD_WORKLOAD_KINDS = frozenset({"Job", "TFJob", "PyTorchJob"})

# Collector kind -> workload kinds it can attach to. None means any.
COMPATIBLE_WORKLOADS: dict[CollectorKind, frozenset[str] | None] = {
    CollectorKind.STDOUT: POD_WORKLOAD_KINDS,
    CollectorKind.FILE: POD_WORKLOAD_KINDS,
    CollectorKind.TF_EVENT: frozenset({"Job", "TFJob"}),
    CollectorKind.PROMETHEUS: None,
    CollectorKind.CUSTOM: None,
    CollectorKind.NONE: None,
}


def _check_filter(source: SourceSpec | None) -> None:
    if source is None or source.filter is None:
        return
    for pattern in source.filter.metrics_format:
        try:
            compiled = re.compile(pattern)
        except re.error as e:
            msg = f"invalid metricsFormat {pattern!r}: {e}"
            raise ConfigurationError(msg) from e
        if compiled.groups < MIN_FILTER_GROUPS:
            msg = f"metricsFormat {pattern!r} must capture a metric name and a value"
            raise ConfigurationError(msg)


def _resolve_source(kind: CollectorKind, source: SourceSpec | None) -> SourceSpec | None:
    """Validate the source against the collector kind and fill in defaults."""
    source = source.model_copy(deep=True) if source is not None else SourceSpec()

    if kind == CollectorKind.STDOUT:
        if source.file_system_path is not None or source.http_get is not None:
            msg = "StdOut collector does not take a fileSystemPath or httpGet source"
            raise ConfigurationError(msg)
        if source.filter is None or not source.filter.metrics_format:
            source.filter = FilterSpec(metrics_format=[DEFAULT_METRICS_FORMAT])

    elif kind == CollectorKind.FILE:
        fs_path = source.file_system_path
        if fs_path is None or not fs_path.path:
            msg = "File collector requires source.fileSystemPath.path"
            raise ConfigurationError(msg)
        if fs_path.kind != FileSystemKind.FILE:
            msg = "File collector requires a fileSystemPath of kind File"
            raise ConfigurationError(msg)

    elif kind == CollectorKind.TF_EVENT:
        if source.file_system_path is None:
            source.file_system_path = FileSystemPath(
                path=DEFAULT_TF_EVENT_DIR,
                kind=FileSystemKind.DIRECTORY,
            )
        elif source.file_system_path.kind != FileSystemKind.DIRECTORY:
            msg = "TensorFlowEvent collector requires a fileSystemPath of kind Directory"
            raise ConfigurationError(msg)

    elif kind == CollectorKind.PROMETHEUS:
        if source.http_get is None:
            source.http_get = HttpGet()

    elif kind == CollectorKind.NONE:
        return None

    _check_filter(source)
    return source


def _select_metrics(
    metric_names: Sequence[str],
    requested: Sequence[str] | None,
) -> list[str]:
    if requested is None:
        return list(metric_names)
    unknown = [name for name in requested if name not in metric_names]
    if unknown:
        msg = "collector references undeclared metrics: " + ", ".join(unknown)
        raise ConfigurationError(msg)
    wanted = set(requested)
    return [name for name in metric_names if name in wanted]


class MetricsCollectorSpecBuilder:
    """Derives a trial's metrics collector from the experiment's declarations."""

    default_kind: CollectorKind

    def __init__(self, default_kind: CollectorKind = CollectorKind.STDOUT) -> None:
        """Initialize the builder.

        Args:
            default_kind: Collector used when the experiment declares none.
                Must not be ``None``; opting out of collection is explicit.

        """
        if default_kind == CollectorKind.NONE:
            msg = "default collector cannot be None"
            raise ConfigurationError(msg)
        self.default_kind = default_kind

    def build(
        self,
        experiment_name: str,
        trial_name: str,
        workload_kind: str,
        namespace: str,
        metric_names: Sequence[str],
        collector_config: MetricsCollectorSpec | None = None,
    ) -> TrialMetricsCollector:
        """Resolve the collector spec for one trial.

        Raises:
            ConfigurationError: If the collector cannot attach to the workload
                kind, its source is inconsistent with its kind, or it names a
                metric the objective does not declare.

        """
        if collector_config is None:
            collector = CollectorSpec(kind=self.default_kind)
            source = None
            requested = None
        else:
            collector = collector_config.collector.model_copy(deep=True)
            source = collector_config.source
            requested = collector_config.metrics

        kind = collector.kind
        compatible = COMPATIBLE_WORKLOADS[kind]
        if compatible is not None and workload_kind not in compatible:
            msg = (
                f"{kind.value} collector cannot be used with workload kind "
                f"{workload_kind!r}; supported: {', '.join(sorted(compatible))}"
            )
            raise ConfigurationError(msg)

        if kind == CollectorKind.CUSTOM and not collector.custom_collector:
            msg = "Custom collector requires collector.customCollector"
            raise ConfigurationError(msg)

        resolved_source = _resolve_source(kind, source)
        selected = _select_metrics(metric_names, requested)
        if kind == CollectorKind.NONE:
            selected = []

        logger.debug(
            "Resolved %s collector for trial %s/%s (%d metrics)",
            kind.value, namespace, trial_name, len(selected),
        )
        return TrialMetricsCollector(
            collector=collector,
            source=resolved_source,
            metric_names=selected,
            experiment_name=experiment_name,
            trial_name=trial_name,
            namespace=namespace,
            workload_kind=workload_kind,
        )
