# Copyright (c) Syntropy Systems
"""Pytest fixtures for expctl tests."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from expctl.models.experiment import Experiment
from expctl.models.trial import Trial

# Store original cwd at module load time
_original_cwd = Path.cwd()

JOB_TEMPLATE = """\
apiVersion: batch/v1
kind: Job
metadata:
  name: {{ trial.name }}
  namespace: {{ trial.namespace }}
spec:
  template:
    spec:
      containers:
        - name: training
          image: example/train:latest
          command:
            - python
            - train.py
            - --lr={{ lr }}
            - --batch-size={{batch}}
      restartPolicy: Never
"""


class FakeStore:
    """In-memory resource store that records every call."""

    def __init__(
        self,
        fail_create: Optional[Exception] = None,
        fail_update: Optional[Exception] = None,
        fail_purge: Optional[Exception] = None,
    ) -> None:
        self.fail_create = fail_create
        self.fail_update = fail_update
        self.fail_purge = fail_purge
        self.created: list[Trial] = []
        self.updated: list[Experiment] = []
        self.purged: list[tuple[str, str]] = []
        self.calls: list[str] = []

    def create_trial(self, trial: Trial) -> None:
        self.calls.append("create")
        if self.fail_create is not None:
            raise self.fail_create
        self.created.append(trial)

    def update_experiment(self, experiment: Experiment) -> Experiment:
        self.calls.append("update")
        if self.fail_update is not None:
            raise self.fail_update
        stored = experiment.model_copy(deep=True)
        stored.metadata.resource_version += 1
        self.updated.append(stored)
        return stored

    def purge_experiment(self, namespace: str, name: str) -> int:
        self.calls.append("purge")
        if self.fail_purge is not None:
            raise self.fail_purge
        self.purged.append((namespace, name))
        return 3


def experiment_manifest(
    name: str = "exp1",
    namespace: str = "ns",
    template: str = JOB_TEMPLATE,
    **spec: Any,
) -> dict[str, Any]:
    """Build an Experiment manifest in wire (camelCase) form."""
    body: dict[str, Any] = {
        "objective": {
            "type": "maximize",
            "objectiveMetricName": "accuracy",
            "additionalMetricNames": ["loss", "f1"],
        },
        "trialTemplate": {"rawTemplate": template},
    }
    body.update(spec)
    return {
        "apiVersion": "kubeflow.org/v1alpha3",
        "kind": "Experiment",
        "metadata": {"name": name, "namespace": namespace},
        "spec": body,
    }


@pytest.fixture
def make_experiment() -> Callable[..., Experiment]:
    """Factory for persisted-looking experiments (uid and version set)."""

    def _make(uid: Optional[str] = "uid-exp1", **kwargs: Any) -> Experiment:
        experiment = Experiment.model_validate(experiment_manifest(**kwargs))
        experiment.metadata.uid = uid
        experiment.metadata.resource_version = 1
        return experiment

    return _make


@pytest.fixture
def fake_store() -> FakeStore:
    """In-memory store."""
    return FakeStore()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def expctl_project(temp_dir: Path) -> Generator[Path, None, None]:
    """Create a temporary expctl project directory."""
    from expctl.store import init_db

    expctl_dir = temp_dir / ".expctl"
    expctl_dir.mkdir()

    # Initialize database
    db_path = expctl_dir / "expctl.db"
    init_db(db_path)

    # Change to temp directory
    os.chdir(temp_dir)

    yield temp_dir

    # Always return to original cwd
    os.chdir(_original_cwd)


@pytest.fixture
def store(expctl_project: Path):
    """SQLite store for the test project."""
    from expctl.store import SQLiteStore

    db_path = expctl_project / ".expctl" / "expctl.db"
    with SQLiteStore(db_path) as s:
        yield s
