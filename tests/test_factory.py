# Copyright (c) Syntropy Systems
"""Tests for trial construction."""

from __future__ import annotations

import re

import pytest
import yaml
from conftest import FakeStore

from expctl.errors import (
    AlreadyExistsError,
    ConfigurationError,
    OwnerReferenceError,
    RenderError,
    TemplateValidationError,
)
from expctl.factory import SUFFIX_ALPHABET, RandomSuffix, TrialFactory, workload_kind
from expctl.models.experiment import CollectorKind
from expctl.models.trial import LABEL_EXPERIMENT_NAME, ParameterAssignment

ASSIGNMENTS = [
    ParameterAssignment(name="lr", value="0.1"),
    ParameterAssignment(name="batch", value="32"),
]
TRIAL_NAME_RE = re.compile(rf"^exp1-[{SUFFIX_ALPHABET}]{{8}}$")


class TestCreateTrial:
    """Tests for the happy path of trial creation."""

    def test_scenario_exp1(self, make_experiment, fake_store: FakeStore) -> None:
        """Test name, namespace, label and assignments of a new trial."""
        experiment = make_experiment()
        trial = TrialFactory(fake_store).create_trial(experiment, ASSIGNMENTS)

        assert TRIAL_NAME_RE.match(trial.name)
        assert trial.namespace == "ns"
        assert trial.metadata.labels == {LABEL_EXPERIMENT_NAME: "exp1"}
        assert [(p.name, p.value) for p in trial.spec.parameter_assignments] == [
            ("lr", "0.1"),
            ("batch", "32"),
        ]
        assert fake_store.created == [trial]

    def test_owner_reference(self, make_experiment, fake_store: FakeStore) -> None:
        """Test that the trial is controlled by its experiment."""
        trial = TrialFactory(fake_store).create_trial(make_experiment(), ASSIGNMENTS)

        refs = trial.metadata.owner_references
        assert len(refs) == 1
        assert refs[0].uid == "uid-exp1"
        assert refs[0].name == "exp1"
        assert refs[0].kind == "Experiment"
        assert refs[0].controller is True
        assert refs[0].block_owner_deletion is True

    def test_run_spec_rendered(self, make_experiment, fake_store: FakeStore) -> None:
        """Test that the run spec carries assignments and trial identity."""
        factory = TrialFactory(fake_store, suffix=lambda: "bcdfghjk")
        trial = factory.create_trial(make_experiment(), ASSIGNMENTS)

        assert trial.name == "exp1-bcdfghjk"
        manifest = yaml.safe_load(trial.spec.run_spec)
        assert manifest["kind"] == "Job"
        assert manifest["metadata"] == {"name": "exp1-bcdfghjk", "namespace": "ns"}
        command = manifest["spec"]["template"]["spec"]["containers"][0]["command"]
        assert command == ["python", "train.py", "--lr=0.1", "--batch-size=32"]

    def test_seeded_suffix_reproducible(self, make_experiment) -> None:
        """Test that a seeded generator reproduces names and manifests."""
        first = TrialFactory(FakeStore(), suffix=RandomSuffix(42)).create_trial(
            make_experiment(), ASSIGNMENTS
        )
        second = TrialFactory(FakeStore(), suffix=RandomSuffix(42)).create_trial(
            make_experiment(), ASSIGNMENTS
        )

        assert first.name == second.name
        assert first.spec.run_spec == second.spec.run_spec

    def test_random_suffix_shape(self) -> None:
        """Test suffix length and alphabet."""
        suffix = RandomSuffix(1)
        values = {suffix() for _ in range(50)}

        assert all(len(v) == 8 for v in values)
        assert all(set(v) <= set(SUFFIX_ALPHABET) for v in values)
        assert len(values) == 50

    def test_metric_names(self, make_experiment, fake_store: FakeStore) -> None:
        """Test objective metric followed by additional metrics."""
        trial = TrialFactory(fake_store).create_trial(make_experiment(), ASSIGNMENTS)

        assert trial.spec.metrics_collector.metric_names == ["accuracy", "loss", "f1"]
        assert trial.spec.metrics_collector.workload_kind == "Job"
        assert trial.spec.metrics_collector.collector.kind == CollectorKind.STDOUT

    def test_metric_names_keep_duplicates(self, make_experiment, fake_store: FakeStore) -> None:
        """Test that duplicate metric names are not collapsed."""
        experiment = make_experiment()
        experiment.spec.objective.additional_metric_names = ["loss", "accuracy", "loss"]
        trial = TrialFactory(fake_store).create_trial(experiment, ASSIGNMENTS)

        assert trial.spec.metrics_collector.metric_names == [
            "accuracy", "loss", "accuracy", "loss",
        ]

    def test_objective_copied(self, make_experiment, fake_store: FakeStore) -> None:
        """Test that the trial gets its own copy of the objective."""
        experiment = make_experiment()
        trial = TrialFactory(fake_store).create_trial(experiment, ASSIGNMENTS)

        assert trial.spec.objective == experiment.spec.objective
        trial.spec.objective.additional_metric_names.append("extra")
        assert experiment.spec.objective.additional_metric_names == ["loss", "f1"]

    def test_no_assignments(self, make_experiment, fake_store: FakeStore) -> None:
        """Test that zero assignments are legal."""
        template = "apiVersion: batch/v1\nkind: Job\nmetadata:\n  name: {{trial.name}}\n"
        trial = TrialFactory(fake_store).create_trial(make_experiment(template=template), None)

        assert trial.spec.parameter_assignments == []
        assert len(fake_store.created) == 1

    def test_json_template(self, make_experiment, fake_store: FakeStore) -> None:
        """Test that JSON manifests decode too."""
        template = '{"apiVersion": "kubeflow.org/v1", "kind": "TFJob", "lr": "{{lr}}"}'
        trial = TrialFactory(fake_store).create_trial(
            make_experiment(template=template), ASSIGNMENTS
        )

        assert trial.spec.metrics_collector.workload_kind == "TFJob"

    def test_retain_flags_default_false(self, make_experiment, fake_store: FakeStore) -> None:
        """Test retention defaults when no retain is configured."""
        trial = TrialFactory(fake_store).create_trial(make_experiment(), ASSIGNMENTS)

        assert trial.spec.retain_run is False
        assert trial.spec.retain_metrics_collector is False

    def test_retain_flags_copied(self, make_experiment, fake_store: FakeStore) -> None:
        """Test retention flags taken from the experiment."""
        experiment = make_experiment(
            metricsCollectorSpec={"collector": {"kind": "StdOut"}, "retain": True},
        )
        experiment.spec.trial_template.retain = True
        trial = TrialFactory(fake_store).create_trial(experiment, ASSIGNMENTS)

        assert trial.spec.retain_run is True
        assert trial.spec.retain_metrics_collector is True

    def test_collector_override_applied(self, make_experiment, fake_store: FakeStore) -> None:
        """Test that the experiment's collector config reaches the trial."""
        experiment = make_experiment(
            metricsCollectorSpec={
                "collector": {"kind": "File"},
                "source": {"fileSystemPath": {"path": "/var/log/m.log"}},
                "metrics": ["loss"],
            },
        )
        trial = TrialFactory(fake_store).create_trial(experiment, ASSIGNMENTS)

        collector = trial.spec.metrics_collector
        assert collector.collector.kind == CollectorKind.FILE
        assert collector.metric_names == ["loss"]


class TestCreateTrialFailures:
    """Tests that failures abort before any write."""

    def test_unresolved_placeholder(self, make_experiment, fake_store: FakeStore) -> None:
        """Test that an unset placeholder persists nothing."""
        experiment = make_experiment(template="kind: Job\nvalue: {{unset}}\n")

        with pytest.raises(RenderError) as exc_info:
            _ = TrialFactory(fake_store).create_trial(experiment, ASSIGNMENTS)

        assert exc_info.value.unresolved == ["unset"]
        assert "experiment=ns/exp1" in str(exc_info.value)
        assert fake_store.calls == []

    @pytest.mark.parametrize(
        "template",
        [
            "kind: [unclosed\n",
            "just a string\n",
            "apiVersion: v1\nmetadata: {}\n",
            "",
        ],
    )
    def test_invalid_manifest(self, make_experiment, fake_store: FakeStore, template: str) -> None:
        """Test that undecodable or kind-less manifests are rejected."""
        with pytest.raises(TemplateValidationError, match="invalid trial template"):
            _ = TrialFactory(fake_store).create_trial(make_experiment(template=template))

        assert fake_store.calls == []

    def test_missing_template(self, make_experiment, fake_store: FakeStore) -> None:
        """Test an experiment without a trial template."""
        experiment = make_experiment()
        experiment.spec.trial_template = None

        with pytest.raises(TemplateValidationError):
            _ = TrialFactory(fake_store).create_trial(experiment, ASSIGNMENTS)
        assert fake_store.calls == []

    def test_owner_without_uid(self, make_experiment, fake_store: FakeStore) -> None:
        """Test that linkage failure aborts creation."""
        with pytest.raises(OwnerReferenceError):
            _ = TrialFactory(fake_store).create_trial(make_experiment(uid=None), ASSIGNMENTS)

        assert fake_store.calls == []

    def test_trial_name_too_long(self, make_experiment, fake_store: FakeStore) -> None:
        """Test that a maximal experiment name cannot spawn an oversized trial name."""
        experiment = make_experiment(name="a" * 250)

        with pytest.raises(ConfigurationError) as exc_info:
            _ = TrialFactory(fake_store).create_trial(experiment, ASSIGNMENTS)

        assert exc_info.value.experiment == experiment.identity
        assert exc_info.value.trial is not None
        assert len(exc_info.value.trial) == 259
        assert fake_store.calls == []

    def test_collector_failure(self, make_experiment, fake_store: FakeStore) -> None:
        """Test that collector errors abort creation."""
        experiment = make_experiment(
            metricsCollectorSpec={"collector": {"kind": "TensorFlowEvent"}},
            template="apiVersion: kubeflow.org/v1\nkind: PyTorchJob\n",
        )

        with pytest.raises(ConfigurationError) as exc_info:
            _ = TrialFactory(fake_store).create_trial(experiment, ASSIGNMENTS)

        assert exc_info.value.trial is not None
        assert exc_info.value.trial.startswith("exp1-")
        assert fake_store.calls == []

    def test_persistence_failure_propagates(self, make_experiment) -> None:
        """Test that a name collision surfaces as a creation error."""
        store = FakeStore(fail_create=AlreadyExistsError("trial already exists"))

        with pytest.raises(AlreadyExistsError):
            _ = TrialFactory(store).create_trial(make_experiment(), ASSIGNMENTS)

        assert store.calls == ["create"]
        assert store.created == []

    def test_build_trial_does_not_persist(self, make_experiment, fake_store: FakeStore) -> None:
        """Test the dry-run path."""
        trial = TrialFactory(fake_store).build_trial(make_experiment(), ASSIGNMENTS)

        assert trial.name.startswith("exp1-")
        assert fake_store.calls == []


class TestWorkloadKind:
    """Tests for manifest kind discovery."""

    def test_first_document(self) -> None:
        """Test that only the first YAML document counts."""
        assert workload_kind("kind: Job\n---\nkind: Service\n") == "Job"

    def test_non_string_kind(self) -> None:
        """Test that kind must be a string."""
        with pytest.raises(TemplateValidationError):
            _ = workload_kind("kind: 3\n")
