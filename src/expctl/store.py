# Copyright (c) Syntropy Systems
"""Resource store interface and its SQLite implementation."""

from __future__ import annotations

import contextlib
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Protocol

from expctl.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    PersistenceError,
)
from expctl.models.experiment import Experiment
from expctl.models.meta import NamespacedName
from expctl.models.trial import Trial

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path
    from types import TracebackType

    from typing_extensions import Self

logger = logging.getLogger(__name__)

SCHEMA = """
-- Experiments (owners; finalizers gate removal)
CREATE TABLE IF NOT EXISTS experiments (
    namespace TEXT NOT NULL,
    name TEXT NOT NULL,
    uid TEXT NOT NULL UNIQUE,
    resource_version INTEGER NOT NULL,
    body TEXT NOT NULL,  -- JSON manifest
    created_at TEXT DEFAULT (datetime('now')),
    PRIMARY KEY (namespace, name)
);

-- Trials (children; owner_uid is the controller reference)
CREATE TABLE IF NOT EXISTS trials (
    namespace TEXT NOT NULL,
    name TEXT NOT NULL,
    experiment_name TEXT,
    owner_uid TEXT,
    body TEXT NOT NULL,  -- JSON manifest
    created_at TEXT DEFAULT (datetime('now')),
    PRIMARY KEY (namespace, name)
);

-- Historical metric reports, purged on experiment teardown
CREATE TABLE IF NOT EXISTS observation_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    namespace TEXT NOT NULL,
    experiment_name TEXT NOT NULL,
    trial_name TEXT NOT NULL,
    metric_name TEXT NOT NULL,
    value TEXT NOT NULL,
    timestamp TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_trials_owner ON trials(owner_uid);
CREATE INDEX IF NOT EXISTS idx_trials_experiment ON trials(namespace, experiment_name);
CREATE INDEX IF NOT EXISTS idx_obs_experiment ON observation_logs(namespace, experiment_name);
"""


class ResourceStore(Protocol):
    """Persistence operations the reconciliation core depends on."""

    def create_trial(self, trial: Trial) -> None: ...

    def update_experiment(self, experiment: Experiment) -> Experiment: ...

    def purge_experiment(self, namespace: str, name: str) -> int: ...


def get_connection(db_path: Path) -> sqlite3.Connection:
    """
    Get a database connection with proper settings for concurrent access.

    - isolation_level=None for explicit transaction control
    - WAL mode for concurrent readers/writers
    - busy_timeout to wait for locks instead of failing immediately
    - Row factory for dict-like access
    """
    conn = sqlite3.connect(str(db_path), timeout=5.0, isolation_level=None)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: Path) -> None:
    """Initialize the database with the schema."""
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA)
    finally:
        conn.close()


def utcnow() -> str:
    """Get current UTC time as ISO format string."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@contextlib.contextmanager
def _store_errors(identity: NamespacedName, trial: str | None = None) -> Iterator[None]:
    """Translate sqlite errors into PersistenceError."""
    try:
        yield
    except sqlite3.Error as e:
        msg = f"store error: {e}"
        raise PersistenceError(msg, experiment=identity, trial=trial) from e


class SQLiteStore:
    """Resource store backed by a single SQLite database."""

    db_path: Path
    conn: sqlite3.Connection

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.conn = get_connection(db_path)

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # --- Experiment Operations ---

    def apply_experiment(self, experiment: Experiment) -> Experiment:
        """Create an experiment or replace the spec of an existing one.

        Server-owned metadata (uid, finalizers, deletion timestamp) of an
        existing experiment is preserved.
        """
        identity = experiment.identity
        with _store_errors(identity):
            existing = self.get_experiment(identity.namespace, identity.name)
            if existing is None:
                stored = experiment.model_copy(deep=True)
                stored.metadata.uid = str(uuid.uuid4())
                stored.metadata.resource_version = 1
                stored.metadata.creation_timestamp = utcnow()
                stored.metadata.deletion_timestamp = None
                self.conn.execute(
                    """
                    INSERT INTO experiments (namespace, name, uid, resource_version, body)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        identity.namespace,
                        identity.name,
                        stored.metadata.uid,
                        stored.metadata.resource_version,
                        stored.model_dump_json(by_alias=True, exclude_none=True),
                    ),
                )
                return stored

            if existing.is_deleting:
                msg = "experiment is being deleted"
                raise ConflictError(msg, experiment=identity)

            stored = existing.model_copy(deep=True)
            stored.spec = experiment.spec.model_copy(deep=True)
            stored.metadata.labels = dict(experiment.metadata.labels)
            stored.metadata.resource_version += 1
            self._write_experiment(stored)
            return stored

    def get_experiment(self, namespace: str, name: str) -> Experiment | None:
        """Get an experiment by namespace and name."""
        row = self.conn.execute(
            "SELECT body FROM experiments WHERE namespace = ? AND name = ?",
            (namespace, name),
        ).fetchone()

        if row is None:
            return None

        return Experiment.model_validate_json(row["body"])

    def list_experiments(self, namespace: str | None = None) -> list[Experiment]:
        """List experiments, optionally restricted to one namespace."""
        query = "SELECT body FROM experiments"
        params: list[str] = []
        if namespace:
            query += " WHERE namespace = ?"
            params.append(namespace)
        query += " ORDER BY namespace, name"

        rows = self.conn.execute(query, params).fetchall()
        return [Experiment.model_validate_json(row["body"]) for row in rows]

    def update_experiment(self, experiment: Experiment) -> Experiment:
        """Compare-and-swap update on resource version.

        A deleting experiment whose finalizers are all cleared is removed,
        together with the trials it controls.

        Raises:
            NotFoundError: The experiment no longer exists.
            ConflictError: The caller's copy is stale.

        """
        identity = experiment.identity
        with _store_errors(identity):
            try:
                self.conn.execute("BEGIN IMMEDIATE")

                row = self.conn.execute(
                    "SELECT uid, resource_version FROM experiments WHERE namespace = ? AND name = ?",
                    (identity.namespace, identity.name),
                ).fetchone()
                if row is None:
                    msg = "experiment not found"
                    raise NotFoundError(msg, experiment=identity)
                if row["resource_version"] != experiment.metadata.resource_version:
                    msg = (
                        f"resource version conflict: have {experiment.metadata.resource_version}, "
                        f"stored {row['resource_version']}"
                    )
                    raise ConflictError(msg, experiment=identity)

                updated = experiment.model_copy(deep=True)
                updated.metadata.uid = row["uid"]
                updated.metadata.resource_version += 1

                if updated.is_deleting and not updated.metadata.finalizers:
                    self._remove_experiment(updated)
                else:
                    self._write_experiment(updated)

                self.conn.execute("COMMIT")
            except Exception:
                self.conn.execute("ROLLBACK")
                raise
        return updated

    def request_deletion(self, namespace: str, name: str) -> Experiment:
        """Mark an experiment for deletion.

        Without finalizers the experiment is removed at once; otherwise it
        stays until its finalizers are cleared.
        """
        identity = NamespacedName(namespace, name)
        with _store_errors(identity):
            experiment = self.get_experiment(namespace, name)
            if experiment is None:
                msg = "experiment not found"
                raise NotFoundError(msg, experiment=identity)
            if experiment.is_deleting:
                return experiment

            experiment.metadata.deletion_timestamp = utcnow()
            experiment.metadata.resource_version += 1
            if experiment.metadata.finalizers:
                self._write_experiment(experiment)
            else:
                self._remove_experiment(experiment)
            return experiment

    def _write_experiment(self, experiment: Experiment) -> None:
        self.conn.execute(
            """
            UPDATE experiments
            SET resource_version = ?, body = ?
            WHERE namespace = ? AND name = ?
            """,
            (
                experiment.metadata.resource_version,
                experiment.model_dump_json(by_alias=True, exclude_none=True),
                experiment.namespace,
                experiment.name,
            ),
        )

    def _remove_experiment(self, experiment: Experiment) -> None:
        cursor = self.conn.execute(
            "DELETE FROM trials WHERE owner_uid = ?",
            (experiment.metadata.uid,),
        )
        self.conn.execute(
            "DELETE FROM experiments WHERE namespace = ? AND name = ?",
            (experiment.namespace, experiment.name),
        )
        logger.info(
            "Removed experiment %s and %d owned trials",
            experiment.identity, cursor.rowcount,
        )

    # --- Trial Operations ---

    def create_trial(self, trial: Trial) -> None:
        """Insert a new trial. Never overwrites.

        Raises:
            AlreadyExistsError: A trial with the same name exists.

        """
        owner = trial.metadata.controller_reference()
        experiment_name = trial.experiment_name
        identity = NamespacedName(trial.namespace, experiment_name or "")
        try:
            with _store_errors(identity, trial.name):
                self.conn.execute(
                    """
                    INSERT INTO trials (namespace, name, experiment_name, owner_uid, body)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        trial.namespace,
                        trial.name,
                        experiment_name,
                        owner.uid if owner else None,
                        trial.model_dump_json(by_alias=True, exclude_none=True),
                    ),
                )
        except PersistenceError as e:
            if isinstance(e.__cause__, sqlite3.IntegrityError):
                msg = "trial already exists"
                raise AlreadyExistsError(msg, experiment=identity, trial=trial.name) from e
            raise

    def get_trial(self, namespace: str, name: str) -> Trial | None:
        """Get a trial by namespace and name."""
        row = self.conn.execute(
            "SELECT body FROM trials WHERE namespace = ? AND name = ?",
            (namespace, name),
        ).fetchone()

        if row is None:
            return None

        return Trial.model_validate_json(row["body"])

    def list_trials(self, namespace: str, experiment_name: str | None = None) -> list[Trial]:
        """List trials in a namespace, optionally for one experiment."""
        query = "SELECT body FROM trials WHERE namespace = ?"
        params = [namespace]
        if experiment_name:
            query += " AND experiment_name = ?"
            params.append(experiment_name)
        query += " ORDER BY created_at, name"

        rows = self.conn.execute(query, params).fetchall()
        return [Trial.model_validate_json(row["body"]) for row in rows]

    # --- Observation History ---

    def record_observation(self, trial: Trial, metric_name: str, value: str) -> None:
        """Append a metric report for a trial."""
        experiment_name = trial.experiment_name or ""
        with _store_errors(NamespacedName(trial.namespace, experiment_name), trial.name):
            self.conn.execute(
                """
                INSERT INTO observation_logs
                    (namespace, experiment_name, trial_name, metric_name, value, timestamp)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (trial.namespace, experiment_name, trial.name, metric_name, value, utcnow()),
            )

    def list_observations(self, namespace: str, experiment_name: str) -> list[dict[str, str]]:
        """Get an experiment's metric reports, oldest first."""
        rows = self.conn.execute(
            """
            SELECT trial_name, metric_name, value, timestamp FROM observation_logs
            WHERE namespace = ? AND experiment_name = ?
            ORDER BY id
            """,
            (namespace, experiment_name),
        ).fetchall()
        return [dict(row) for row in rows]

    def purge_experiment(self, namespace: str, name: str) -> int:
        """Delete an experiment's metric history. Returns the row count."""
        with _store_errors(NamespacedName(namespace, name)):
            cursor = self.conn.execute(
                "DELETE FROM observation_logs WHERE namespace = ? AND experiment_name = ?",
                (namespace, name),
            )
        return cursor.rowcount
