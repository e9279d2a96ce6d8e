# Copyright (c) Syntropy Systems
"""Object metadata shared by Experiments and Trials."""

from __future__ import annotations

import re
from typing import NamedTuple

from pydantic import Field, field_validator

from .base import ExpctlBaseModel

# DNS-1123 subdomain, the naming rule for namespaced resources.
_NAME_RE = re.compile(r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$")
MAX_NAME_LENGTH = 253


class TypeDescriptor(NamedTuple):
    """API group/version and kind of a resource type."""

    api_version: str
    kind: str


class NamespacedName(NamedTuple):
    """Namespace-qualified resource identity."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class OwnerReference(ExpctlBaseModel):
    """Back-reference from a child resource to its owner."""

    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = False
    block_owner_deletion: bool = False


class ObjectMeta(ExpctlBaseModel):
    """Identity, labels and lifecycle markers of a resource."""

    name: str
    namespace: str = "default"
    uid: str | None = None
    resource_version: int = 0
    labels: dict[str, str] = Field(default_factory=dict)
    finalizers: list[str] = Field(default_factory=list)
    owner_references: list[OwnerReference] = Field(default_factory=list)
    creation_timestamp: str | None = None
    deletion_timestamp: str | None = None

    @field_validator("name", "namespace")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if len(value) > MAX_NAME_LENGTH or not _NAME_RE.match(value):
            msg = f"invalid resource name {value!r}: must be a lowercase DNS-1123 subdomain"
            raise ValueError(msg)
        return value

    @property
    def identity(self) -> NamespacedName:
        """Return the namespace-qualified name."""
        return NamespacedName(self.namespace, self.name)

    def controller_reference(self) -> OwnerReference | None:
        """Return the owner reference flagged as controller, if any."""
        for ref in self.owner_references:
            if ref.controller:
                return ref
        return None
