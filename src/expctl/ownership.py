# Copyright (c) Syntropy Systems
"""Owner references between resources.

A controller reference on a child lets the store cascade deletion from the
owner. Type information is passed explicitly per call instead of being looked
up in a global registry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from expctl.errors import OwnerReferenceError
from expctl.models.meta import OwnerReference

if TYPE_CHECKING:
    from expctl.models.meta import ObjectMeta, TypeDescriptor


class OwnerLinker(Protocol):
    """Establishes a back-reference from child to owner."""

    def link(self, owner: ObjectMeta, child: ObjectMeta, owner_type: TypeDescriptor) -> None: ...


class ControllerReferenceLinker:
    """Sets the owner as the child's single controller."""

    def link(self, owner: ObjectMeta, child: ObjectMeta, owner_type: TypeDescriptor) -> None:
        """Add or refresh the controller reference on ``child``.

        Raises:
            OwnerReferenceError: If the owner has no uid yet, lives in another
                namespace, or the child is already controlled by someone else.

        """
        if not owner.uid:
            msg = f"owner {owner_type.kind} {owner.identity} has no uid"
            raise OwnerReferenceError(msg, experiment=owner.identity, trial=child.name)

        if owner.namespace != child.namespace:
            msg = (
                f"cross-namespace owner reference is not allowed: owner in "
                f"{owner.namespace!r}, child in {child.namespace!r}"
            )
            raise OwnerReferenceError(msg, experiment=owner.identity, trial=child.name)

        existing = child.controller_reference()
        if existing is not None and existing.uid != owner.uid:
            msg = f"{child.name} is already controlled by {existing.kind} {existing.name}"
            raise OwnerReferenceError(msg, experiment=owner.identity, trial=child.name)

        ref = OwnerReference(
            api_version=owner_type.api_version,
            kind=owner_type.kind,
            name=owner.name,
            uid=owner.uid,
            controller=True,
            block_owner_deletion=True,
        )
        child.owner_references = [
            r for r in child.owner_references if r.uid != owner.uid
        ]
        child.owner_references.append(ref)
