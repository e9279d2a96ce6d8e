# Copyright (c) Syntropy Systems
"""Shared Pydantic model helpers for expctl."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, JsonValue
from pydantic.alias_generators import to_camel
from typing_extensions import TypeAlias

JSONValue: TypeAlias = JsonValue
JSONObject: TypeAlias = dict[str, JSONValue]


class ExpctlBaseModel(BaseModel):
    """Base model for resource schemas.

    Fields are snake_case in Python and camelCase on the wire, matching the
    manifests users write.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
