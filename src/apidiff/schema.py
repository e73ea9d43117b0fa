"""API description objects — Pydantic v2 models.

These are the objects the comparison engine diffs. The renderer never looks
inside them except for a handful of scalar fields; top-level schemas are
embedded verbatim in the output as ``oldSchema`` / ``newSchema``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _DescriptionModel(BaseModel):
    """Base for description objects: camelCase on the wire, extras preserved."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class Schema(_DescriptionModel):
    """A (possibly nested) data schema."""

    name: str | None = None
    type: str | None = None
    format: str | None = None
    description: str | None = None
    read_only: bool | None = None
    write_only: bool | None = None
    nullable: bool | None = None
    max_length: int | None = None
    min_length: int | None = None
    pattern: str | None = None
    enum: list[Any] | None = None
    required: list[str] | None = None
    properties: dict[str, Schema] | None = None
    items: Schema | None = None
    ref: str | None = Field(default=None, alias="$ref")


class Parameter(_DescriptionModel):
    """An operation parameter, identified by ``(name, in)``."""

    name: str
    in_: str = Field(alias="in")
    required: bool | None = None
    description: str | None = None
    deprecated: bool | None = None
    schema_: Schema | None = Field(default=None, alias="schema")


class MediaType(_DescriptionModel):
    """The payload description for a single media type."""

    schema_: Schema | None = Field(default=None, alias="schema")
    example: Any = None


class RequestBody(_DescriptionModel):
    description: str | None = None
    required: bool | None = None
    content: dict[str, MediaType] | None = None


class ApiResponse(_DescriptionModel):
    description: str | None = None
    content: dict[str, MediaType] | None = None


class Operation(_DescriptionModel):
    operation_id: str | None = None
    summary: str | None = None
    description: str | None = None
    deprecated: bool | None = None
    parameters: list[Parameter] | None = None
    request_body: RequestBody | None = None
    responses: dict[str, ApiResponse] | None = None
