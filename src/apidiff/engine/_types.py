"""Diff graph types shared by the loader and the renderer.

Instances are produced by the comparison engine (or the loader) and are only
read by the renderer. ``ChangedSchema`` nodes may form cycles through
``changed_properties`` and ``items``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from apidiff.schema import ApiResponse, MediaType, Operation, Parameter, RequestBody, Schema

T = TypeVar("T")


class HttpMethod(str, Enum):
    GET = "GET"
    PUT = "PUT"
    POST = "POST"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    HEAD = "HEAD"
    PATCH = "PATCH"
    TRACE = "TRACE"


@dataclass(frozen=True)
class ValueChange(Generic[T]):
    """Before/after values of a single scalar attribute."""

    old: T | None = None
    new: T | None = None

    @property
    def is_changed(self) -> bool:
        return self.old != self.new


@dataclass(frozen=True)
class SetChange(Generic[T]):
    """Values that appeared (``increased``) or disappeared (``missing``)."""

    increased: list[T] = field(default_factory=list)
    missing: list[T] = field(default_factory=list)

    @property
    def is_changed(self) -> bool:
        return bool(self.increased or self.missing)


@dataclass(frozen=True)
class Endpoint:
    method: HttpMethod
    path: str
    summary: str | None = None


@dataclass(eq=False)
class ChangedSchema:
    """Changes between two versions of a schema.

    Compared by identity: two structurally equal nodes are distinct nodes.
    """

    old_schema: Schema | None = None
    new_schema: Schema | None = None
    compatible: bool = True
    context: Any = None
    changed_type: bool = False
    changed_format: bool = False
    read_only: ValueChange[bool] | None = None
    write_only: ValueChange[bool] | None = None
    nullable: ValueChange[bool] | None = None
    max_length: ValueChange[int] | None = None
    min_length: ValueChange[int] | None = None
    pattern: ValueChange[str] | None = None
    enumeration: SetChange[Any] | None = None
    required: SetChange[str] | None = None
    increased_properties: dict[str, Schema] = field(default_factory=dict)
    missing_properties: dict[str, Schema] = field(default_factory=dict)
    changed_properties: dict[str, ChangedSchema] = field(default_factory=dict)
    items: ChangedSchema | None = None

    @property
    def name(self) -> str | None:
        """Schema name, preferring the new version."""
        name = self.new_schema.name if self.new_schema is not None else None
        if name is None and self.old_schema is not None:
            name = self.old_schema.name
        return name


@dataclass
class ChangedParameter:
    name: str
    in_: str
    old_parameter: Parameter | None = None
    new_parameter: Parameter | None = None
    changed_required: bool = False
    schema: ChangedSchema | None = None


@dataclass
class ChangedParameters:
    increased: list[Parameter] = field(default_factory=list)
    missing: list[Parameter] = field(default_factory=list)
    changed: list[ChangedParameter] = field(default_factory=list)


@dataclass
class ChangedMediaType:
    schema: ChangedSchema | None = None


@dataclass
class ChangedContent:
    """Media-type keyed content changes."""

    increased: dict[str, MediaType] = field(default_factory=dict)
    missing: dict[str, MediaType] = field(default_factory=dict)
    changed: dict[str, ChangedMediaType] = field(default_factory=dict)


@dataclass
class ChangedRequestBody:
    old_request_body: RequestBody | None = None
    new_request_body: RequestBody | None = None
    changed_required: bool = False
    content: ChangedContent | None = None


@dataclass
class ChangedResponse:
    old_response: ApiResponse | None = None
    new_response: ApiResponse | None = None
    description: ValueChange[str] | None = None
    content: ChangedContent | None = None


@dataclass
class ChangedApiResponse:
    """Status-code keyed response changes."""

    increased: dict[str, ApiResponse] = field(default_factory=dict)
    missing: dict[str, ApiResponse] = field(default_factory=dict)
    changed: dict[str, ChangedResponse] = field(default_factory=dict)


@dataclass
class ChangedOperation:
    """Changes to a single ``(method, path)`` operation."""

    method: HttpMethod
    path: str
    compatible: bool = True
    old_operation: Operation | None = None
    new_operation: Operation | None = None
    summary: ValueChange[str] | None = None
    operation_id: ValueChange[str] | None = None
    parameters: ChangedParameters | None = None
    request_body: ChangedRequestBody | None = None
    api_responses: ChangedApiResponse | None = None

    @property
    def display_operation_id(self) -> str | None:
        """operationId of the new operation, else of the old one (removed endpoints)."""
        op_id = self.new_operation.operation_id if self.new_operation is not None else None
        if op_id is None and self.old_operation is not None:
            op_id = self.old_operation.operation_id
        return op_id


@dataclass
class DiffResult:
    """Root of the diff graph."""

    compatible: bool = True
    new_endpoints: list[Endpoint] | None = field(default_factory=list)
    removed_endpoints: list[Endpoint] | None = field(default_factory=list)
    deprecated_endpoints: list[Endpoint] | None = field(default_factory=list)
    changed_operations: list[ChangedOperation] | None = field(default_factory=list)
    changed_schemas: list[ChangedSchema] | None = field(default_factory=list)
