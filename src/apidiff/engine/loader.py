"""Build a diff graph from its serialized JSON form.

Changed schemas can be shared or self-referential. A changed-schema object
may declare ``"$id"``; any changed-schema position may instead hold
``{"$ref": "<id>"}``. References are resolved after the whole document has
been read, so forward references and cycles both work.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

from pydantic import BaseModel

from apidiff.engine._types import (
    ChangedApiResponse,
    ChangedContent,
    ChangedMediaType,
    ChangedOperation,
    ChangedParameter,
    ChangedParameters,
    ChangedRequestBody,
    ChangedResponse,
    ChangedSchema,
    DiffResult,
    Endpoint,
    HttpMethod,
    SetChange,
    ValueChange,
)
from apidiff.schema import ApiResponse, MediaType, Operation, Parameter, RequestBody, Schema

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_REF = "$ref"
_ID = "$id"


class _SchemaRefs:
    """Registry of ``$id``-tagged nodes plus the references waiting on them."""

    def __init__(self) -> None:
        self.nodes: dict[str, ChangedSchema] = {}
        self.pending: list[tuple[str, Callable[[ChangedSchema], None]]] = []

    def register(self, ref_id: str, node: ChangedSchema) -> None:
        if ref_id in self.nodes:
            msg = f"Duplicate changed-schema id: {ref_id!r}"
            raise ValueError(msg)
        self.nodes[ref_id] = node

    def defer(self, ref_id: str, assign: Callable[[ChangedSchema], None]) -> None:
        self.pending.append((ref_id, assign))

    def resolve(self) -> None:
        for ref_id, assign in self.pending:
            node = self.nodes.get(ref_id)
            if node is None:
                msg = f"Unknown changed-schema reference: {ref_id!r}"
                raise ValueError(msg)
            assign(node)
        logger.debug("Resolved %d changed-schema references", len(self.pending))
        self.pending.clear()


def load_diff(path: str | Path) -> DiffResult:
    """Read a serialized diff graph from *path*."""
    return parse_diff_document(json.loads(Path(path).read_text(encoding="utf-8")))


def loads_diff(text: str) -> DiffResult:
    """Read a serialized diff graph from a JSON string."""
    return parse_diff_document(json.loads(text))


def parse_diff_document(data: Any) -> DiffResult:
    """Build a :class:`DiffResult` from an already decoded JSON document."""
    if not isinstance(data, dict):
        msg = f"Diff document must be a JSON object, got {type(data).__name__}"
        raise ValueError(msg)

    try:
        return _diff_result(data)
    except KeyError as exc:
        msg = f"Malformed diff document: missing key {exc}"
        raise ValueError(msg) from exc
    except (TypeError, AttributeError) as exc:
        msg = f"Malformed diff document: {exc}"
        raise ValueError(msg) from exc


def _diff_result(data: dict[str, Any]) -> DiffResult:
    refs = _SchemaRefs()
    removed = data.get("removedEndpoints", data.get("missingEndpoints"))
    diff = DiffResult(
        compatible=bool(data.get("compatible", True)),
        new_endpoints=_endpoints(data.get("newEndpoints")),
        removed_endpoints=_endpoints(removed),
        deprecated_endpoints=_endpoints(data.get("deprecatedEndpoints")),
        changed_operations=[
            _operation(op, refs) for op in data.get("changedOperations") or []
        ],
    )
    schemas: list[ChangedSchema] = []
    for i, raw in enumerate(data.get("changedSchemas") or []):
        schemas.append(ChangedSchema())
        _schema_slot(raw, refs, lambda node, i=i: schemas.__setitem__(i, node))
    diff.changed_schemas = schemas

    refs.resolve()
    return diff


# ---------------------------------------------------------------------------
# Scalars and description objects
# ---------------------------------------------------------------------------


def _model(cls: type[M], raw: Any) -> M | None:
    if raw is None:
        return None
    return cls.model_validate(raw)


def _models(cls: type[M], raw: Any) -> dict[str, M]:
    return {key: cls.model_validate(value or {}) for key, value in (raw or {}).items()}


def _value_change(raw: Any) -> ValueChange[Any] | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        msg = f"Expected {{old, new}} object, got {raw!r}"
        raise ValueError(msg)
    return ValueChange(old=raw.get("old"), new=raw.get("new"))


def _set_change(raw: Any) -> SetChange[Any] | None:
    if raw is None:
        return None
    return SetChange(
        increased=list(raw.get("increased") or []),
        missing=list(raw.get("missing") or []),
    )


def _method(raw: Any) -> HttpMethod:
    try:
        return HttpMethod(str(raw).upper())
    except ValueError:
        msg = f"Unknown HTTP method: {raw!r}"
        raise ValueError(msg) from None


def _endpoints(raw: Any) -> list[Endpoint]:
    return [
        Endpoint(method=_method(ep["method"]), path=ep["path"], summary=ep.get("summary"))
        for ep in raw or []
    ]


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def _operation(raw: dict[str, Any], refs: _SchemaRefs) -> ChangedOperation:
    op = ChangedOperation(
        method=_method(raw["method"]),
        path=raw["path"],
        compatible=bool(raw.get("compatible", True)),
        old_operation=_model(Operation, raw.get("oldOperation")),
        new_operation=_model(Operation, raw.get("newOperation")),
        summary=_value_change(raw.get("summary")),
        operation_id=_value_change(raw.get("operationId")),
    )
    if raw.get("parameters") is not None:
        op.parameters = _parameters(raw["parameters"], refs)
    if raw.get("requestBody") is not None:
        op.request_body = _request_body(raw["requestBody"], refs)
    api_responses = raw.get("apiResponses", raw.get("responses"))
    if api_responses is not None:
        op.api_responses = _api_responses(api_responses, refs)
    return op


def _parameters(raw: dict[str, Any], refs: _SchemaRefs) -> ChangedParameters:
    changed: list[ChangedParameter] = []
    for cp_raw in raw.get("changed") or []:
        cp = ChangedParameter(
            name=cp_raw["name"],
            in_=cp_raw["in"],
            old_parameter=_model(Parameter, cp_raw.get("oldParameter")),
            new_parameter=_model(Parameter, cp_raw.get("newParameter")),
            changed_required=bool(cp_raw.get("changeRequired", False)),
        )
        if cp_raw.get("schema") is not None:
            _schema_slot(cp_raw["schema"], refs, lambda node, cp=cp: setattr(cp, "schema", node))
        changed.append(cp)
    return ChangedParameters(
        increased=[Parameter.model_validate(p) for p in raw.get("increased") or []],
        missing=[Parameter.model_validate(p) for p in raw.get("missing") or []],
        changed=changed,
    )


def _request_body(raw: dict[str, Any], refs: _SchemaRefs) -> ChangedRequestBody:
    return ChangedRequestBody(
        old_request_body=_model(RequestBody, raw.get("oldRequestBody")),
        new_request_body=_model(RequestBody, raw.get("newRequestBody")),
        changed_required=bool(raw.get("changeRequired", False)),
        content=_content(raw.get("content"), refs),
    )


def _content(raw: dict[str, Any] | None, refs: _SchemaRefs) -> ChangedContent | None:
    if raw is None:
        return None
    changed: dict[str, ChangedMediaType] = {}
    for media_type, cmt_raw in (raw.get("changed") or {}).items():
        cmt = ChangedMediaType()
        if cmt_raw.get("schema") is not None:
            _schema_slot(cmt_raw["schema"], refs, lambda node, cmt=cmt: setattr(cmt, "schema", node))
        changed[media_type] = cmt
    return ChangedContent(
        increased=_models(MediaType, raw.get("increased")),
        missing=_models(MediaType, raw.get("missing")),
        changed=changed,
    )


def _api_responses(raw: dict[str, Any], refs: _SchemaRefs) -> ChangedApiResponse:
    changed = {
        status_code: ChangedResponse(
            old_response=_model(ApiResponse, resp.get("oldResponse")),
            new_response=_model(ApiResponse, resp.get("newResponse")),
            description=_value_change(resp.get("description")),
            content=_content(resp.get("content"), refs),
        )
        for status_code, resp in (raw.get("changed") or {}).items()
    }
    return ChangedApiResponse(
        increased=_models(ApiResponse, raw.get("increased")),
        missing=_models(ApiResponse, raw.get("missing")),
        changed=changed,
    )


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


def _schema_slot(
    raw: Any,
    refs: _SchemaRefs,
    assign: Callable[[ChangedSchema], None],
) -> None:
    """Fill a changed-schema position, now or once its reference resolves."""
    if not isinstance(raw, dict):
        msg = f"Changed schema must be a JSON object, got {raw!r}"
        raise ValueError(msg)
    if _REF in raw:
        refs.defer(str(raw[_REF]), assign)
        return
    assign(_changed_schema(raw, refs))


def _changed_schema(raw: dict[str, Any], refs: _SchemaRefs) -> ChangedSchema:
    node = ChangedSchema(
        old_schema=_model(Schema, raw.get("oldSchema")),
        new_schema=_model(Schema, raw.get("newSchema")),
        compatible=bool(raw.get("compatible", True)),
        context=raw.get("context"),
        changed_type=bool(raw.get("changedType", False)),
        changed_format=bool(raw.get("changedFormat", False)),
        read_only=_value_change(raw.get("readOnly")),
        write_only=_value_change(raw.get("writeOnly")),
        nullable=_value_change(raw.get("nullable")),
        max_length=_value_change(raw.get("maxLength")),
        min_length=_value_change(raw.get("minLength")),
        pattern=_value_change(raw.get("pattern")),
        enumeration=_set_change(raw.get("enumeration")),
        required=_set_change(raw.get("required")),
        increased_properties=_models(Schema, raw.get("increasedProperties")),
        missing_properties=_models(Schema, raw.get("missingProperties")),
    )
    if _ID in raw:
        refs.register(str(raw[_ID]), node)

    for prop_name, prop_raw in (raw.get("changedProperties") or {}).items():
        # Keeps document order even when the slot is filled later.
        node.changed_properties[prop_name] = node
        _schema_slot(
            prop_raw,
            refs,
            lambda child, name=prop_name: node.changed_properties.__setitem__(name, child),
        )
    if raw.get("items") is not None:
        _schema_slot(raw["items"], refs, lambda child: setattr(node, "items", child))
    return node
