"""Render a diff graph as a lean JSON document.

Only actual changes are reported. Every sub-renderer returns ``None`` when it
has nothing to say, and callers skip the key in that case, so empty
subtrees never reach the output.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

from apidiff.engine._types import (
    ChangedApiResponse,
    ChangedContent,
    ChangedOperation,
    ChangedParameter,
    ChangedParameters,
    ChangedRequestBody,
    ChangedResponse,
    ChangedSchema,
    DiffResult,
    Endpoint,
    SetChange,
    ValueChange,
)

logger = logging.getLogger(__name__)

JsonObject = dict[str, Any]

S = TypeVar("S", str, bool, int)


class RendererError(RuntimeError):
    """Rendering failed; the sink has been closed."""


class EncodingError(RendererError):
    """The assembled document could not be serialized."""


class SinkError(RendererError):
    """The output sink could not be written to or closed."""


@runtime_checkable
class ByteSink(Protocol):
    """Where the rendered document goes. The renderer closes it when done."""

    def write(self, data: bytes, /) -> Any: ...

    def close(self) -> None: ...


def change_pair(old: S | None, new: S | None) -> JsonObject:
    """``{"from": old, "to": new}``; an absent side is an explicit null."""
    return {"from": old, "to": new}


def _value_pair(change: ValueChange[Any] | None) -> JsonObject | None:
    if change is None or not change.is_changed:
        return None
    return change_pair(change.old, change.new)


def _added_removed(change: SetChange[Any] | None) -> JsonObject | None:
    """``{added?, removed?}`` for enum values / required names."""
    if change is None:
        return None
    node: JsonObject = {}
    if change.increased:
        node["added"] = list(change.increased)
    if change.missing:
        node["removed"] = list(change.missing)
    return node or None


def _model_json(value: Any) -> Any:
    """``json.dumps`` hook for pydantic models nested in opaque payloads."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def _to_json_value(payload: Any) -> Any:
    """Verbatim representation of an opaque payload (raw schema, context)."""
    if not isinstance(payload, BaseModel):
        return payload
    try:
        return _model_json(payload)
    except ValueError as exc:
        raise EncodingError("Could not serialize diff as JSON") from exc


class DiffRenderer:
    """Turns a :class:`DiffResult` into JSON and writes it to a byte sink."""

    def __init__(self, *, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def render(self, diff: DiffResult, sink: ByteSink) -> None:
        """Write *diff* to *sink* as one JSON document, then close *sink*.

        The sink is closed on every path. On failure a close error is only
        logged so the original error is the one that propagates.

        Raises:
            EncodingError: The document could not be serialized.
            SinkError: The sink could not be written to or closed.
        """
        try:
            payload = self.encode(diff)
            try:
                sink.write(payload)
            except Exception as exc:
                msg = f"Could not write rendered diff: {exc}"
                logger.error(msg)
                raise SinkError(msg) from exc
        except BaseException:
            self._close(sink, best_effort=True)
            raise
        self._close(sink, best_effort=False)

    def encode(self, diff: DiffResult) -> bytes:
        """Serialize *diff* to compact JSON bytes."""
        root = self.build(diff)
        try:
            text = json.dumps(root, ensure_ascii=False, allow_nan=False, default=_model_json)
            return text.encode(self.encoding)
        except (TypeError, ValueError) as exc:
            raise EncodingError("Could not serialize diff as JSON") from exc

    def build(self, diff: DiffResult) -> JsonObject:
        """Build the JSON value tree for *diff* without writing it anywhere."""
        changed_operations = diff.changed_operations or []
        changed_schemas = diff.changed_schemas or []
        root: JsonObject = {
            "compatible": diff.compatible,
            "newEndpoints": self._endpoints(diff.new_endpoints),
            "removedEndpoints": self._endpoints(diff.removed_endpoints),
            "deprecatedEndpoints": self._endpoints(diff.deprecated_endpoints),
            "changedOperations": [self._operation(op) for op in changed_operations],
            "changedSchemas": [self._top_level_schema(cs) for cs in changed_schemas],
        }
        logger.debug(
            "Rendered diff: %d new, %d removed, %d deprecated endpoints, "
            "%d changed operations, %d changed schemas",
            len(root["newEndpoints"]),
            len(root["removedEndpoints"]),
            len(root["deprecatedEndpoints"]),
            len(root["changedOperations"]),
            len(root["changedSchemas"]),
        )
        return root

    # ------------------------------------------------------------------
    # Sink lifecycle
    # ------------------------------------------------------------------

    def _close(self, sink: ByteSink, *, best_effort: bool) -> None:
        try:
            sink.close()
        except Exception as exc:
            if best_effort:
                logger.warning("Could not close output sink: %s", exc)
                return
            msg = f"Could not close output sink: {exc}"
            logger.error(msg)
            raise SinkError(msg) from exc

    # ------------------------------------------------------------------
    # Envelope
    # ------------------------------------------------------------------

    def _endpoints(self, endpoints: Iterable[Endpoint] | None) -> list[JsonObject]:
        nodes: list[JsonObject] = []
        for ep in endpoints or []:
            node: JsonObject = {"method": ep.method.value, "path": ep.path}
            if ep.summary is not None:
                node["summary"] = ep.summary
            nodes.append(node)
        return nodes

    def _top_level_schema(self, cs: ChangedSchema) -> JsonObject:
        # Emitted even without field-level changes, unlike nested schemas.
        entry: JsonObject = {}
        if cs.name is not None:
            entry["name"] = cs.name
        entry["compatible"] = cs.compatible
        if cs.context is not None:
            entry["context"] = _to_json_value(cs.context)
        if cs.old_schema is not None:
            entry["oldSchema"] = _to_json_value(cs.old_schema)
        if cs.new_schema is not None:
            entry["newSchema"] = _to_json_value(cs.new_schema)
        changes = self._schema(cs, set())
        if changes is not None:
            entry.update(changes)
        return entry

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _operation(self, op: ChangedOperation) -> JsonObject:
        node: JsonObject = {"method": op.method.value, "path": op.path}
        operation_id = op.display_operation_id
        if operation_id is not None:
            node["operationId"] = operation_id
        node["compatible"] = op.compatible

        summary = _value_pair(op.summary)
        if summary is not None:
            node["summary"] = summary
        operation_id_change = _value_pair(op.operation_id)
        if operation_id_change is not None:
            node["operationId"] = operation_id_change

        if op.parameters is not None:
            params = self._parameters(op.parameters)
            if params is not None:
                node["parameters"] = params
        if op.request_body is not None:
            body = self._request_body(op.request_body)
            if body is not None:
                node["requestBody"] = body
        if op.api_responses is not None:
            responses = self._responses(op.api_responses)
            if responses is not None:
                node["responses"] = responses
        return node

    def _parameters(self, params: ChangedParameters) -> JsonObject | None:
        node: JsonObject = {}
        if params.increased:
            added: list[JsonObject] = []
            for p in params.increased:
                p_node: JsonObject = {"name": p.name, "in": p.in_}
                if p.required is not None:
                    p_node["required"] = p.required
                added.append(p_node)
            node["added"] = added
        if params.missing:
            node["removed"] = [{"name": p.name, "in": p.in_} for p in params.missing]
        if params.changed:
            node["changed"] = [self._parameter(cp) for cp in params.changed]
        return node or None

    def _parameter(self, cp: ChangedParameter) -> JsonObject:
        # Always emitted: which parameter changed is itself the information.
        node: JsonObject = {"name": cp.name, "in": cp.in_}
        if cp.changed_required:
            old_req = cp.old_parameter.required if cp.old_parameter is not None else None
            new_req = cp.new_parameter.required if cp.new_parameter is not None else None
            node["required"] = change_pair(old_req, new_req)
        if cp.schema is not None:
            schema = self._schema(cp.schema, set())
            if schema is not None:
                node["schema"] = schema
        return node

    def _request_body(self, body: ChangedRequestBody) -> JsonObject | None:
        node: JsonObject = {}
        if body.changed_required:
            old_req = body.old_request_body.required if body.old_request_body is not None else None
            new_req = body.new_request_body.required if body.new_request_body is not None else None
            node["required"] = change_pair(old_req, new_req)
        if body.content is not None:
            content = self._content(body.content)
            if content is not None:
                node["content"] = content
        return node or None

    def _content(self, content: ChangedContent) -> JsonObject | None:
        node: JsonObject = {}
        if content.increased:
            node["added"] = list(content.increased)
        if content.missing:
            node["removed"] = list(content.missing)
        changed: JsonObject = {}
        for media_type, cmt in (content.changed or {}).items():
            if cmt.schema is None:
                continue
            schema = self._schema(cmt.schema, set())
            if schema is not None:
                changed[media_type] = {"schema": schema}
        if changed:
            node["changed"] = changed
        return node or None

    def _responses(self, api_responses: ChangedApiResponse) -> JsonObject | None:
        node: JsonObject = {}
        if api_responses.increased:
            added: list[JsonObject] = []
            for status_code, response in api_responses.increased.items():
                r_node: JsonObject = {"statusCode": status_code}
                if response.description is not None:
                    r_node["description"] = response.description
                added.append(r_node)
            node["added"] = added
        if api_responses.missing:
            node["removed"] = list(api_responses.missing)
        changed: JsonObject = {}
        for status_code, resp in (api_responses.changed or {}).items():
            r_node = self._response(resp)
            if r_node is not None:
                changed[status_code] = r_node
        if changed:
            node["changed"] = changed
        return node or None

    def _response(self, resp: ChangedResponse) -> JsonObject | None:
        node: JsonObject = {}
        description = _value_pair(resp.description)
        if description is not None:
            node["description"] = description
        if resp.content is not None:
            content = self._content(resp.content)
            if content is not None:
                node["content"] = content
        return node or None

    # ------------------------------------------------------------------
    # Schemas
    # ------------------------------------------------------------------

    def _schema(self, schema: ChangedSchema, open_path: set[int]) -> JsonObject | None:
        """Changes of *schema* as a JSON object, or ``None`` if there are none.

        *open_path* holds the ids of the nodes being rendered on the current
        call path. A node already on it is a cycle and renders as ``None``.
        The id is removed again on exit, so a node shared by two unrelated
        branches renders fully in both.
        """
        key = id(schema)
        if key in open_path:
            logger.debug("Breaking schema cycle at %r", schema.name)
            return None
        open_path.add(key)
        try:
            return self._schema_fields(schema, open_path) or None
        finally:
            open_path.discard(key)

    def _schema_fields(self, schema: ChangedSchema, open_path: set[int]) -> JsonObject:
        node: JsonObject = {}
        old, new = schema.old_schema, schema.new_schema

        if schema.changed_type:
            node["type"] = change_pair(
                old.type if old is not None else None,
                new.type if new is not None else None,
            )
        if schema.changed_format:
            node["format"] = change_pair(
                old.format if old is not None else None,
                new.format if new is not None else None,
            )

        for key, change in (
            ("readOnly", schema.read_only),
            ("writeOnly", schema.write_only),
            ("nullable", schema.nullable),
            ("maxLength", schema.max_length),
            ("minLength", schema.min_length),
            ("pattern", schema.pattern),
        ):
            pair = _value_pair(change)
            if pair is not None:
                node[key] = pair

        enum = _added_removed(schema.enumeration)
        if enum is not None:
            node["enum"] = enum
        required = _added_removed(schema.required)
        if required is not None:
            node["required"] = required

        if schema.increased_properties:
            node["addedProperties"] = list(schema.increased_properties)
        if schema.missing_properties:
            node["removedProperties"] = list(schema.missing_properties)

        changed_props: JsonObject = {}
        for prop_name, prop in (schema.changed_properties or {}).items():
            prop_node = self._schema(prop, open_path)
            if prop_node is not None:
                changed_props[prop_name] = prop_node
        if changed_props:
            node["changedProperties"] = changed_props

        if schema.items is not None:
            items = self._schema(schema.items, open_path)
            if items is not None:
                node["items"] = items

        return node


def render_json(diff: DiffResult) -> str:
    """Render *diff* and return the JSON text."""
    renderer = DiffRenderer()
    return renderer.encode(diff).decode(renderer.encoding)
