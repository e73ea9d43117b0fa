"""Tests for diff graph types."""

from __future__ import annotations

from apidiff.engine._types import (
    ChangedOperation,
    ChangedSchema,
    HttpMethod,
    SetChange,
    ValueChange,
)
from apidiff.schema import Operation, Schema


class TestValueChange:
    def test_changed(self) -> None:
        assert ValueChange(old="a", new="b").is_changed

    def test_unchanged(self) -> None:
        assert not ValueChange(old=3, new=3).is_changed
        assert not ValueChange().is_changed

    def test_cleared(self) -> None:
        assert ValueChange(old=True, new=None).is_changed


class TestSetChange:
    def test_empty(self) -> None:
        assert not SetChange().is_changed

    def test_increased_or_missing(self) -> None:
        assert SetChange(increased=["a"]).is_changed
        assert SetChange(missing=["b"]).is_changed


class TestChangedSchema:
    def test_identity_equality(self) -> None:
        assert ChangedSchema() != ChangedSchema()
        node = ChangedSchema()
        assert node == node

    def test_hashable_by_identity(self) -> None:
        a, b = ChangedSchema(), ChangedSchema()
        assert len({a, b}) == 2

    def test_name(self) -> None:
        assert ChangedSchema(old_schema=Schema(name="A"), new_schema=Schema(name="B")).name == "B"
        assert ChangedSchema(old_schema=Schema(name="A"), new_schema=Schema()).name == "A"
        assert ChangedSchema().name is None


class TestChangedOperation:
    def test_display_operation_id(self) -> None:
        op = ChangedOperation(
            method=HttpMethod.GET,
            path="/",
            old_operation=Operation(operation_id="old"),
            new_operation=Operation(operation_id="new"),
        )
        assert op.display_operation_id == "new"

    def test_display_operation_id_removed_endpoint(self) -> None:
        op = ChangedOperation(method=HttpMethod.GET, path="/", old_operation=Operation(operation_id="old"))
        assert op.display_operation_id == "old"

    def test_display_operation_id_absent(self) -> None:
        assert ChangedOperation(method=HttpMethod.GET, path="/").display_operation_id is None
