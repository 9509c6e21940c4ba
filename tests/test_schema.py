"""Tests for schema declaration"""

import json

import pytest

from plugstream.data_type import DataTypeError, ListType, PrimitiveType
from plugstream.datastream import DataStreamType
from plugstream.schema import (
    ArgumentSpec,
    DuplicateNameError,
    OutputDescriptor,
    RegistrySealedError,
    Schema,
    SchemaRegistry,
)


# TEST160: Test argument specs parse their data type string on construction
def test_argument_spec_parses_type():
    spec = ArgumentSpec("items", "Items to sort", "list<number>")
    assert spec.data_type == ListType(PrimitiveType("number"))
    assert spec.supports_updates is False
    with pytest.raises(DataTypeError):
        ArgumentSpec("bad", "", "list<")


# TEST161: Test the registry keeps declaration order and builds the schema
def test_registry_builds_schema():
    registry = SchemaRegistry("Sorter", "Sorts things")
    registry.argument("items", "Items", "list<number>", supports_updates=True)
    registry.argument("descending", "Reverse order", "boolean")
    registry.output("sorted", "Sorted items", "list<number>", DataStreamType.LIST)
    schema = registry.seal()
    assert schema.name == "Sorter"
    assert [a.name for a in schema.arguments] == ["items", "descending"]
    assert schema.arguments[0].supports_updates is True
    assert schema.outputs[0].kind is DataStreamType.LIST
    assert schema.argument("descending").data_type == PrimitiveType("boolean")
    assert schema.argument("missing") is None
    assert schema.argument_index("descending") == 1
    with pytest.raises(KeyError):
        schema.argument_index("missing")


# TEST162: Test duplicate argument and output names are rejected
def test_registry_duplicate_names():
    registry = SchemaRegistry("Dup")
    registry.argument("x", "", "string")
    with pytest.raises(DuplicateNameError) as exc_info:
        registry.argument("x", "", "number")
    assert exc_info.value.kind == "argument"
    registry.output("x", "", "string")
    with pytest.raises(DuplicateNameError):
        registry.add_output(OutputDescriptor("x", "", "number"))


# TEST163: Test a sealed registry refuses further declarations
def test_registry_sealed():
    registry = SchemaRegistry("Sealed")
    registry.set_description("Described before sealing")
    first = registry.seal()
    assert registry.sealed
    assert registry.seal() == first
    with pytest.raises(RegistrySealedError):
        registry.argument("late", "", "string")
    with pytest.raises(RegistrySealedError):
        registry.output("late", "", "string")
    with pytest.raises(RegistrySealedError):
        registry.set_performs_state_change()
    assert first.description == "Described before sealing"


# TEST164: Test schemas serialize to JSON and back
def test_schema_json():
    registry = SchemaRegistry("Writer", "Writes a file", performs_state_change=True)
    registry.argument("path", "Target", "path")
    registry.argument("color", "Tint", "color", supports_updates=True)
    registry.output("written", "Bytes written", "number")
    schema = registry.seal()
    data = json.loads(schema.to_json())
    assert data["performs_state_change"] is True
    assert data["arguments"][1] == {
        "name": "color",
        "description": "Tint",
        "data_type": "color",
        "supports_updates": True,
    }
    assert data["outputs"][0]["kind"] == "value"
    assert Schema.from_json(schema.to_json()) == schema


# TEST165: Test a schema without outputs omits the outputs key
def test_schema_without_outputs():
    schema = SchemaRegistry("Bare").seal()
    assert "outputs" not in schema.to_dict()
    assert Schema.from_dict(schema.to_dict()).outputs == ()


# TEST166: Test a sealed schema's arguments and outputs cannot be changed through the schema
def test_schema_collections_immutable():
    registry = SchemaRegistry("Fixed")
    registry.argument("a", "A", "string")
    schema = registry.seal()
    assert isinstance(schema.arguments, tuple)
    assert isinstance(schema.outputs, tuple)
    with pytest.raises(AttributeError):
        schema.arguments.append(ArgumentSpec("b", "B", "string"))
    built = Schema("Built", "", [ArgumentSpec("x", "X", "number")])
    assert built.arguments == (ArgumentSpec("x", "X", "number"),)
