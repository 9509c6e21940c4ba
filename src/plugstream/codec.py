"""Opaque value codec

The runtime moves payloads as uninterpreted byte buffers. This module holds
the two places where buffers meet an encoding:

- List snapshot framing: `ListInput.get()` hands the plugin the whole list
  in one buffer. The snapshot is a CBOR array whose elements are the item
  buffers as CBOR byte strings, so items stay opaque.
- ValueCoder: a reference CBOR encoder/decoder for native Python values of a
  given data type, for hosts, plugins and argument validation. The runtime
  core never calls it.

## Native value mapping

| data type | Python value |
|-----------|--------------|
| trigger   | None |
| boolean   | bool |
| number    | int or float (decoded as float) |
| string, path, url, svg | str |
| json      | str holding a JSON document |
| bytes     | bytes |
| color     | 4-tuple of ints in 0..65535 (RGBA) |
| enum      | variant name (str) |
| list<T>   | list of T values |
| struct    | dict keyed by field name |
"""

import json
from typing import Any, List

import cbor2

from plugstream.data_type import (
    DataType,
    EnumType,
    ListType,
    PrimitiveType,
    StructType,
    parse_data_type,
)


class CodecError(Exception):
    """Base error for value encoding"""
    pass


class EncodeError(CodecError):
    """Native value does not fit the data type"""
    pass


class DecodeError(CodecError):
    """Buffer is not a valid encoding for the data type"""
    pass


def encode_list_snapshot(items: List[bytes]) -> bytes:
    """Frame item buffers as one list snapshot buffer"""
    return cbor2.dumps([bytes(item) for item in items])


def decode_list_snapshot(data: bytes) -> List[bytes]:
    """Split a list snapshot buffer back into item buffers

    Raises:
        DecodeError: If the buffer is not a CBOR array of byte strings
    """
    try:
        items = cbor2.loads(data)
    except (cbor2.CBORDecodeError, ValueError) as e:
        raise DecodeError(f"Invalid list snapshot: {e}")
    if not isinstance(items, list) or not all(isinstance(i, bytes) for i in items):
        raise DecodeError("List snapshot must be an array of byte strings")
    return items


class ValueCoder:
    """Encodes and decodes native values of one data type with CBOR"""

    def __init__(self, data_type):
        if isinstance(data_type, str):
            data_type = parse_data_type(data_type)
        self.data_type: DataType = data_type

    def encode(self, value: Any) -> bytes:
        """Encode a native value

        Raises:
            EncodeError: If the value does not match the data type
        """
        return cbor2.dumps(_to_wire(self.data_type, value))

    def decode(self, data: bytes) -> Any:
        """Decode a buffer into a native value

        Raises:
            DecodeError: If the buffer is malformed or does not match the data type
        """
        try:
            wire = cbor2.loads(data)
        except (cbor2.CBORDecodeError, ValueError) as e:
            raise DecodeError(f"Invalid CBOR for {self.data_type}: {e}")
        try:
            return _from_wire(self.data_type, wire)
        except EncodeError as e:
            raise DecodeError(str(e))

    def encode_items(self, values: List[Any]) -> List[bytes]:
        """Encode each element of a list type as its own item buffer."""
        if not isinstance(self.data_type, ListType):
            raise EncodeError(f"{self.data_type} is not a list type")
        element_coder = ValueCoder(self.data_type.element)
        return [element_coder.encode(v) for v in values]

    def decode_items(self, items: List[bytes]) -> List[Any]:
        if not isinstance(self.data_type, ListType):
            raise DecodeError(f"{self.data_type} is not a list type")
        element_coder = ValueCoder(self.data_type.element)
        return [element_coder.decode(i) for i in items]


def _to_wire(data_type: DataType, value: Any) -> Any:
    if isinstance(data_type, PrimitiveType):
        return _primitive_to_wire(data_type.name, value)
    if isinstance(data_type, ListType):
        if not isinstance(value, (list, tuple)):
            raise EncodeError(f"Expected a list for {data_type}, got {type(value).__name__}")
        return [_to_wire(data_type.element, v) for v in value]
    if isinstance(data_type, EnumType):
        if value not in data_type.variants:
            raise EncodeError(f"'{value}' is not a variant of {data_type}")
        return value
    if isinstance(data_type, StructType):
        if not isinstance(value, dict):
            raise EncodeError(f"Expected a dict for {data_type}, got {type(value).__name__}")
        expected = set(data_type.field_names())
        if set(value.keys()) != expected:
            raise EncodeError(
                f"Fields {sorted(value.keys())} do not match {data_type}"
            )
        return {name: _to_wire(dt, value[name]) for name, dt in data_type.fields}
    raise EncodeError(f"Unsupported data type: {data_type!r}")


def _primitive_to_wire(name: str, value: Any) -> Any:
    if name == "trigger":
        if value is not None:
            raise EncodeError("trigger carries no value")
        return None
    if name == "boolean":
        if not isinstance(value, bool):
            raise EncodeError(f"Expected bool, got {type(value).__name__}")
        return value
    if name == "number":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EncodeError(f"Expected a number, got {type(value).__name__}")
        return float(value)
    if name in ("string", "path", "url", "svg"):
        if not isinstance(value, str):
            raise EncodeError(f"Expected str for {name}, got {type(value).__name__}")
        return value
    if name == "json":
        if not isinstance(value, str):
            raise EncodeError(f"Expected JSON text, got {type(value).__name__}")
        try:
            json.loads(value)
        except json.JSONDecodeError as e:
            raise EncodeError(f"Invalid JSON: {e}")
        return value
    if name == "bytes":
        if not isinstance(value, (bytes, bytearray)):
            raise EncodeError(f"Expected bytes, got {type(value).__name__}")
        return bytes(value)
    if name == "color":
        if (
            not isinstance(value, (list, tuple))
            or len(value) != 4
            or not all(isinstance(c, int) and not isinstance(c, bool) and 0 <= c <= 0xFFFF for c in value)
        ):
            raise EncodeError("Color must be four ints in 0..65535")
        return list(value)
    raise EncodeError(f"Unknown primitive type: {name}")


def _from_wire(data_type: DataType, wire: Any) -> Any:
    if isinstance(data_type, PrimitiveType):
        if data_type.name == "color":
            _primitive_to_wire("color", wire)
            return tuple(wire)
        if data_type.name == "number":
            _primitive_to_wire("number", wire)
            return float(wire)
        return _primitive_to_wire(data_type.name, wire)
    if isinstance(data_type, ListType):
        if not isinstance(wire, list):
            raise EncodeError(f"Expected an array for {data_type}")
        return [_from_wire(data_type.element, v) for v in wire]
    if isinstance(data_type, EnumType):
        return _to_wire(data_type, wire)
    if isinstance(data_type, StructType):
        if not isinstance(wire, dict) or set(wire.keys()) != set(data_type.field_names()):
            raise EncodeError(f"Expected a map with the fields of {data_type}")
        return {name: _from_wire(dt, wire[name]) for name, dt in data_type.fields}
    raise EncodeError(f"Unsupported data type: {data_type!r}")
