"""Tests for codec module"""

import cbor2
import pytest

from plugstream.codec import (
    DecodeError,
    EncodeError,
    ValueCoder,
    decode_list_snapshot,
    encode_list_snapshot,
)


# TEST030: Test list snapshot framing keeps item buffers opaque and ordered
def test_list_snapshot_framing():
    items = [b"\x00\x01", b"", b"not cbor \xff"]
    snapshot = encode_list_snapshot(items)
    assert cbor2.loads(snapshot) == items
    assert decode_list_snapshot(snapshot) == items


# TEST031: Test an empty list snapshot is an empty CBOR array
def test_empty_list_snapshot():
    assert encode_list_snapshot([]) == cbor2.dumps([])
    assert decode_list_snapshot(encode_list_snapshot([])) == []


# TEST032: Test decoding a snapshot that is not an array of byte strings fails
def test_invalid_list_snapshot():
    with pytest.raises(DecodeError):
        decode_list_snapshot(cbor2.dumps(["text"]))
    with pytest.raises(DecodeError):
        decode_list_snapshot(cbor2.dumps({"a": b"x"}))
    with pytest.raises(DecodeError):
        decode_list_snapshot(b"")


# TEST033: Test primitive values encode to their CBOR wire form
def test_encode_primitives():
    assert cbor2.loads(ValueCoder("string").encode("hi")) == "hi"
    assert cbor2.loads(ValueCoder("number").encode(3)) == 3.0
    assert cbor2.loads(ValueCoder("boolean").encode(True)) is True
    assert cbor2.loads(ValueCoder("trigger").encode(None)) is None
    assert cbor2.loads(ValueCoder("bytes").encode(bytearray(b"ab"))) == b"ab"


# TEST034: Test numbers decode as floats and colors as tuples
def test_decode_number_and_color():
    assert ValueCoder("number").decode(cbor2.dumps(7)) == 7.0
    color = ValueCoder("color")
    assert color.decode(color.encode([0, 65535, 10, 20])) == (0, 65535, 10, 20)


# TEST035: Test enum and struct values follow their declared shape
def test_enum_and_struct():
    coder = ValueCoder("struct Entry<name: string, kind: enum Kind<FILE, DIRECTORY>>")
    value = {"name": "a.txt", "kind": "FILE"}
    assert coder.decode(coder.encode(value)) == value
    with pytest.raises(EncodeError):
        coder.encode({"name": "a.txt", "kind": "LINK"})
    with pytest.raises(EncodeError):
        coder.encode({"name": "a.txt"})


# TEST036: Test values of the wrong Python type are rejected on encode
@pytest.mark.parametrize("data_type, value", [
    ("number", True),
    ("number", "1"),
    ("string", 1),
    ("boolean", 0),
    ("trigger", 1),
    ("json", "{not json"),
    ("color", (1, 2, 3)),
    ("color", (1, 2, 3, 70000)),
    ("list<string>", "abc"),
])
def test_encode_rejects_mismatched_values(data_type, value):
    with pytest.raises(EncodeError):
        ValueCoder(data_type).encode(value)


# TEST037: Test decoding a buffer of the wrong shape raises DecodeError
def test_decode_mismatch():
    with pytest.raises(DecodeError):
        ValueCoder("string").decode(cbor2.dumps(5))
    with pytest.raises(DecodeError):
        ValueCoder("list<number>").decode(cbor2.dumps("x"))
    with pytest.raises(DecodeError):
        ValueCoder("string").decode(b"")


# TEST038: Test encode_items and decode_items work per element of a list type
def test_items():
    coder = ValueCoder("list<string>")
    items = coder.encode_items(["a", "b"])
    assert items == [cbor2.dumps("a"), cbor2.dumps("b")]
    assert coder.decode_items(items) == ["a", "b"]
    with pytest.raises(EncodeError):
        ValueCoder("string").encode_items(["a"])
    with pytest.raises(DecodeError):
        ValueCoder("string").decode_items([b""])
