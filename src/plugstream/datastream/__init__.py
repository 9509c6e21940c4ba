"""Reactive state holders behind every input and output resource"""

from plugstream.datastream.base import (
    DataStream,
    DataStreamType,
    StreamError,
    ResourceDestroyedError,
    StreamClosedError,
    DuplicateNodeError,
    UnknownNodeError,
    CapacityError,
    ImmutableInputError,
)
from plugstream.datastream.value_stream import ValueStream
from plugstream.datastream.list_stream import ListStream
from plugstream.datastream.tree_stream import TreeStream

__all__ = [
    "DataStream",
    "DataStreamType",
    "StreamError",
    "ResourceDestroyedError",
    "StreamClosedError",
    "DuplicateNodeError",
    "UnknownNodeError",
    "CapacityError",
    "ImmutableInputError",
    "ValueStream",
    "ListStream",
    "TreeStream",
]
