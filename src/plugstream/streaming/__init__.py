"""Streaming resources: the handles each side of the boundary holds"""

from plugstream.streaming.resources import (
    ResourceError,
    UnknownResourceError,
    InvalidDataTypeError,
    DuplicateResourceError,
    WrongResourceKindError,
    ResourceRole,
    Side,
    ResourceMetadata,
    ResourceChange,
    ResourceChangeKind,
    ResourceTable,
)
from plugstream.streaming.handle import ResourceHandle
from plugstream.streaming.inputs import (
    Input,
    InputHandle,
    ValueInput,
    ListInput,
    TreeInput,
    ValueInputHandle,
    ListInputHandle,
    TreeInputHandle,
)
from plugstream.streaming.outputs import (
    OutputResource,
    OutputHandle,
    RequestStream,
    ValueOutput,
    ListOutput,
    TreeOutput,
    ValueOutputHandle,
    ListOutputHandle,
    TreeOutputHandle,
)
from plugstream.streaming.context import PluginContext, host_handle, plugin_handle

__all__ = [
    "ResourceError",
    "UnknownResourceError",
    "InvalidDataTypeError",
    "DuplicateResourceError",
    "WrongResourceKindError",
    "ResourceRole",
    "Side",
    "ResourceMetadata",
    "ResourceChange",
    "ResourceChangeKind",
    "ResourceTable",
    "ResourceHandle",
    "Input",
    "InputHandle",
    "ValueInput",
    "ListInput",
    "TreeInput",
    "ValueInputHandle",
    "ListInputHandle",
    "TreeInputHandle",
    "OutputResource",
    "OutputHandle",
    "RequestStream",
    "ValueOutput",
    "ListOutput",
    "TreeOutput",
    "ValueOutputHandle",
    "ListOutputHandle",
    "TreeOutputHandle",
    "PluginContext",
    "host_handle",
    "plugin_handle",
]
