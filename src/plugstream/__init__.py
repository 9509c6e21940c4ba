"""plugstream - streaming plugin host runtime

A plugin exchanges reactive data with its host through resources of three
shapes (value, paged list, tree). Each resource carries a change feed from
its owner to its reader and a request feed back, both plain polling queues,
so neither side needs callbacks into the other.

- Discrete plugins: raw buffers in, Output records or an error out.
- Streaming plugins: declare inputs and outputs on a PluginContext; the
  resources keep working after `run` returns, until the host tears down.
"""

from plugstream.channel import (
    CLOSED,
    OVERFLOW_BLOCK,
    OVERFLOW_RAISE,
    ChannelError,
    EventQueue,
    QueueFullError,
    SendError,
)
from plugstream.config import ConfigError, RuntimeConfig
from plugstream.data_type import (
    DataType,
    DataTypeError,
    EnumType,
    ListType,
    PrimitiveType,
    StructType,
    parse_data_type,
)
from plugstream.codec import (
    CodecError,
    DecodeError,
    EncodeError,
    ValueCoder,
    decode_list_snapshot,
    encode_list_snapshot,
)
from plugstream.events import (
    ListChange,
    ListChangeKind,
    ListInputRequest,
    ListOutputRequest,
    ListRequest,
    TreeChange,
    TreeChangeKind,
    TreeInputRequest,
    TreeNode,
    TreeOutputRequest,
    TreeRequest,
    ValueChange,
)
from plugstream.datastream import (
    CapacityError,
    DataStreamType,
    DuplicateNodeError,
    ImmutableInputError,
    ResourceDestroyedError,
    StreamClosedError,
    StreamError,
    UnknownNodeError,
)
from plugstream.capabilities import (
    Capabilities,
    CapabilityError,
    FilesystemView,
    NetworkAccess,
)
from plugstream.streaming import (
    InvalidDataTypeError,
    ListInput,
    ListInputHandle,
    ListOutput,
    ListOutputHandle,
    PluginContext,
    RequestStream,
    ResourceError,
    TreeInput,
    TreeInputHandle,
    TreeOutput,
    TreeOutputHandle,
    UnknownResourceError,
    ValueInput,
    ValueInputHandle,
    ValueOutput,
    ValueOutputHandle,
    WrongResourceKindError,
)
from plugstream.schema import (
    ArgumentSpec,
    DuplicateNameError,
    OutputDescriptor,
    RegistrySealedError,
    Schema,
    SchemaError,
    SchemaRegistry,
)
from plugstream.plugin import DiscretePlugin, Output, PluginError, StreamingPlugin
from plugstream.validation import ArgumentValidationError, SchemaValidator, ValidationError
from plugstream.dispatcher import (
    Binding,
    BindingError,
    DiscreteResult,
    DispatchError,
    Dispatcher,
    ReactiveInvocation,
    RunResult,
    StreamingRun,
    StreamingRunBuilder,
    UnknownPluginError,
    WrongModeError,
)

__version__ = "0.1.0"
