"""PluginContext - resource declaration for streaming plugins

A streaming plugin receives a PluginContext in `run`. It declares the
outputs it produces (and any extra inputs it wants the host to feed) with
the `add_*` methods, and reaches its capability grants through
`context.capabilities`.
"""

import logging
import threading
from typing import Dict, List, Optional, Type, Union

from plugstream.capabilities import Capabilities
from plugstream.config import RuntimeConfig
from plugstream.data_type import DataType, DataTypeError, parse_data_type
from plugstream.datastream import (
    DataStream,
    DataStreamType,
    ListStream,
    ResourceDestroyedError,
    TreeStream,
    ValueStream,
)
from plugstream.streaming.handle import ResourceHandle
from plugstream.streaming.inputs import (
    ListInput,
    ListInputHandle,
    TreeInput,
    TreeInputHandle,
    ValueInput,
    ValueInputHandle,
)
from plugstream.streaming.outputs import (
    ListOutput,
    ListOutputHandle,
    TreeOutput,
    TreeOutputHandle,
    ValueOutput,
    ValueOutputHandle,
)
from plugstream.streaming.resources import (
    DuplicateResourceError,
    InvalidDataTypeError,
    ResourceMetadata,
    ResourceRole,
    ResourceTable,
)


logger = logging.getLogger(__name__)


_HOST_HANDLES: Dict[ResourceRole, Dict[DataStreamType, Type[ResourceHandle]]] = {
    ResourceRole.INPUT: {
        DataStreamType.VALUE: ValueInputHandle,
        DataStreamType.LIST: ListInputHandle,
        DataStreamType.TREE: TreeInputHandle,
    },
    ResourceRole.OUTPUT: {
        DataStreamType.VALUE: ValueOutputHandle,
        DataStreamType.LIST: ListOutputHandle,
        DataStreamType.TREE: TreeOutputHandle,
    },
}

_PLUGIN_HANDLES: Dict[ResourceRole, Dict[DataStreamType, Type[ResourceHandle]]] = {
    ResourceRole.INPUT: {
        DataStreamType.VALUE: ValueInput,
        DataStreamType.LIST: ListInput,
        DataStreamType.TREE: TreeInput,
    },
    ResourceRole.OUTPUT: {
        DataStreamType.VALUE: ValueOutput,
        DataStreamType.LIST: ListOutput,
        DataStreamType.TREE: TreeOutput,
    },
}


def host_handle(table: ResourceTable, metadata: ResourceMetadata) -> ResourceHandle:
    """The host's handle for a resource: writer of inputs, reader of outputs"""
    return _HOST_HANDLES[metadata.role][metadata.kind](table, metadata)


def plugin_handle(table: ResourceTable, metadata: ResourceMetadata) -> ResourceHandle:
    """The plugin's handle for a resource: reader of inputs, writer of outputs"""
    return _PLUGIN_HANDLES[metadata.role][metadata.kind](table, metadata)


def resolve_data_type(name: str, data_type: Union[str, DataType]) -> DataType:
    if isinstance(data_type, DataType):
        return data_type
    try:
        return parse_data_type(data_type)
    except DataTypeError as e:
        raise InvalidDataTypeError(name, str(data_type), e.reason)


class PluginContext:
    """Declares resources of one streaming plugin instance"""

    def __init__(
        self,
        table: Optional[ResourceTable] = None,
        config: Optional[RuntimeConfig] = None,
        capabilities: Optional[Capabilities] = None,
    ):
        self.table = table if table is not None else ResourceTable()
        self.config = config if config is not None else RuntimeConfig()
        self._capabilities = capabilities if capabilities is not None else Capabilities()
        self._static_inputs: List[DataStream] = []
        self._started = False
        self._closed = False
        self._lock = threading.Lock()

    @property
    def capabilities(self) -> Capabilities:
        return self._capabilities

    @property
    def closed(self) -> bool:
        return self._closed

    # -------------------------------------------------------------------------
    # Inputs
    # -------------------------------------------------------------------------

    def add_value_input(
        self,
        name: str,
        description: str,
        data_type: Union[str, DataType],
        initial_value: Optional[bytes] = None,
        supports_updates: bool = True,
    ) -> ValueInput:
        """Declare a value input. Without an initial value it starts empty."""
        dt = resolve_data_type(name, data_type)
        stream = ValueStream(initial_value, self.config)
        return self._add(name, description, dt, ResourceRole.INPUT, stream, supports_updates)

    def add_list_input(
        self,
        name: str,
        description: str,
        data_type: Union[str, DataType],
        supports_updates: bool = True,
        initial_items: Optional[List[bytes]] = None,
        has_more: Optional[bool] = None,
    ) -> ListInput:
        """Declare a list input. The data type must be `list<...>`."""
        dt = self._list_type(name, data_type)
        stream = ListStream(self.config, initial_items, has_more)
        return self._add(name, description, dt, ResourceRole.INPUT, stream, supports_updates)

    def add_tree_input(
        self,
        name: str,
        description: str,
        data_type: Union[str, DataType],
        supports_updates: bool = True,
    ) -> TreeInput:
        dt = resolve_data_type(name, data_type)
        return self._add(name, description, dt, ResourceRole.INPUT, TreeStream(self.config), supports_updates)

    # -------------------------------------------------------------------------
    # Outputs
    # -------------------------------------------------------------------------

    def add_value_output(
        self,
        name: str,
        description: str,
        data_type: Union[str, DataType],
        initial_value: Optional[bytes] = None,
    ) -> ValueOutput:
        dt = resolve_data_type(name, data_type)
        stream = ValueStream(initial_value, self.config)
        return self._add(name, description, dt, ResourceRole.OUTPUT, stream)

    def add_list_output(self, name: str, description: str, data_type: Union[str, DataType]) -> ListOutput:
        """Declare a list output. The data type must be `list<...>`."""
        dt = self._list_type(name, data_type)
        return self._add(name, description, dt, ResourceRole.OUTPUT, ListStream(self.config))

    def add_tree_output(self, name: str, description: str, data_type: Union[str, DataType]) -> TreeOutput:
        dt = resolve_data_type(name, data_type)
        return self._add(name, description, dt, ResourceRole.OUTPUT, TreeStream(self.config))

    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Freeze the inputs that do not accept updates once the run began."""
        with self._lock:
            self._started = True
            for stream in self._static_inputs:
                stream.freeze()
        logger.debug("Plugin context started with %d fixed inputs", len(self._static_inputs))

    def close(self) -> None:
        """Refuse further declarations. Resources already added are untouched."""
        with self._lock:
            self._closed = True

    def host_handles(self, role: Optional[ResourceRole] = None) -> List[ResourceHandle]:
        return [host_handle(self.table, m) for m in self.table.resources(role)]

    def _list_type(self, name: str, data_type: Union[str, DataType]) -> DataType:
        dt = resolve_data_type(name, data_type)
        if not dt.is_list():
            raise InvalidDataTypeError(name, dt.type_string(), "list resources need a list<...> data type")
        return dt

    def _add(
        self,
        name: str,
        description: str,
        data_type: DataType,
        role: ResourceRole,
        stream: DataStream,
        supports_updates: bool = True,
    ):
        with self._lock:
            if self._closed:
                raise ResourceDestroyedError("plugin context")
            if self.table.find(name, role) is not None:
                raise DuplicateResourceError(name, role.value)
            if role is ResourceRole.INPUT and not supports_updates:
                if self._started:
                    stream.freeze()
                else:
                    self._static_inputs.append(stream)
            metadata = self.table.add(name, description, data_type, role, stream)
        return plugin_handle(self.table, metadata)
