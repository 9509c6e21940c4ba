from typing import Any, Optional, Type

from plugstream.channel import CLOSED
from plugstream.data_type import DataType
from plugstream.datastream import DataStream, ResourceDestroyedError, StreamClosedError
from plugstream.streaming.resources import (
    ResourceId,
    ResourceMetadata,
    ResourceTable,
    Side,
    resolve_live,
)


class ResourceHandle:
    """One side's view of a resource: a table plus an id, never the stream

    Subclasses set `stream_class` and `side`. Whether a handle reads or
    writes the resource follows from `side` and the resource's owner.
    """

    stream_class: Type[DataStream] = DataStream
    side: Side = Side.HOST

    def __init__(self, table: ResourceTable, metadata: ResourceMetadata):
        self._table = table
        self._metadata = metadata

    @property
    def id(self) -> ResourceId:
        return self._metadata.id

    @property
    def name(self) -> str:
        return self._metadata.name

    @property
    def description(self) -> str:
        return self._metadata.description

    @property
    def data_type(self) -> DataType:
        return self._metadata.data_type

    @property
    def metadata(self) -> ResourceMetadata:
        return self._metadata

    @property
    def is_owner(self) -> bool:
        return self._metadata.owner is self.side

    @property
    def destroyed(self) -> bool:
        """True once the resource is gone or, for the reader, its view detached"""
        stream = self._table.lookup(self.id)
        if stream is None or stream.destroyed:
            return True
        return not self.is_owner and stream.changes.closed

    def destroy(self) -> bool:
        """Owner: tear the resource down. Reader: detach this side's view.

        Idempotent; returns False when there was nothing left to do.
        """
        return self._table.destroy(self.id, self.side)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id}, name={self.name!r})"

    def _what(self) -> str:
        return f"{self._metadata.kind.value} {self._metadata.role.value} '{self.name}'"

    def _stream(self) -> Any:
        stream = resolve_live(self._table, self.id, self.stream_class, self._what())
        if not self.is_owner and stream.changes.closed:
            raise ResourceDestroyedError(self._what())
        return stream

    def _poll_change(self, blocking: bool) -> Any:
        # reader side: the change feed of a gone resource is a closed stream
        stream = self._table.lookup(self.id)
        if stream is None or stream.destroyed:
            raise StreamClosedError()
        event = stream.changes.poll_blocking() if blocking else stream.changes.poll()
        if event is CLOSED:
            raise StreamClosedError()
        return event

    def _poll_request(self, blocking: bool, close_event: Any) -> Optional[Any]:
        # owner side: a gone or detached reader shows up as a close request
        stream = self._table.lookup(self.id)
        if stream is None or stream.destroyed:
            return close_event
        event = stream.requests.poll_blocking() if blocking else stream.requests.poll()
        if event is CLOSED:
            return close_event
        return event
