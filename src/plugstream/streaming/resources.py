"""Resource table - the single owner of every live data stream

Handles on either side of the boundary never hold a stream. They hold the
table and a resource id and resolve the stream on every call, so a handle
cannot keep a destroyed resource alive and nothing references its owner.

Each resource has one owning side, fixed by its role: the host owns inputs,
the plugin owns outputs. Only the owner tears a resource down; the table
makes sure that happens once.

A host that wants to follow which resources a plugin declares and destroys
subscribes with `watch_changes()`. Until then nothing is recorded; the feed
starts with an ADDED record per live resource and must be drained by the
subscriber, since it is unbounded.
"""

import itertools
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Type, TypeVar, Union

from plugstream.channel import EventQueue
from plugstream.data_type import DataType
from plugstream.datastream import DataStream, DataStreamType, ResourceDestroyedError


logger = logging.getLogger(__name__)

S = TypeVar("S", bound=DataStream)

ResourceId = int


class ResourceError(Exception):
    """Base error for resource registration and lookup"""
    pass


class UnknownResourceError(ResourceError):
    """No resource with this id or name (never existed or already destroyed)"""

    def __init__(self, resource_id: Union[ResourceId, str]):
        super().__init__(f"Resource does not exist: {resource_id}")
        self.resource_id = resource_id


class InvalidDataTypeError(ResourceError):
    """Data type does not fit the resource shape"""

    def __init__(self, name: str, data_type: str, reason: str):
        super().__init__(f"Invalid data type '{data_type}' for resource '{name}': {reason}")
        self.name = name
        self.data_type = data_type
        self.reason = reason


class DuplicateResourceError(ResourceError):
    """A resource with this name and role already exists"""

    def __init__(self, name: str, role: str):
        super().__init__(f"Duplicate {role} name: '{name}'")
        self.name = name
        self.role = role


class WrongResourceKindError(ResourceError):
    """Resource exists but has a different shape than requested"""

    def __init__(self, resource_id: ResourceId, expected: DataStreamType, actual: DataStreamType):
        super().__init__(
            f"Resource {resource_id} is a {actual.value} resource, not a {expected.value} resource"
        )
        self.resource_id = resource_id
        self.expected = expected
        self.actual = actual


class ResourceRole(Enum):
    INPUT = "input"
    OUTPUT = "output"


class Side(Enum):
    HOST = "host"
    PLUGIN = "plugin"


@dataclass(frozen=True)
class ResourceMetadata:
    id: ResourceId
    name: str
    description: str
    data_type: DataType
    kind: DataStreamType
    role: ResourceRole

    @property
    def owner(self) -> Side:
        return Side.HOST if self.role is ResourceRole.INPUT else Side.PLUGIN


class ResourceChangeKind(Enum):
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class ResourceChange:
    kind: ResourceChangeKind
    metadata: ResourceMetadata


class ResourceTable:
    """Ids, metadata and streams of the resources of one plugin instance"""

    def __init__(self):
        self._entries: Dict[ResourceId, DataStream] = {}
        self._metadata: Dict[ResourceId, ResourceMetadata] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Condition()
        self._feed: Optional[EventQueue] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, resource_id: ResourceId) -> bool:
        with self._lock:
            return resource_id in self._entries

    def add(
        self,
        name: str,
        description: str,
        data_type: DataType,
        role: ResourceRole,
        stream: DataStream,
    ) -> ResourceMetadata:
        with self._lock:
            metadata = ResourceMetadata(
                id=next(self._ids),
                name=name,
                description=description,
                data_type=data_type,
                kind=stream.kind,
                role=role,
            )
            self._entries[metadata.id] = stream
            self._metadata[metadata.id] = metadata
            # the ADDED record is queued before any waiter sees the resource
            if self._feed is not None:
                self._feed.push(ResourceChange(ResourceChangeKind.ADDED, metadata))
            self._lock.notify_all()
        logger.debug("Added %s %s resource %r (id %d)", stream.kind.value, role.value, name, metadata.id)
        return metadata

    def watch_changes(self) -> EventQueue:
        """Subscribe to ADDED/REMOVED records. Idempotent.

        The first call creates the feed and queues an ADDED record for every
        live resource; later calls return the same feed.
        """
        with self._lock:
            if self._feed is None:
                self._feed = EventQueue()
                for metadata in self._metadata.values():
                    self._feed.push(ResourceChange(ResourceChangeKind.ADDED, metadata))
            return self._feed

    @property
    def watched(self) -> bool:
        return self._feed is not None

    def lookup(self, resource_id: ResourceId) -> Optional[DataStream]:
        """The stream for an id, or None once it is gone"""
        with self._lock:
            return self._entries.get(resource_id)

    def get(self, resource_id: ResourceId) -> DataStream:
        stream = self.lookup(resource_id)
        if stream is None:
            raise UnknownResourceError(resource_id)
        return stream

    def get_typed(self, resource_id: ResourceId, stream_class: Type[S]) -> S:
        stream = self.get(resource_id)
        if not isinstance(stream, stream_class):
            raise WrongResourceKindError(resource_id, stream_class.kind, stream.kind)
        return stream

    def metadata(self, resource_id: ResourceId) -> ResourceMetadata:
        with self._lock:
            metadata = self._metadata.get(resource_id)
        if metadata is None:
            raise UnknownResourceError(resource_id)
        return metadata

    def resources(self, role: Optional[ResourceRole] = None) -> List[ResourceMetadata]:
        """Metadata of the live resources in creation order"""
        with self._lock:
            return [m for m in self._metadata.values() if role is None or m.role is role]

    def find(self, name: str, role: ResourceRole) -> Optional[ResourceMetadata]:
        for metadata in self.resources(role):
            if metadata.name == name:
                return metadata
        return None

    def wait_for(self, name: str, role: ResourceRole, timeout: Optional[float] = None) -> Optional[ResourceMetadata]:
        """Block until a resource with this name and role exists.

        Returns None if the timeout passes first.
        """
        with self._lock:
            return self._lock.wait_for(lambda: self.find(name, role), timeout)

    def destroy(self, resource_id: ResourceId, side: Side) -> bool:
        """Destroy on behalf of one side.

        The owning side tears the resource down and removes it from the
        table. The other side only detaches its view: both queues close, the
        owner sees `close` on its request feed, and the state stays put.

        Returns True if this call changed anything.
        """
        with self._lock:
            stream = self._entries.get(resource_id)
            metadata = self._metadata.get(resource_id)
            if stream is None:
                return False
            feed = self._feed
            if metadata.owner is side:
                del self._entries[resource_id]
                del self._metadata[resource_id]
        if metadata.owner is not side:
            if stream.changes.closed:
                return False
            stream.detach_reader()
            logger.debug("Detached %s view of resource %r (id %d)", side.value, metadata.name, resource_id)
            return True
        stream.destroy()
        logger.debug("Destroyed resource %r (id %d)", metadata.name, resource_id)
        if feed is not None:
            feed.push(ResourceChange(ResourceChangeKind.REMOVED, metadata))
        return True

    def destroy_all(self) -> int:
        """Tear down every resource, owner side. Returns how many were live."""
        with self._lock:
            owners = [(resource_id, m.owner) for resource_id, m in self._metadata.items()]
        count = 0
        for resource_id, owner in owners:
            if self.destroy(resource_id, owner):
                count += 1
        return count


def resolve_live(table: ResourceTable, resource_id: ResourceId, stream_class: Type[S], what: str) -> S:
    """Resolve a handle's stream, raising ResourceDestroyedError if it is gone"""
    stream = table.lookup(resource_id)
    if stream is None or stream.destroyed:
        raise ResourceDestroyedError(what)
    if not isinstance(stream, stream_class):
        raise WrongResourceKindError(resource_id, stream_class.kind, stream.kind)
    return stream
