"""Shared machinery of the three data stream shapes

A data stream holds the current state of one resource and its two queues:

- `changes`: owner -> reader, describes how the state evolved
- `requests`: reader -> owner, load-more/load-children signals

Who owns a stream depends on the resource: the host owns inputs, the plugin
owns outputs. The stream itself only knows the two roles.

Mutations go through `_changing()`, which applies the queue overflow policy
before the state is touched and then holds the stream lock while the state
is updated and the matching change is pushed. `resync()` takes the same lock,
so a snapshot never includes a change that is still pending in the queue.
"""

import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Optional

from plugstream.channel import EventQueue, SendError
from plugstream.config import RuntimeConfig


class DataStreamType(Enum):
    VALUE = "value"
    LIST = "list"
    TREE = "tree"


class StreamError(Exception):
    """Base error for data stream operations"""
    pass


class ResourceDestroyedError(StreamError):
    """Operation on a destroyed resource or a detached view"""

    def __init__(self, what: str = "resource"):
        super().__init__(f"{what} was destroyed")


class StreamClosedError(StreamError):
    """Blocking or non-blocking poll on a closed stream"""

    def __init__(self):
        super().__init__("Stream closed")


class DuplicateNodeError(StreamError):
    """Tree node id is live or was used before in this tree"""

    def __init__(self, node_id: str):
        super().__init__(f"Tree node id already used: {node_id!r}")
        self.node_id = node_id


class UnknownNodeError(StreamError):
    """Tree node id does not exist"""

    def __init__(self, node_id: str):
        super().__init__(f"Tree node does not exist: {node_id!r}")
        self.node_id = node_id


class CapacityError(StreamError):
    """Mutation would exceed the configured size bound"""

    def __init__(self, kind: str, limit: int):
        super().__init__(f"{kind} size limit of {limit} exceeded")
        self.kind = kind
        self.limit = limit


class ImmutableInputError(StreamError):
    """Update to an input whose argument does not support updates"""

    def __init__(self):
        super().__init__("Input does not support updates after the run started")


class DataStream:
    """Base class of ValueStream, ListStream and TreeStream"""

    kind: DataStreamType

    def __init__(self, config: Optional[RuntimeConfig] = None):
        self.config = config if config is not None else RuntimeConfig()
        self.changes: EventQueue = self.config.new_queue()
        self.requests: EventQueue = self.config.new_queue()
        self._lock = threading.RLock()
        self._destroyed = False
        self._tearing_down = False
        self._frozen = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def snapshot(self) -> Any:
        raise NotImplementedError("Subclasses must implement snapshot")

    def _clear_state(self) -> None:
        raise NotImplementedError("Subclasses must implement _clear_state")

    def freeze(self) -> None:
        """Reject further owner mutations with ImmutableInputError."""
        with self._lock:
            self._frozen = True

    def resync(self) -> Any:
        """Return the snapshot and discard the changes it already reflects."""
        with self._lock:
            self._check_live()
            snapshot = self.snapshot()
            self.changes.drain()
            return snapshot

    def detach_reader(self) -> None:
        """The reading side stops listening. State stays with the owner."""
        self.changes.close()
        self.requests.close()

    def destroy(self) -> bool:
        """Tear the stream down. Returns False if it already was.

        Queues are closed before the lock is taken so that a producer blocked
        on a full queue is released first.
        """
        # seen by a producer released from wait_for_room before the lock is ours
        self._tearing_down = True
        self.changes.close()
        self.requests.close()
        with self._lock:
            if self._destroyed:
                return False
            self._destroyed = True
            self.changes.drain()
            self.requests.drain()
            self._clear_state()
            return True

    def _check_live(self) -> None:
        if self._destroyed or self._tearing_down:
            raise ResourceDestroyedError(f"{self.kind.value} stream")

    @contextmanager
    def _changing(self) -> Iterator[None]:
        self.changes.wait_for_room()
        with self._lock:
            self._check_live()
            if self._frozen:
                raise ImmutableInputError()
            self.changes.wait_for_room()
            yield

    def _emit(self, event: Any) -> None:
        # Closed change queue means the reader detached; the owner keeps going.
        try:
            self.changes.push(event)
        except SendError:
            pass

    def _send_request(self, request: Any) -> bool:
        try:
            self.requests.push(request)
        except SendError:
            return False
        return True
