"""Reactive inputs

The host owns an input and writes it through a `*InputHandle`; the plugin
reads it through a `ValueInput`, `ListInput` or `TreeInput`, consuming its
change feed and sending load-more/load-children requests back.

A consumer attaching late calls `resync()`: it returns the current snapshot
and drops the pending changes that snapshot already reflects, so applying
the snapshot and then the remaining changes never skips or repeats a delta.
"""

from typing import List, Optional, Union

from plugstream.codec import encode_list_snapshot
from plugstream.datastream import ListStream, TreeStream, ValueStream
from plugstream.events import (
    ListChange,
    ListInputRequest,
    TreeChange,
    TreeInputRequest,
    TreeNode,
    ValueChange,
)
from plugstream.streaming.handle import ResourceHandle
from plugstream.streaming.resources import Side


# =============================================================================
# Plugin side
# =============================================================================

class ValueInput(ResourceHandle):
    stream_class = ValueStream
    side = Side.PLUGIN

    def get(self) -> Optional[bytes]:
        return self._stream().snapshot()

    def resync(self) -> Optional[bytes]:
        return self._stream().resync()

    def poll_change(self) -> Optional[ValueChange]:
        """Next change, or None if nothing is pending.

        Raises:
            StreamClosedError: Once the input is destroyed or detached
        """
        return self._poll_change(blocking=False)

    def poll_change_blocking(self) -> ValueChange:
        return self._poll_change(blocking=True)


class ListInput(ResourceHandle):
    stream_class = ListStream
    side = Side.PLUGIN

    def get(self) -> bytes:
        """Snapshot framed as one buffer (see `codec.decode_list_snapshot`)"""
        return encode_list_snapshot(self._stream().snapshot())

    def items(self) -> List[bytes]:
        return self._stream().snapshot()

    @property
    def has_more(self) -> Optional[bool]:
        return self._stream().has_more

    def resync(self) -> List[bytes]:
        """Item snapshot; pending changes it already reflects are dropped."""
        return self._stream().resync()

    def request_more(self, limit: int) -> bool:
        """Ask the host for up to `limit` more items.

        Returns False when nothing was requested: the host asserted there is
        nothing more, or the input is gone.
        """
        stream = self._table.lookup(self.id)
        if stream is None:
            return False
        return stream.request_page(limit)

    def poll_change(self) -> Optional[ListChange]:
        return self._poll_change(blocking=False)

    def poll_change_blocking(self) -> ListChange:
        return self._poll_change(blocking=True)


class TreeInput(ResourceHandle):
    stream_class = TreeStream
    side = Side.PLUGIN

    def get(self) -> List[TreeNode]:
        return self._stream().snapshot()

    def resync(self) -> List[TreeNode]:
        return self._stream().resync()

    def request_children(self, parent: str) -> bool:
        """Ask the host to load the children of parent. False if unknown or gone."""
        stream = self._table.lookup(self.id)
        if stream is None:
            return False
        return stream.request_children(parent)

    def poll_change(self) -> Optional[TreeChange]:
        return self._poll_change(blocking=False)

    def poll_change_blocking(self) -> TreeChange:
        return self._poll_change(blocking=True)


Input = Union[ValueInput, ListInput, TreeInput]


# =============================================================================
# Host side
# =============================================================================

class ValueInputHandle(ResourceHandle):
    stream_class = ValueStream
    side = Side.HOST

    def get(self) -> Optional[bytes]:
        return self._stream().snapshot()

    def set(self, value: bytes) -> None:
        self._stream().set(value)

    def clear(self) -> None:
        self._stream().clear()


class ListInputHandle(ResourceHandle):
    stream_class = ListStream
    side = Side.HOST

    def get(self) -> List[bytes]:
        return self._stream().snapshot()

    @property
    def has_more(self) -> Optional[bool]:
        return self._stream().has_more

    def append(self, item: bytes) -> None:
        self._stream().append(item)

    def pop(self) -> bool:
        return self._stream().pop()

    def replace(self, items: List[bytes]) -> None:
        self._stream().replace(items)

    def clear(self) -> None:
        self._stream().clear()

    def set_has_more(self, has_more: bool) -> None:
        self._stream().set_has_more(has_more)

    def poll_request(self) -> Optional[ListInputRequest]:
        """Next plugin request, None if none is pending, `close` once detached"""
        return self._poll_request(False, ListInputRequest.close())

    def poll_request_blocking(self) -> ListInputRequest:
        return self._poll_request(True, ListInputRequest.close())


class TreeInputHandle(ResourceHandle):
    stream_class = TreeStream
    side = Side.HOST

    def get(self) -> List[TreeNode]:
        return self._stream().snapshot()

    def add(self, parent: Optional[str], children: List[TreeNode]) -> List[TreeNode]:
        return self._stream().add(parent, children)

    def append(self, nodes: List[TreeNode]) -> None:
        self._stream().append(nodes)

    def remove(self, node_id: str) -> List[str]:
        return self._stream().remove(node_id)

    def replace(self, nodes: List[TreeNode]) -> None:
        self._stream().replace(nodes)

    def clear(self) -> None:
        self._stream().clear()

    def poll_request(self) -> Optional[TreeInputRequest]:
        return self._poll_request(False, TreeInputRequest.close())

    def poll_request_blocking(self) -> TreeInputRequest:
        return self._poll_request(True, TreeInputRequest.close())


InputHandle = Union[ValueInputHandle, ListInputHandle, TreeInputHandle]
