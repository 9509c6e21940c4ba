"""Reactive outputs

The plugin owns an output and writes it through `ValueOutput`, `ListOutput`
or `TreeOutput`. The host reads it through a `*OutputHandle`: a snapshot,
the change feed, and load-more/load-children requests back to the plugin.

Outputs are demand driven. A plugin producing a list or tree waits on the
request stream and produces the next batch when asked; `close` on that
stream means the host stopped listening and nothing more is wanted.
"""

from typing import Iterator, List, Optional, Union

from plugstream.datastream import ListStream, TreeStream, ValueStream
from plugstream.events import (
    ListChange,
    ListOutputRequest,
    TreeChange,
    TreeNode,
    TreeOutputRequest,
    ValueChange,
)
from plugstream.streaming.handle import ResourceHandle
from plugstream.streaming.resources import Side


class RequestStream:
    """Host requests for one list or tree output, as seen by the plugin

    Every poll after the host closed its view, or after the output was
    destroyed, returns the close request.
    """

    def __init__(self, output: ResourceHandle, close_request):
        self._output = output
        self._close_request = close_request

    def poll_request(self):
        """Next request, or None if none is pending"""
        return self._output._poll_request(False, self._close_request)

    def poll_request_blocking(self):
        return self._output._poll_request(True, self._close_request)

    def __iter__(self) -> Iterator:
        """Block for requests until close; close itself is not yielded."""
        while True:
            request = self.poll_request_blocking()
            if request.is_close():
                return
            yield request


# =============================================================================
# Plugin side
# =============================================================================

class ValueOutput(ResourceHandle):
    stream_class = ValueStream
    side = Side.PLUGIN

    def get(self) -> Optional[bytes]:
        return self._stream().snapshot()

    def set(self, value: bytes) -> None:
        self._stream().set(value)

    def clear(self) -> None:
        self._stream().clear()


class ListOutput(ResourceHandle):
    stream_class = ListStream
    side = Side.PLUGIN

    def get(self) -> List[bytes]:
        return self._stream().snapshot()

    def add(self, item: bytes) -> None:
        self._stream().append(item)

    def pop(self) -> bool:
        """Remove the last item; a no-op on an empty list"""
        return self._stream().pop()

    def clear(self) -> None:
        self._stream().clear()

    def replace(self, items: List[bytes]) -> None:
        self._stream().replace(items)

    def set_has_more_rows(self, has_more: bool) -> None:
        self._stream().set_has_more(has_more)

    def get_request_stream(self) -> RequestStream:
        return RequestStream(self, ListOutputRequest.close())


class TreeOutput(ResourceHandle):
    stream_class = TreeStream
    side = Side.PLUGIN

    def get(self) -> List[TreeNode]:
        return self._stream().snapshot()

    def add(self, parent: Optional[str], children: List[TreeNode]) -> List[TreeNode]:
        """Attach children under parent, or as roots when parent is None"""
        return self._stream().add(parent, children)

    def remove(self, node_id: str) -> List[str]:
        """Remove a node with its subtree"""
        return self._stream().remove(node_id)

    def clear(self) -> None:
        self._stream().clear()

    def replace(self, nodes: List[TreeNode]) -> None:
        self._stream().replace(nodes)

    def get_request_stream(self) -> RequestStream:
        return RequestStream(self, TreeOutputRequest.close())


OutputResource = Union[ValueOutput, ListOutput, TreeOutput]


# =============================================================================
# Host side
# =============================================================================

class _OutputView(ResourceHandle):
    side = Side.HOST

    def close(self) -> bool:
        """Stop reading this output. The plugin sees `close` on its requests."""
        return self.destroy()


class ValueOutputHandle(_OutputView):
    stream_class = ValueStream

    def snapshot(self) -> Optional[bytes]:
        return self._stream().snapshot()

    def resync(self) -> Optional[bytes]:
        return self._stream().resync()

    def poll_update(self) -> Optional[ValueChange]:
        return self._poll_change(blocking=False)

    def poll_update_blocking(self) -> ValueChange:
        return self._poll_change(blocking=True)


class ListOutputHandle(_OutputView):
    stream_class = ListStream

    def snapshot(self) -> List[bytes]:
        return self._stream().snapshot()

    @property
    def has_more(self) -> Optional[bool]:
        return self._stream().has_more

    def resync(self) -> List[bytes]:
        return self._stream().resync()

    def load_more(self, limit: int) -> bool:
        """Ask the plugin for up to `limit` more items.

        Returns False when the plugin asserted it has no more rows, or when
        the output is gone or this view was closed.
        """
        stream = self._table.lookup(self.id)
        if stream is None:
            return False
        return stream.request_page(limit)

    def poll_update(self) -> Optional[ListChange]:
        return self._poll_change(blocking=False)

    def poll_update_blocking(self) -> ListChange:
        return self._poll_change(blocking=True)


class TreeOutputHandle(_OutputView):
    stream_class = TreeStream

    def snapshot(self) -> List[TreeNode]:
        return self._stream().snapshot()

    def resync(self) -> List[TreeNode]:
        return self._stream().resync()

    def request_children(self, parent: str) -> bool:
        stream = self._table.lookup(self.id)
        if stream is None:
            return False
        return stream.request_children(parent)

    def poll_update(self) -> Optional[TreeChange]:
        return self._poll_change(blocking=False)

    def poll_update_blocking(self) -> TreeChange:
        return self._poll_change(blocking=True)


OutputHandle = Union[ValueOutputHandle, ListOutputHandle, TreeOutputHandle]
