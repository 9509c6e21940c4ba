from typing import List, Optional

from plugstream.config import RuntimeConfig
from plugstream.datastream.base import CapacityError, DataStream, DataStreamType
from plugstream.events import ListChange, ListRequest


class ListStream(DataStream):
    """An ordered sequence of opaque buffers plus paging state

    `has_more` is the producer's last assertion about upstream items: None
    until the producer says anything, then whatever it said last.
    """

    kind = DataStreamType.LIST

    def __init__(
        self,
        config: Optional[RuntimeConfig] = None,
        items: Optional[List[bytes]] = None,
        has_more: Optional[bool] = None,
    ):
        super().__init__(config)
        self._items: List[bytes] = [bytes(i) for i in items] if items else []
        self._has_more: Optional[bool] = has_more
        self._check_capacity(len(self._items))

    def snapshot(self) -> List[bytes]:
        with self._lock:
            return list(self._items)

    @property
    def has_more(self) -> Optional[bool]:
        with self._lock:
            return self._has_more

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def append(self, item: bytes) -> None:
        with self._changing():
            self._check_capacity(len(self._items) + 1)
            item = bytes(item)
            self._items.append(item)
            self._emit(ListChange.append(item))

    def pop(self) -> bool:
        """Remove the last item. An empty list is left alone and emits nothing."""
        with self._changing():
            if not self._items:
                return False
            self._items.pop()
            self._emit(ListChange.pop())
            return True

    def clear(self) -> None:
        self.replace([])

    def replace(self, items: List[bytes]) -> None:
        with self._changing():
            items = [bytes(i) for i in items]
            self._check_capacity(len(items))
            self._items = items
            self._emit(ListChange.replace(items))

    def set_has_more(self, has_more: bool) -> None:
        with self._changing():
            self._has_more = bool(has_more)
            self._emit(ListChange.has_more_pages(self._has_more))

    def request_page(self, limit: int) -> bool:
        """Ask the producer for up to `limit` more items.

        Returns False without queuing anything when the producer asserted
        there is nothing more, or when the stream is gone.
        """
        if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
            raise ValueError(f"limit must be a positive integer, got {limit!r}")
        with self._lock:
            if self._destroyed or self._has_more is False:
                return False
        return self._send_request(ListRequest.load_more(limit))

    def _check_capacity(self, size: int) -> None:
        limit = self.config.max_list_items
        if limit is not None and size > limit:
            raise CapacityError("list", limit)

    def _clear_state(self) -> None:
        self._items = []
        self._has_more = None
