from typing import Optional

from plugstream.config import RuntimeConfig
from plugstream.datastream.base import DataStream, DataStreamType
from plugstream.events import ValueChange


class ValueStream(DataStream):
    """A single optional opaque buffer"""

    kind = DataStreamType.VALUE

    def __init__(self, initial: Optional[bytes] = None, config: Optional[RuntimeConfig] = None):
        super().__init__(config)
        self._value: Optional[bytes] = bytes(initial) if initial is not None else None

    def snapshot(self) -> Optional[bytes]:
        with self._lock:
            return self._value

    def set(self, value: bytes) -> None:
        with self._changing():
            self._value = bytes(value)
            self._emit(ValueChange(self._value))

    def clear(self) -> None:
        with self._changing():
            self._value = None
            self._emit(ValueChange(None))

    def _clear_state(self) -> None:
        self._value = None
