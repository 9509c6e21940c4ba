"""Change/Request queue - the single suspension point of the runtime

Every reactive resource exchanges its events through EventQueue instances.
A queue carries events from exactly one producer to exactly one consumer,
in push order, without loss or duplication.

## Results

- `poll()` never blocks: returns the oldest pending event, `None` when
  nothing is pending, or `CLOSED` once the queue is closed and drained.
- `poll_blocking()` blocks until an event is pending or the queue closes;
  returns the event or `CLOSED`.

## Capacity

Queues are unbounded unless a `maxsize` is given. A bounded queue applies
its overflow policy when full: `OVERFLOW_RAISE` fails the push with
QueueFullError, `OVERFLOW_BLOCK` suspends the producer until the consumer
catches up or the queue closes. Events are never discarded.
"""

import threading
from collections import deque
from typing import Deque, Generic, List, Optional, TypeVar, Union


T = TypeVar("T")

OVERFLOW_RAISE = "raise"
OVERFLOW_BLOCK = "block"
OVERFLOW_POLICIES = (OVERFLOW_RAISE, OVERFLOW_BLOCK)


class ChannelError(Exception):
    """Base error for queue operations"""
    pass


class SendError(ChannelError):
    """Push on a closed queue"""

    def __init__(self):
        super().__init__("Send error: channel closed")


class QueueFullError(ChannelError):
    """Push on a full bounded queue with the raise policy"""

    def __init__(self, maxsize: int):
        super().__init__(f"Queue full: {maxsize} events pending")
        self.maxsize = maxsize


class _Closed:
    """Terminal result of a drained, closed queue"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CLOSED"


CLOSED = _Closed()


class EventQueue(Generic[T]):
    """Ordered single-producer/single-consumer channel with a terminal state"""

    def __init__(self, maxsize: Optional[int] = None, overflow: str = OVERFLOW_RAISE):
        if maxsize is not None and maxsize <= 0:
            raise ValueError("maxsize must be positive")
        if overflow not in OVERFLOW_POLICIES:
            raise ValueError(f"Unknown overflow policy: {overflow}")
        self._events: Deque[T] = deque()
        self._maxsize = maxsize
        self._overflow = overflow
        self._closed = False
        self._cond = threading.Condition()

    @property
    def maxsize(self) -> Optional[int]:
        return self._maxsize

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def __len__(self) -> int:
        with self._cond:
            return len(self._events)

    def push(self, event: T) -> None:
        """Append an event. Producer only.

        Raises:
            SendError: If the queue is closed (also when it closes while
                a blocked push is waiting for room)
            QueueFullError: If the queue is full and the policy is raise
        """
        with self._cond:
            if self._closed:
                raise SendError()
            if self._maxsize is not None:
                while len(self._events) >= self._maxsize:
                    if self._overflow == OVERFLOW_RAISE:
                        raise QueueFullError(self._maxsize)
                    self._cond.wait()
                    if self._closed:
                        raise SendError()
            self._events.append(event)
            self._cond.notify_all()

    def wait_for_room(self) -> None:
        """Apply the overflow policy ahead of a push. Producer only.

        Returns once a push would not overflow, or the queue is closed.
        With a single producer the room cannot be taken by anyone else, so
        a producer may call this before committing the state an event
        describes.

        Raises:
            QueueFullError: If the queue is full and the policy is raise
        """
        if self._maxsize is None:
            return
        with self._cond:
            while not self._closed and len(self._events) >= self._maxsize:
                if self._overflow == OVERFLOW_RAISE:
                    raise QueueFullError(self._maxsize)
                self._cond.wait()

    def poll(self) -> Union[T, None, _Closed]:
        with self._cond:
            if self._events:
                event = self._events.popleft()
                self._cond.notify_all()
                return event
            if self._closed:
                return CLOSED
            return None

    def poll_blocking(self) -> Union[T, _Closed]:
        with self._cond:
            while not self._events:
                if self._closed:
                    return CLOSED
                self._cond.wait()
            event = self._events.popleft()
            self._cond.notify_all()
            return event

    def drain(self) -> List[T]:
        """Remove and return every pending event without blocking."""
        with self._cond:
            events = list(self._events)
            self._events.clear()
            self._cond.notify_all()
            return events

    def close(self) -> None:
        """Refuse further pushes and release every waiter. Idempotent.

        Events pushed before the close stay deliverable.
        """
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"EventQueue({state}, pending={len(self)}, maxsize={self._maxsize})"
