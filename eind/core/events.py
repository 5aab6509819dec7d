"""
Transport events and the ordered event queue.

Every network callback (connection opened, data, close, incoming call, call
stream, ...) is turned into one of the event types below and posted to a
single EventQueue. Events are handled strictly in the order they were
posted, one at a time, so per-connection ordering from the transport is kept
and no handler ever runs concurrently with another.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, Type

from eind.core.logging_config import get_logger

logger = get_logger(__name__)


class Event:
    """Base class for queue events"""


@dataclass(frozen=True)
class PeerOpened(Event):
    peer_id: str


@dataclass(frozen=True)
class PeerFailed(Event):
    reason: str


@dataclass(frozen=True)
class PeerDisconnected(Event):
    pass


@dataclass(frozen=True)
class IncomingConnection(Event):
    handle: Any


@dataclass(frozen=True)
class ConnectionOpened(Event):
    handle: Any


@dataclass(frozen=True)
class DataReceived(Event):
    handle: Any
    payload: Any


@dataclass(frozen=True)
class ConnectionClosed(Event):
    handle: Any


@dataclass(frozen=True)
class ConnectionFailed(Event):
    handle: Any
    reason: str


@dataclass(frozen=True)
class IncomingCall(Event):
    call: Any


@dataclass(frozen=True)
class CallStreamArrived(Event):
    call: Any
    stream: Any


@dataclass(frozen=True)
class CallClosed(Event):
    call: Any


@dataclass(frozen=True)
class CallFailed(Event):
    call: Any
    reason: str


Handler = Callable[[Any], None]


class EventQueue:
    """FIFO queue of transport events with one consumer.

    When an asyncio loop is running, posting schedules a drain on it;
    otherwise events wait until drain() is called. Transport code running on
    another OS thread must use post_threadsafe().
    """

    def __init__(self):
        self._pending: Deque[Event] = deque()
        self._handlers: Dict[Type[Event], List[Handler]] = {}
        self._draining = False
        self._drain_scheduled = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def subscribe(self, event_type: Type[Event], handler: Handler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def post(self, event: Event) -> None:
        self._pending.append(event)
        if self._draining or self._drain_scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._drain_scheduled = True
        loop.call_soon(self._scheduled_drain)

    def post_threadsafe(self, event: Event) -> None:
        if self._loop is None:
            raise RuntimeError("EventQueue is not bound to a loop")
        self._loop.call_soon_threadsafe(self.post, event)

    def pending(self) -> int:
        return len(self._pending)

    def drain(self) -> int:
        """Handle every queued event, including ones posted by handlers.

        Returns:
            int: Number of events handled
        """
        if self._draining:
            return 0
        self._draining = True
        self._drain_scheduled = False
        handled = 0
        try:
            while self._pending:
                event = self._pending.popleft()
                self._dispatch(event)
                handled += 1
        finally:
            self._draining = False
        return handled

    def _scheduled_drain(self) -> None:
        self._drain_scheduled = False
        self.drain()

    def _dispatch(self, event: Event) -> None:
        handlers = self._handlers.get(type(event), [])
        if not handlers:
            logger.debug(f"No handler for {type(event).__name__}")
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Handler failed for {type(event).__name__}")
