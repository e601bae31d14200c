# fswatcher/watch/handlers.py

"""
Event handlers for file system monitoring

DirectoryEventHandler turns raw watchdog events into ChangeEvents.
ChangeEmitter fans notifications out to every registered sink: callback
attributes, broadcast listeners, pull queues, async streams and a delegate.
"""
import uuid
import queue
import asyncio
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple
from datetime import datetime

from watchdog.events import (
    FileSystemEventHandler,
    FileCreatedEvent,
    FileModifiedEvent,
    FileDeletedEvent,
    FileMovedEvent,
    DirCreatedEvent,
    DirModifiedEvent,
    DirDeletedEvent,
    DirMovedEvent
)

from .events import ChangeEvent, EventType, DEFAULT_EVENT_TYPES

logger = logging.getLogger(__name__)

DIRECTORY_CHANGE = 'directory_change'
FILTERED_CHANGE = 'filtered_change'
ERROR = 'error'
EVENT = 'event'

CHANNELS = (DIRECTORY_CHANGE, FILTERED_CHANGE, ERROR, EVENT)


class DirectoryEventHandler(FileSystemEventHandler):
    """
    Receives raw events for one directory and forwards the relevant ones
    """

    def __init__(self, directory: Path,
                 callback: Callable[[ChangeEvent], Any],
                 event_types: FrozenSet[EventType] = DEFAULT_EVENT_TYPES):
        """
        Initialize event handler

        Args:
            directory: Directory the handler is scheduled for
            callback: Called with each accepted ChangeEvent
            event_types: Kinds of events to accept
        """
        self.directory = directory
        self.callback = callback
        self.event_types = frozenset(event_types)

        # Statistics
        self.stats = {
            'events_received': 0,
            'events_processed': 0,
            'events_ignored': 0,
            'last_event': None,
        }

    def on_any_event(self, event):
        """Handle any file system event"""
        self.stats['events_received'] += 1
        self.stats['last_event'] = datetime.now()

        change = self._convert_event(event)
        if change.kind not in self.event_types:
            self.stats['events_ignored'] += 1
            return

        try:
            self.callback(change)
            self.stats['events_processed'] += 1
        except Exception as e:
            logger.error(f"Error handling event for {self.directory}: {e}")

    def _convert_event(self, event) -> ChangeEvent:
        """Convert watchdog event to our internal format"""
        if isinstance(event, (FileCreatedEvent, DirCreatedEvent)):
            event_type = EventType.CREATED
        elif isinstance(event, (FileModifiedEvent, DirModifiedEvent)):
            event_type = EventType.MODIFIED
        elif isinstance(event, (FileDeletedEvent, DirDeletedEvent)):
            event_type = EventType.DELETED
        elif isinstance(event, (FileMovedEvent, DirMovedEvent)):
            event_type = EventType.RENAMED
        else:
            # opened / closed and anything newer
            event_type = EventType.UNKNOWN

        return ChangeEvent(path=Path(event.src_path), kind=event_type)

    def get_stats(self) -> Dict[str, Any]:
        """Get handler statistics"""
        return self.stats.copy()


class _StreamEnd:
    pass


_STREAM_END = _StreamEnd()


class AsyncChangeStream:
    """
    Async iterator over one emitter channel

    Payloads are handed to the owning event loop thread-safely. Iteration
    ends when the stream is closed or the emitter finishes its streams.
    """

    def __init__(self, emitter: 'ChangeEmitter', channel: str,
                 loop: asyncio.AbstractEventLoop):
        self._emitter = emitter
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue()
        self._finished = False
        self.channel = channel
        self.listener_id = emitter.subscribe(channel, self._push)

    def _push(self, payload: Any):
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, payload)
        except RuntimeError:
            # Event loop is closed
            self._emitter.unsubscribe(self.listener_id)

    def _finish(self):
        if self._finished:
            return
        self._finished = True
        self._emitter.unsubscribe(self.listener_id)
        self._push(_STREAM_END)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._queue.get()
        if item is _STREAM_END:
            self._finished = True
            raise StopAsyncIteration
        return item

    async def aclose(self):
        """Stop receiving payloads"""
        self._emitter.unsubscribe(self.listener_id)
        self._emitter._forget_stream(self)
        self._finish()


class ChangeEmitter:
    """
    Single emission point fanning out to listener-id keyed sinks

    Sinks are snapshotted under the lock and invoked outside it, so a sink
    may register or remove listeners. A failing sink is logged and does not
    affect the others.
    """

    def __init__(self):
        self._sinks: Dict[str, Dict[str, Callable[[Any], Any]]] = {
            channel: {} for channel in CHANNELS
        }
        self._streams: List[AsyncChangeStream] = []
        self._callbacks: Dict[str, Optional[Callable]] = {}
        self._delegate = None
        self._lock = threading.Lock()
        self._closed = False

    # Broadcast listeners

    def subscribe(self, channel: str, callback: Callable[[Any], Any]) -> str:
        """
        Register a listener for a channel

        Args:
            channel: One of directory_change, filtered_change, error, event
            callback: Called with each payload

        Returns:
            Listener id for unsubscribe()
        """
        self._check_channel(channel)
        listener_id = uuid.uuid4().hex
        with self._lock:
            self._sinks[channel][listener_id] = callback
        return listener_id

    def unsubscribe(self, listener_id: str) -> bool:
        """Remove a listener, returns True if it was registered"""
        with self._lock:
            for sinks in self._sinks.values():
                if sinks.pop(listener_id, None) is not None:
                    return True
        return False

    def subscribe_queue(self, channel: str, maxsize: int = 0) -> Tuple[str, queue.Queue]:
        """
        Register a pull queue for a channel

        Payloads that do not fit a bounded queue are dropped with a warning.

        Returns:
            (listener id, queue)
        """
        q: queue.Queue = queue.Queue(maxsize=maxsize)

        def put(payload):
            try:
                q.put_nowait(payload)
            except queue.Full:
                logger.warning(f"Queue for {channel} is full, dropping notification")

        return self.subscribe(channel, put), q

    def stream(self, channel: str,
               loop: Optional[asyncio.AbstractEventLoop] = None) -> AsyncChangeStream:
        """
        Async iterator over a channel

        Must be called from a running event loop unless `loop` is given.
        """
        self._check_channel(channel)
        stream = AsyncChangeStream(self, channel, loop or asyncio.get_running_loop())
        with self._lock:
            self._streams.append(stream)
        return stream

    # Callback attributes

    def _set_callback(self, channel: str, callback: Optional[Callable]):
        listener_id = f"callback:{channel}"
        with self._lock:
            self._callbacks[channel] = callback
            if callback is None:
                self._sinks[channel].pop(listener_id, None)
            else:
                self._sinks[channel][listener_id] = callback

    @property
    def on_directory_change(self) -> Optional[Callable[[Path], Any]]:
        return self._callbacks.get(DIRECTORY_CHANGE)

    @on_directory_change.setter
    def on_directory_change(self, callback: Optional[Callable[[Path], Any]]):
        self._set_callback(DIRECTORY_CHANGE, callback)

    @property
    def on_filtered_change(self) -> Optional[Callable[[List[Path]], Any]]:
        return self._callbacks.get(FILTERED_CHANGE)

    @on_filtered_change.setter
    def on_filtered_change(self, callback: Optional[Callable[[List[Path]], Any]]):
        self._set_callback(FILTERED_CHANGE, callback)

    @property
    def on_error(self) -> Optional[Callable[[Exception], Any]]:
        return self._callbacks.get(ERROR)

    @on_error.setter
    def on_error(self, callback: Optional[Callable[[Exception], Any]]):
        self._set_callback(ERROR, callback)

    @property
    def delegate(self):
        """Object with a directory_did_change(event) method, or None"""
        return self._delegate

    @delegate.setter
    def delegate(self, delegate):
        with self._lock:
            self._delegate = delegate
            if delegate is None:
                self._sinks[EVENT].pop('delegate', None)
            else:
                self._sinks[EVENT]['delegate'] = delegate.directory_did_change

    # Emission

    def emit(self, channel: str, payload: Any):
        """Deliver payload to every sink of a channel"""
        self._check_channel(channel)
        with self._lock:
            if self._closed:
                return
            sinks = list(self._sinks[channel].items())

        for listener_id, sink in sinks:
            try:
                sink(payload)
            except Exception as e:
                logger.error(f"Error in {channel} listener {listener_id}: {e}", exc_info=True)

    def finish_streams(self):
        """End every open async stream"""
        with self._lock:
            streams, self._streams = self._streams, []
        for stream in streams:
            stream._finish()

    def close(self):
        """Finish streams and drop every sink"""
        self.finish_streams()
        with self._lock:
            self._closed = True
            for sinks in self._sinks.values():
                sinks.clear()
            self._callbacks.clear()
            self._delegate = None

    @property
    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    def listener_count(self, channel: Optional[str] = None) -> int:
        """Number of registered sinks, for one channel or all"""
        with self._lock:
            if channel is not None:
                return len(self._sinks.get(channel, {}))
            return sum(len(sinks) for sinks in self._sinks.values())

    def _forget_stream(self, stream: AsyncChangeStream):
        with self._lock:
            if stream in self._streams:
                self._streams.remove(stream)

    @staticmethod
    def _check_channel(channel: str):
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel: {channel}")
