from dataclasses import dataclass
from typing import AsyncIterator, Callable, Dict, List, Optional
import asyncio
import logging

from ..models import ProgressUpdate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """Progress update tagged with the operation that produced it."""
    kind: str
    percent: float
    message: str

    def __str__(self) -> str:
        return f"[{self.kind}] {self.message} ({self.percent:.1f}%)"


class ProgressChannel:
    """
    Stream of progress events for one publish run.

    Percentages are clamped so they never decrease within one operation.
    Consumers either iterate the channel (``async for event in channel``),
    subscribe a listener, or poll ``latest(kind)``.
    """

    _CLOSED = object()

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._latest: Dict[str, ProgressEvent] = {}
        self._listeners: List[Callable[[ProgressEvent], None]] = []
        self._closed = False

    def on(self, callback: Callable[[ProgressEvent], None]):
        """Subscribe a synchronous listener."""
        if callback not in self._listeners:
            self._listeners.append(callback)

    def off(self, callback: Callable[[ProgressEvent], None]):
        """Unsubscribe a listener."""
        if callback in self._listeners:
            self._listeners.remove(callback)

    def emit(self, kind: str, update: ProgressUpdate) -> Optional[ProgressEvent]:
        """Record an update from operation ``kind`` and fan it out."""
        if self._closed:
            logger.debug("Progress for %s after channel closed, dropped", kind)
            return None

        percent = float(update.percent or 0.0)
        previous = self._latest.get(kind)
        if previous is not None and percent < previous.percent:
            percent = previous.percent

        event = ProgressEvent(kind=kind, percent=percent, message=update.message or "working")
        self._latest[kind] = event
        self._queue.put_nowait(event)

        for callback in self._listeners[:]:  # Copy list to avoid modification during iteration
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in progress listener for {kind}: {e}")
        return event

    def latest(self, kind: str) -> Optional[ProgressEvent]:
        """Most recent event for ``kind`` (polling accessor)."""
        return self._latest.get(kind)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        """End the stream; iterators finish after draining queued events."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(self._CLOSED)

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item
