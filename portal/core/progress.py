"""
Upload progress tracking

Transport callbacks (bytes_sent, bytes_total, started_at) are turned into
ProgressEvent snapshots and fanned out over ProgressChannel streams. The
channels are a side channel for the UI only: publishing never blocks the
transfer and is independent of the transfer's own completion.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Optional


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot of one upload's progress"""
    bytes_sent: int
    bytes_total: int
    started_at: float
    now: float

    @property
    def percent(self) -> int:
        """Whole percent; 100 only once every byte is sent"""
        if self.bytes_total <= 0:
            return 100
        return min(100, self.bytes_sent * 100 // self.bytes_total)

    @property
    def elapsed(self) -> float:
        return max(0.0, self.now - self.started_at)

    @property
    def speed(self) -> float:
        """Bytes per second since the upload started"""
        if self.elapsed <= 0:
            return 0.0
        return self.bytes_sent / self.elapsed

    @property
    def eta(self) -> Optional[float]:
        """Seconds remaining at the current speed, None while unknown"""
        remaining = self.bytes_total - self.bytes_sent
        if remaining <= 0:
            return 0.0
        if self.speed <= 0:
            return None
        return remaining / self.speed

    @property
    def is_complete(self) -> bool:
        return self.bytes_sent >= self.bytes_total


class ProgressTracker:
    """
    Build monotonic progress events from raw transport callbacks

    Transports may report out of order or repeat themselves; the tracker
    never lets bytes_sent go backwards.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.last: Optional[ProgressEvent] = None

    def update(self, bytes_sent: int, bytes_total: int, started_at: float) -> ProgressEvent:
        if self.last is not None:
            bytes_sent = max(bytes_sent, self.last.bytes_sent)
        bytes_sent = min(bytes_sent, bytes_total)
        event = ProgressEvent(
            bytes_sent=bytes_sent,
            bytes_total=bytes_total,
            started_at=started_at,
            now=self._clock(),
        )
        self.last = event
        return event


_CLOSED = object()


class ProgressChannel:
    """Unbounded stream of ProgressEvent, closed when the attempt ends"""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self.received: List[ProgressEvent] = []

    def publish(self, event: ProgressEvent) -> None:
        if self.closed:
            return
        self.received.append(event)
        self._queue.put_nowait(event)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
