"""
Progress events emitted while a batch is converted.

A progress sink is any callable taking a :class:`ProgressEvent`. Sinks are
invoked from worker threads, so renderers should either be thread-safe or be
wrapped in :class:`ThreadSafeSink`.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ProgressStatus(str, Enum):
    """Lifecycle status of a single file."""

    CONVERTING = "converting"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    """
    One lifecycle event for one file.

    Attributes:
        current: 1-based sequence number of the file in the working set.
        total: Number of files in the working set.
        file: Identifier of the file as it was requested.
        status: converting, completed or failed.
        progress: Optional percentage (0-100) for long-running conversions.
        error: Error message for failed events.
    """

    current: int
    total: int
    file: str
    status: ProgressStatus
    progress: Optional[float] = None
    error: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.status in (ProgressStatus.COMPLETED, ProgressStatus.FAILED)


# Type alias for progress sinks
ProgressSink = Callable[[ProgressEvent], None]


def report_progress(sink: Optional[ProgressSink], event: ProgressEvent) -> None:
    """Deliver an event to the sink, if any. Sink errors are logged, never raised."""
    if sink is None:
        return
    try:
        sink(event)
    except Exception:
        logger.exception("Progress sink failed on %s event for %s", event.status.value, event.file)


class ThreadSafeSink:
    """Serialize calls to a sink that is not safe to call from several threads."""

    def __init__(self, sink: ProgressSink):
        self.sink = sink
        self._lock = threading.Lock()

    def __call__(self, event: ProgressEvent) -> None:
        with self._lock:
            self.sink(event)


class CollectingSink:
    """Sink that records every event it receives, in arrival order."""

    def __init__(self) -> None:
        self.events = []
        self._lock = threading.Lock()

    def __call__(self, event: ProgressEvent) -> None:
        with self._lock:
            self.events.append(event)

    def for_file(self, name: str):
        """Return the events recorded for one file."""
        with self._lock:
            return [e for e in self.events if e.file == name]


def combine_sinks(*sinks: Optional[ProgressSink]) -> Optional[ProgressSink]:
    """Fan one event stream out to several sinks. None entries are skipped."""
    active = [s for s in sinks if s is not None]
    if not active:
        return None
    if len(active) == 1:
        return active[0]

    def fan_out(event: ProgressEvent) -> None:
        for sink in active:
            report_progress(sink, event)

    return fan_out
