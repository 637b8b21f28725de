"""
JSON progress output for media2web.

This module provides structured JSON-lines output for integration
with other applications (web UIs, monitoring tools, etc.).
"""

import json
import sys
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from media2web.progress import ProgressEvent, ProgressStatus
from media2web.results import ConversionResult


@dataclass
class FileProgress:
    """Progress information for a single file."""

    filename: str
    status: str  # "queued", "converting", "completed", "failed"
    progress_percent: float = 0.0
    error: Optional[str] = None
    started_at: Optional[float] = None
    finished_at: Optional[float] = None


@dataclass
class OverallProgress:
    """Overall progress for the entire run."""

    media_type: str = ""
    total_files: int = 0
    processed_files: int = 0
    converted_files: int = 0
    failed_files: int = 0
    concurrency: int = 1
    overall_percent: float = 0.0
    started_at: Optional[float] = None


@dataclass
class JSONProgressState:
    """Complete state for JSON progress output."""

    version: str = "1.0"
    timestamp: float = field(default_factory=time.time)
    event: str = "progress"  # "start", "file_start", "progress", "file_done", "complete"
    overall: OverallProgress = field(default_factory=OverallProgress)
    files: Dict[str, FileProgress] = field(default_factory=dict)  # keyed by sequence number


class JSONProgressOutput:
    """Progress sink that writes one JSON object per event to a stream."""

    def __init__(self, stream=None):
        self.stream = stream if stream is not None else sys.stdout
        self.state = JSONProgressState()
        self._lock = threading.Lock()

    def _emit(self, event: str, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a JSON progress event."""
        self.state.timestamp = time.time()
        self.state.event = event
        output = asdict(self.state)
        if extra:
            output.update(extra)
        print(json.dumps(output), file=self.stream, flush=True)

    def start(self, total_files: int, media_type: str, concurrency: int) -> None:
        """Signal start of processing."""
        with self._lock:
            self.state.overall = OverallProgress(
                media_type=media_type,
                total_files=total_files,
                concurrency=concurrency,
                started_at=time.time(),
            )
            self._emit("start")

    def __call__(self, event: ProgressEvent) -> None:
        with self._lock:
            # Keyed by sequence number: one name may be requested several times
            key = str(event.current)
            fp = self.state.files.get(key)
            if fp is None:
                fp = FileProgress(filename=event.file, status="queued")
                self.state.files[key] = fp

            if event.status == ProgressStatus.CONVERTING:
                first = fp.status == "queued"
                fp.status = "converting"
                if first:
                    fp.started_at = time.time()
                if event.progress is not None:
                    fp.progress_percent = event.progress
                self._update_overall()
                self._emit("file_start" if first else "progress", {"file": event.file, "current": event.current})
                return

            fp.finished_at = time.time()
            self.state.overall.processed_files += 1
            if event.status == ProgressStatus.COMPLETED:
                fp.status = "completed"
                fp.progress_percent = 100.0
                self.state.overall.converted_files += 1
            else:
                fp.status = "failed"
                fp.error = event.error
                self.state.overall.failed_files += 1
            self._update_overall()
            self._emit("file_done", {"file": event.file, "current": event.current, "status": fp.status})

    def complete(self, result: Optional[ConversionResult] = None) -> None:
        """Signal all processing is complete."""
        with self._lock:
            self.state.overall.overall_percent = 100.0
            extra = None
            if result is not None:
                extra = {
                    "successes": [asdict(s.stats) for s in result.successes],
                    "failures": [asdict(f) for f in result.failures],
                }
            self._emit("complete", extra)

    def _update_overall(self) -> None:
        """Update overall progress: finished files plus partial progress of running ones."""
        total = self.state.overall.total_files
        if total <= 0:
            return
        running = sum(fp.progress_percent / 100.0 for fp in self.state.files.values() if fp.status == "converting")
        pct = (self.state.overall.processed_files + running) / total * 100
        self.state.overall.overall_percent = min(100.0, pct)
