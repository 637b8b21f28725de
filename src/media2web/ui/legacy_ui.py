"""
Plain-text progress output for media2web.

Used in script mode (NO_COLOR, MEDIA2WEB_SCRIPT_MODE, or when stdout is
not a terminal) and whenever Rich rendering is disabled.
"""

import shutil
import sys
import threading
from typing import Optional

from media2web.progress import ProgressEvent, ProgressStatus
from media2web.results import ConversionResult


def term_width() -> int:
    """Get terminal width."""
    try:
        return shutil.get_terminal_size((120, 20)).columns
    except Exception:
        return 120


def mkbar(pct: float, width: int = 26) -> str:
    """Create a simple progress bar string."""
    pct = max(0, min(100, pct))
    filled = int(pct * width / 100)
    empty = width - filled
    return "#" * filled + "-" * empty


def shorten(s: str, maxlen: int) -> str:
    """Shorten a string with ellipsis if too long."""
    if maxlen <= 0:
        return ""
    if len(s) <= maxlen:
        return s
    if maxlen <= 3:
        return s[:maxlen]
    return s[: maxlen - 3] + "..."


def fmt_hms(seconds: float) -> str:
    """Format seconds as HH:MM:SS."""
    if seconds < 0:
        seconds = 0
    s = int(round(seconds))
    h = s // 3600
    m = (s % 3600) // 60
    r = s % 60
    return f"{h:02d}:{m:02d}:{r:02d}"


class LegacyProgressUI:
    """Line-oriented progress sink. One line per finished file."""

    def __init__(self, progress: bool = True, bar_width: int = 26, stream=None):
        self.stream = stream if stream is not None else sys.stdout
        try:
            is_tty = self.stream.isatty()
        except Exception:
            is_tty = False
        self.enabled = progress and is_tty
        self.bar_width = bar_width
        self._last_render: Optional[str] = None
        self._lock = threading.Lock()

    def _clear_line(self) -> None:
        if self.enabled and self._last_render:
            self.stream.write("\r" + " " * len(self._last_render) + "\r")
            self.stream.flush()
        self._last_render = None

    def render(self, event: ProgressEvent) -> None:
        """Render an in-place progress line for a running conversion."""
        if not self.enabled or event.progress is None:
            return
        left = f"[{mkbar(event.progress, self.bar_width)}] {event.progress:5.1f}% ({event.current}/{event.total}) "
        name = shorten(event.file, max(10, term_width() - len(left) - 1))
        line = left + name
        pad = ""
        if self._last_render is not None and len(self._last_render) > len(line):
            pad = " " * (len(self._last_render) - len(line))
        if line != self._last_render:
            self.stream.write("\r" + line + pad)
            self.stream.flush()
            self._last_render = line

    def __call__(self, event: ProgressEvent) -> None:
        with self._lock:
            if event.status == ProgressStatus.CONVERTING:
                self.render(event)
                return

            self._clear_line()
            prefix = f"[{event.current}/{event.total}]"
            if event.status == ProgressStatus.COMPLETED:
                print(f"{prefix} OK     {event.file}", file=self.stream, flush=True)
            else:
                print(f"{prefix} FAILED {event.file}: {event.error}", file=self.stream, flush=True)

    def print_summary(self, result: ConversionResult, elapsed: float) -> None:
        """Print converted files, failures and totals."""
        out = self.stream
        print(file=out)
        if result.successes:
            print("Converted:", file=out)
            for s in result.successes:
                print(
                    f"  {s.input_name} -> {s.output_name}: {s.input_size} -> {s.output_size} ({s.reduction}% smaller)",
                    file=out,
                )
        if result.failures:
            print("Failed:", file=out)
            for f in result.failures:
                print(f"  {f.file}: {f.error}", file=out)
        print("=== Summary ===", file=out)
        print(f"Converted: {len(result.successes)}", file=out)
        print(f"Failed: {len(result.failures)}", file=out)
        print(f"Total time: {fmt_hms(elapsed)}", file=out, flush=True)
