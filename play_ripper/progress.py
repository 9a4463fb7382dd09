"""
Encoder log progress monitor.

The encoder rewrites its status line with carriage returns, so logs are read
as raw byte chunks and split on either line ending by hand.
"""
from __future__ import annotations

import re
import sys
from typing import BinaryIO, Callable

STDIN_PATH = "-"
CHUNK_SIZE = 4096

DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2})")
TIME_RE = re.compile(r"time=\s*(\d+):(\d{2}):(\d{2})")
MUXING_OVERHEAD_MARKER = "muxing overhead"

_LINE_END_RE = re.compile(rb"[\r\n]")


class ProgressIndeterminate(Exception):
    """The log never reported a (non-zero) duration."""


def _seconds(m: re.Match) -> int:
    return int(m.group(1)) * 3600 + int(m.group(2)) * 60 + int(m.group(3))


def format_percentage(value: float) -> str:
    return f"{value:.2f}"


class ProgressMonitor:
    def __init__(self, emit: Callable[[str], None] | None = None):
        """
        Args:
            emit: called with each formatted percentage as it changes. Leave
                unset for single-shot use and read ``percentage()`` at the end.
        """
        self.emit = emit
        self.duration: int | None = None
        self.progress = 0
        self._pending = bytearray()
        self._last_emitted: int | None = None

    def feed(self, chunk: bytes) -> None:
        self._pending.extend(chunk)
        parts = _LINE_END_RE.split(bytes(self._pending))
        # The last part has no line ending yet; keep it for the next chunk.
        self._pending = bytearray(parts.pop())
        for raw in parts:
            if raw:
                self.process_line(raw.decode("utf-8", errors="replace"))

    def finish(self) -> None:
        """Process the trailing fragment left at end of input."""
        if self._pending:
            raw = bytes(self._pending)
            self._pending.clear()
            self.process_line(raw.decode("utf-8", errors="replace"))

    def process_line(self, line: str) -> None:
        m = DURATION_RE.search(line)
        if m:
            self.duration = _seconds(m)

        m = TIME_RE.search(line)
        if m:
            self.progress = _seconds(m)

        if MUXING_OVERHEAD_MARKER in line and self.duration is not None:
            self.progress = self.duration

        if self.emit is not None and self.duration and self.progress != self._last_emitted:
            self._last_emitted = self.progress
            self.emit(format_percentage(self.percentage()))

    def percentage(self) -> float:
        if not self.duration:
            raise ProgressIndeterminate("Duration not found in encoder output")
        return self.progress / self.duration * 100


def _read_chunks(stream: BinaryIO):
    read = getattr(stream, "read1", None) or stream.read
    while True:
        chunk = read(CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


def follow(stream: BinaryIO, emit: Callable[[str], None]) -> float:
    """Read a live stream to its end, emitting every progress change."""
    tracker = ProgressMonitor(emit=emit)
    for chunk in _read_chunks(stream):
        tracker.feed(chunk)
    tracker.finish()
    return tracker.percentage()


def monitor(path: str = STDIN_PATH, emit: Callable[[str], None] | None = None) -> float:
    """Compute progress from an encoder log.

    ``path == "-"`` reads standard input continuously and emits every change;
    any other path is read to the end and emits the final value once.

    Raises:
        ProgressIndeterminate: no duration was found.
    """
    if emit is None:
        def emit(text: str) -> None:
            sys.stdout.write(text + "\n")
            sys.stdout.flush()

    if path == STDIN_PATH:
        return follow(sys.stdin.buffer, emit)

    tracker = ProgressMonitor()
    with open(path, "rb") as f:
        for chunk in _read_chunks(f):
            tracker.feed(chunk)
    tracker.finish()
    value = tracker.percentage()
    emit(format_percentage(value))
    return value
