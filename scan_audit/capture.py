"""
Standard output capture for in-process command invocations.

The invoked CLI writes its results to sys.stdout and takes no output
parameter, so capture has to swap the process-wide stream. Everything in
this package that writes output takes an output sink instead; the swap in
run_capturing is the one place that replaces sys.stdout.

Capture cycle:
1. sys.stdout is pointed at the write end of an os.pipe()
2. invoke runs on a single worker thread
3. the caller reads the read end until EOF
4. the worker closes the write end when invoke returns or raises, which
   produces the EOF; the worker's error travels back through its future
5. sys.stdout is restored and the read end closed on every exit path
"""

from __future__ import annotations

import io
import logging
import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, TextIO

logger = logging.getLogger(__name__)

# Only one capture may own sys.stdout at a time
_capture_lock = threading.Lock()


class StreamSink:
    """
    Output sink writing to a text stream.

    Without an explicit stream, writes go to whatever sys.stdout is at the
    time of the call, so output emitted during a capture is captured.
    """

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def write(self, text: str) -> None:
        self.stream.write(text)

    def flush(self) -> None:
        self.stream.flush()


class BufferSink:
    """Output sink collecting text in memory."""

    def __init__(self):
        self._parts: list[str] = []

    def write(self, text: str) -> None:
        self._parts.append(text)

    def flush(self) -> None:
        pass

    def getvalue(self) -> str:
        return "".join(self._parts)


@dataclass(frozen=True)
class CapturedOutput:
    """
    Result of one capture cycle.

    Attributes:
        data: Every byte written to standard output during the invocation
        error: Exception raised by the invocation, if any
    """
    data: bytes
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def text(self, encoding: str = "utf-8") -> str:
        return self.data.decode(encoding, errors="replace")


class _PipeWriter:
    """
    Text stream over the write end of a pipe.

    Used as a context manager by the worker; leaving the block closes the
    write end, which is what ends the caller's read.
    """

    def __init__(self, fd: int):
        self.stream = io.TextIOWrapper(
            os.fdopen(fd, "wb"),
            encoding="utf-8",
            errors="replace",
            write_through=True,
        )

    def __enter__(self) -> TextIO:
        return self.stream

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self.stream.closed:
            return
        try:
            self.stream.close()
        except BrokenPipeError:
            # Reader already gone; the caller is unwinding an error of its own
            logger.debug("Capture reader closed before the writer")


def _invoke_and_close(invoke: Callable[[], object], writer: _PipeWriter) -> Exception | None:
    """
    Run invoke with the pipe writer open and return its error.

    BaseExceptions that are not Exceptions propagate through the future.
    """
    with writer:
        try:
            invoke()
        except Exception as e:
            return e
    return None


def _echo(stream: TextIO, data: bytes) -> None:
    if not data:
        return
    buffer = getattr(stream, "buffer", None)
    if buffer is not None:
        stream.flush()
        buffer.write(data)
        buffer.flush()
    else:
        stream.write(data.decode("utf-8", errors="replace"))
        stream.flush()


def run_capturing(invoke: Callable[[], object], echo: bool = True) -> CapturedOutput:
    """
    Run invoke while capturing everything it writes to standard output.

    Callers are serialized: a second capture waits until the first one has
    restored sys.stdout. There is no timeout; a hung invoke hangs the
    capture.

    Args:
        invoke: Zero-argument callable; it signals failure by raising
        echo: Also write the captured bytes to the restored stream

    Returns:
        CapturedOutput with the bytes and the error raised by invoke, if any.
        Partial output is returned alongside an error.
    """
    with _capture_lock:
        read_fd, write_fd = os.pipe()
        reader = os.fdopen(read_fd, "rb")
        writer = _PipeWriter(write_fd)

        previous = sys.stdout
        try:
            if previous is not None:
                try:
                    previous.flush()
                except (OSError, ValueError):
                    logger.debug("Could not flush standard output before capture")
            sys.stdout = writer.stream
            with ThreadPoolExecutor(max_workers=1, thread_name_prefix="scan-audit-capture") as executor:
                future = executor.submit(_invoke_and_close, invoke, writer)
                try:
                    data = reader.read()
                finally:
                    reader.close()
                error = future.result()
        finally:
            sys.stdout = previous
            writer.close()
            reader.close()

    logger.debug(f"Captured {len(data)} bytes of output")
    # No stream to echo to under pythonw or a closed stdout
    if echo and previous is not None:
        _echo(previous, data)
    return CapturedOutput(data=data, error=error)
