"""Synchronous in-memory pipe connecting a sample writer to a sample reader."""

from __future__ import annotations

import threading
from typing import Any, Optional, Sequence


class ClosedPipeError(Exception):
    """Raised on a read or write to a closed pipe."""

    def __init__(self, message: str = "read/write on closed pipe") -> None:
        super().__init__(message)


class _Pipe:
    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._write_lock = threading.Lock()
        self._offer: Optional[list] = None
        self._taken: Optional[int] = None
        self._done = False
        self._rerr: Optional[BaseException] = None
        self._werr: Optional[BaseException] = None

    def read(self, count: int) -> list:
        with self._cond:
            while not self._done and self._offer is None:
                self._cond.wait()
            if self._done:
                raise self._read_close_error()
            chunk = self._offer[: max(count, 0)]
            self._offer = None
            self._taken = len(chunk)
            self._cond.notify_all()
            return chunk

    def write(self, data: Sequence[Any]) -> int:
        with self._cond:
            if self._done:
                raise self._write_close_error()
        with self._write_lock:
            remaining = list(data)
            written = 0
            first = True
            while first or remaining:
                first = False
                with self._cond:
                    self._offer = remaining
                    self._taken = None
                    self._cond.notify_all()
                    while self._taken is None and not self._done:
                        self._cond.wait()
                    if self._taken is None:
                        self._offer = None
                        raise self._write_close_error()
                    n, self._taken = self._taken, None
                remaining = remaining[n:]
                written += n
            return written

    def close_read(self, error: Optional[BaseException]) -> None:
        with self._cond:
            if self._rerr is None:
                self._rerr = error if error is not None else ClosedPipeError()
            self._done = True
            self._cond.notify_all()

    def close_write(self, error: Optional[BaseException]) -> None:
        with self._cond:
            if self._werr is None:
                self._werr = error if error is not None else EOFError()
            self._done = True
            self._cond.notify_all()

    def _read_close_error(self) -> BaseException:
        if self._rerr is None and self._werr is not None:
            return self._werr
        return ClosedPipeError()

    def _write_close_error(self) -> BaseException:
        if self._werr is None and self._rerr is not None:
            return self._rerr
        return ClosedPipeError()


class PipeReader:
    """The read half of a pipe."""

    def __init__(self, state: _Pipe) -> None:
        self._pipe = state

    def read_sample(self, count: int) -> list:
        """Block until a writer offers data and return up to ``count`` items."""
        return self._pipe.read(count)

    def close(self) -> None:
        """Close the reader; later writes raise ClosedPipeError."""
        self.close_with_error(None)

    def close_with_error(self, error: Optional[BaseException]) -> None:
        """Close the reader; later writes raise ``error``. The first error wins."""
        self._pipe.close_read(error)


class PipeWriter:
    """The write half of a pipe."""

    def __init__(self, state: _Pipe, sample_rate: int) -> None:
        self._pipe = state
        self.sample_rate = sample_rate

    def __str__(self) -> str:
        return "PipeWriter"

    def write_sample(self, sample: Sequence[Any]) -> None:
        """Block until readers have consumed the whole sample."""
        self._pipe.write(sample)

    def close(self) -> None:
        """Close the writer; later reads raise EOFError."""
        self.close_with_error(None)

    def close_with_error(self, error: Optional[BaseException]) -> None:
        """Close the writer; later reads raise ``error`` (EOFError if None)."""
        self._pipe.close_write(error)


def pipe(sample_rate: int) -> tuple[PipeReader, PipeWriter]:
    """Create a connected reader and writer."""
    state = _Pipe()
    return PipeReader(state), PipeWriter(state, sample_rate)