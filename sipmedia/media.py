"""Audio frames, sample writers and helpers for moving PCM audio around."""

from __future__ import annotations

import asyncio
import sys
import threading
from array import array
from dataclasses import dataclass
from typing import Any, BinaryIO, Callable, Iterable, Optional, Sequence

DEF_FRAME_DUR = 0.020
"""Default duration of an audio frame, in seconds."""

DEF_FRAMES_PER_SEC = 50
"""Default number of audio frames per second."""

PCM16Sample = list[int]
Processor = Callable[[Any], Any]


def pcm16_to_bytes(samples: Iterable[int]) -> bytes:
    """Encode signed 16-bit samples as little-endian bytes."""
    buf = array("h", samples)
    if sys.byteorder == "big":
        buf.byteswap()
    return buf.tobytes()


def pcm16_from_bytes(data: bytes) -> list[int]:
    """Decode little-endian signed 16-bit samples; a trailing odd byte is ignored."""
    buf = array("h")
    buf.frombytes(bytes(data[: len(data) // 2 * 2]))
    if sys.byteorder == "big":
        buf.byteswap()
    return buf.tolist()


def frame_to_bytes(frame: Any) -> bytes:
    """Serialize a frame: encoded frames as-is, PCM16 frames as little-endian."""
    if isinstance(frame, (bytes, bytearray, memoryview)):
        return bytes(frame)
    return pcm16_to_bytes(frame)


@dataclass(frozen=True)
class MediaSample:
    """A chunk of encoded media with its duration in seconds."""

    data: bytes
    duration: float


class NopCloser:
    """Wraps a writer so that closing it leaves the underlying writer open."""

    def __init__(self, writer: Any) -> None:
        self._writer = writer
        self.closed = False

    def __str__(self) -> str:
        return str(self._writer)

    @property
    def sample_rate(self) -> int:
        return self._writer.sample_rate

    def write_sample(self, sample: Any) -> None:
        self._writer.write_sample(sample)

    def close(self) -> None:
        """Mark this wrapper closed; the wrapped writer stays open."""
        self.closed = True


class MultiWriter:
    """Writes every sample to all of its writers."""

    def __init__(self, writers: Iterable[Any]) -> None:
        self.writers = list(writers)

    def __str__(self) -> str:
        parts = [f"MultiWriter({len(self.writers)},{self.sample_rate})"]
        parts.extend(f"; ${i}-> {w}" for i, w in enumerate(self.writers, 1))
        return "".join(parts)

    @property
    def sample_rate(self) -> int:
        return self.writers[0].sample_rate if self.writers else 0

    def _each(self, action: Callable[[Any], None]) -> None:
        last: Optional[BaseException] = None
        for w in self.writers:
            try:
                action(w)
            except Exception as exc:  # keep going; report the last failure
                last = exc
        if last is not None:
            raise last

    def write_sample(self, sample: Any) -> None:
        """Write to every writer; re-raises the last failure after trying all."""
        self._each(lambda w: w.write_sample(sample))

    def close(self) -> None:
        """Close every writer; re-raises the last failure after trying all."""
        self._each(lambda w: w.close())


class FileWriter:
    """Writes raw frame bytes to a binary file."""

    def __init__(self, file: BinaryIO, sample_rate: int) -> None:
        self._file = file
        self.sample_rate = sample_rate

    def __str__(self) -> str:
        return f"RawFile({self.sample_rate})"

    def write_sample(self, sample: Any) -> None:
        self._file.write(frame_to_bytes(sample))

    def close(self) -> None:
        try:
            self._file.flush()
        except Exception:
            self._file.close()
            raise
        self._file.close()


class FrameWriter:
    """Appends a copy of each written frame to a list."""

    def __init__(self, frames: list, sample_rate: int) -> None:
        self.frames = frames
        self.sample_rate = sample_rate
        self.closed = False

    def __str__(self) -> str:
        return f"Frames({self.sample_rate})"

    def write_sample(self, sample: Sequence[int]) -> None:
        self.frames.append(list(sample))

    def close(self) -> None:
        """Mark the writer closed; collected frames are kept."""
        self.closed = True


class BufferWriter:
    """Appends written samples to a single flat list until closed."""

    def __init__(self, buffer: Optional[list], sample_rate: int) -> None:
        if buffer is None:
            raise ValueError("buffer must be set")
        self._lock = threading.Lock()
        self._buffer: Optional[list] = buffer
        self.sample_rate = sample_rate

    def __str__(self) -> str:
        return f"Buffer({self.sample_rate})"

    def write_sample(self, sample: Iterable[int]) -> None:
        with self._lock:
            if self._buffer is not None:
                self._buffer.extend(sample)

    def close(self) -> None:
        with self._lock:
            self._buffer = None


class BufferReader:
    """Reads samples out of an in-memory buffer."""

    def __init__(self, samples: Iterable[int]) -> None:
        self._samples = list(samples)
        self._pos = 0

    def read_sample(self, count: int) -> list[int]:
        """Return up to ``count`` samples; an empty list once drained."""
        count = max(count, 0)
        chunk = self._samples[self._pos : self._pos + count]
        self._pos += len(chunk)
        return chunk


class SampleWriter:
    """Forwards encoded frames as MediaSample objects with a fixed duration."""

    def __init__(self, writer: Any, sample_rate: int, sample_dur: float) -> None:
        self._writer = writer
        self.sample_rate = sample_rate
        self.sample_dur = sample_dur
        self.closed = False

    def __str__(self) -> str:
        return f"LKSamples({self.sample_rate})"

    def write_sample(self, sample: bytes) -> None:
        self._writer.write_sample(MediaSample(data=bytes(sample), duration=self.sample_dur))

    def close(self) -> None:
        """Mark the writer closed; the target writer is left untouched."""
        self.closed = True


async def play_audio(writer: Any, sample_dur: float, frames: Iterable[Any]) -> None:
    """Write frames to ``writer`` one per ``sample_dur`` seconds.

    Frames are expected to already be at the writer's sample rate.
    Cancel the task to stop early.
    """
    pending = list(frames)
    if not pending:
        return
    loop = asyncio.get_running_loop()
    deadline = loop.time()
    for frame in pending:
        deadline += sample_dur
        await asyncio.sleep(max(0.0, deadline - loop.time()))
        writer.write_sample(frame)


def dump_writer(ext: str, name: str, writer: Any) -> MultiWriter:
    """Tee ``writer`` into a raw file named ``<name>_ar<rate>.<ext>``."""
    rate = writer.sample_rate
    f = open(f"{name}_ar{rate}.{ext}", "wb")
    return MultiWriter([writer, FileWriter(f, rate)])


def dump_writer_pcm16(name: str, writer: Any) -> MultiWriter:
    """Tee a PCM16 writer into a raw ``s16le`` file."""
    return dump_writer("s16le", name, writer)