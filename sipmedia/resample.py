"""Sample-rate conversion of PCM16 audio using polynomial interpolation."""

from __future__ import annotations

import itertools
import math
import os
from typing import Any, Iterable, Optional, Sequence

from .media import BufferReader, dump_writer_pcm16

QUALITY = 3
"""Interpolation quality used by the resampling helpers."""

_BUF_SIZE = 512
_resample_ids = itertools.count(1)
_DUMP_TO_FILE = os.environ.get("SIPMEDIA_DUMP_RESAMPLE") == "true"

Point = tuple[float, float]


def _to_int16(value: float) -> int:
    v = int(value)
    return max(-0x8000, min(0x7FFF, v))


def _check_ratio(ratio: float) -> None:
    if math.isinf(ratio) or math.isnan(ratio):
        raise ValueError(f"resample: invalid ratio: {ratio}")


def lagrange(points: Sequence[Point], x: float) -> float:
    """Value at ``x`` of the polynomial passing through all ``points``."""
    y = 0.0
    for j, (xj, yj) in enumerate(points):
        weight = 1.0
        for m, (xm, _) in enumerate(points):
            if j == m:
                continue
            weight *= (x - xm) / (xj - xm)
        y += yj * weight
    return y


class BeepResampler:
    """Streams samples from a reader, resampled by a ratio of input/output rate.

    The reader must provide ``read_sample(count)`` returning up to ``count``
    samples (an empty list when nothing is available).
    """

    def __init__(self, quality: int, ratio: float, reader: Any) -> None:
        if quality < 1 or quality > 64:
            raise ValueError(f"resample: invalid quality: {quality}")
        _check_ratio(ratio)
        self._reader = reader
        self._ratio = ratio
        self._first = True
        # buf1 keeps the preceding block, as interpolation may look back into it.
        self._buf1: list[int] = [0] * _BUF_SIZE
        self._buf2: list[int] = [0] * _BUF_SIZE
        self._npts = quality * 2
        self._off = 0  # index in the input stream where buf2 starts
        self._pos = 0  # index in the output stream

    @property
    def ratio(self) -> float:
        """Input sample rate divided by the output one."""
        return self._ratio

    def set_ratio(self, ratio: float) -> None:
        """Change the resampling ratio without a glitch in the stream."""
        _check_ratio(ratio)
        self._pos = int(self._pos * self._ratio / ratio)
        self._ratio = ratio

    def _read_into_buf1(self) -> int:
        data = list(self._reader.read_sample(len(self._buf1)))[: len(self._buf1)]
        self._buf1[: len(data)] = data
        return len(data)

    def _points(self, j: float) -> Optional[list[Point]]:
        half = self._npts // 2
        while True:
            points: list[Point] = []
            restart = False
            base = int(j) - half + 1
            for pi in range(self._npts):
                k = base + pi
                end2 = self._off + len(self._buf2)
                if k < self._off:
                    idx = len(self._buf1) + k - self._off
                    if idx < 0:
                        raise IndexError("resample: history sample out of range")
                    y = self._buf1[idx]
                elif k < end2:
                    y = self._buf2[k - self._off]
                else:
                    sn = self._read_into_buf1()
                    if int(j) >= end2 + sn:
                        return None  # input drained before the position
                    if k >= end2 + sn:
                        y = 0  # input drained; pad the neighbourhood
                    else:
                        self._off += len(self._buf2)
                        self._buf1 = self._buf1[:sn]
                        self._buf1, self._buf2 = self._buf2, self._buf1
                        restart = True
                        break
                points.append((float(k), y / 0x7FFF))
            if not restart:
                return points

    def stream(self, count: int) -> list[int]:
        """Produce up to ``count`` resampled samples; fewer once the input drains."""
        if self._first:
            self._buf2 = list(self._reader.read_sample(len(self._buf2)))[: len(self._buf2)]
            self._first = False
        out: list[int] = []
        while len(out) < count:
            j = self._pos * self._ratio
            points = self._points(j)
            if points is None:
                return out
            out.append(_to_int16(lagrange(points, j) * 0x7FFF))
            self._pos += 1
        return out


def beep_resample(quality: int, old_rate: int, new_rate: int, reader: Any) -> BeepResampler:
    """Resampler converting from ``old_rate`` to ``new_rate``."""
    if new_rate == 0:
        raise ValueError("resample: invalid ratio: +Inf")
    return BeepResampler(quality, old_rate / new_rate, reader)


def _output_size(dst_rate: int, src_rate: int, src_size: int) -> int:
    if dst_rate < src_rate:
        return src_size // (src_rate // dst_rate)
    return src_size * (dst_rate // src_rate)


def resample(samples: Iterable[int], src_rate: int, dst_rate: int) -> list[int]:
    """Resample a whole buffer from ``src_rate`` to ``dst_rate``."""
    src = list(samples)
    if src_rate == dst_rate:
        return src
    r = beep_resample(QUALITY, src_rate, dst_rate, BufferReader(src))
    return r.stream(_output_size(dst_rate, src_rate, len(src)))


class ResampleWriter:
    """Accepts samples at ``sample_rate`` and writes them resampled to ``writer``."""

    def __init__(self, writer: Any, sample_rate: int) -> None:
        self._writer = writer
        self._src_rate = sample_rate
        self._dst_rate = writer.sample_rate
        self._inbuf: list[int] = []
        self._resampler = beep_resample(QUALITY, self._src_rate, self._dst_rate, self)

    def __str__(self) -> str:
        return f"Resample({self._src_rate}->{self._dst_rate}) -> {self._writer}"

    @property
    def sample_rate(self) -> int:
        return self._src_rate

    def read_sample(self, count: int) -> list[int]:
        """Hand buffered input to the resampler."""
        count = max(count, 0)
        chunk = self._inbuf[:count]
        del self._inbuf[:count]
        return chunk

    def write_sample(self, sample: Iterable[int]) -> None:
        data = list(sample)
        self._inbuf.extend(data)
        size = _output_size(self._dst_rate, self._src_rate, len(data))
        self._writer.write_sample(self._resampler.stream(size))

    def close(self) -> None:
        self._writer.close()


def resample_writer(writer: Any, sample_rate: int) -> Any:
    """Wrap ``writer`` so it accepts samples at ``sample_rate``.

    Returns ``writer`` itself when the rates already match.
    """
    if writer.sample_rate == sample_rate:
        return writer
    if _DUMP_TO_FILE:
        prefix = f"sip_resample_{next(_resample_ids)}"
        writer = dump_writer_pcm16(prefix + "_out", writer)
        return dump_writer_pcm16(prefix + "_in", ResampleWriter(writer, sample_rate))
    return ResampleWriter(writer, sample_rate)