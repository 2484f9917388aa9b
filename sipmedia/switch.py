"""A writer whose destination can be replaced while audio is flowing."""

from __future__ import annotations

import threading
from typing import Any, Iterable, Optional

from .resample import resample_writer


class SwitchWriter:
    """Forwards samples to a swappable writer, resampling it when needed."""

    def __init__(self, sample_rate: int) -> None:
        if sample_rate <= 0:
            raise ValueError("invalid sample rate")
        self._sample_rate = sample_rate
        self._lock = threading.Lock()
        self._writer: Optional[Any] = None

    def __str__(self) -> str:
        return f"Switch({self._sample_rate}) -> {self.get()}"

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def get(self) -> Optional[Any]:
        """The current underlying writer, or None."""
        with self._lock:
            return self._writer

    def swap(self, writer: Optional[Any]) -> Optional[Any]:
        """Install ``writer`` and return the previous one.

        The caller is responsible for closing the returned writer.
        """
        if writer is not None and writer.sample_rate != self._sample_rate:
            writer = resample_writer(writer, self._sample_rate)
        with self._lock:
            old, self._writer = self._writer, writer
        return old

    def write_sample(self, sample: Iterable[int]) -> None:
        writer = self.get()
        if writer is not None:
            writer.write_sample(sample)

    def close(self) -> None:
        """Detach and close the current writer, if any."""
        with self._lock:
            old, self._writer = self._writer, None
        if old is not None:
            old.close()