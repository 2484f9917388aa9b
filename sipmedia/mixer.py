"""Audio mixer summing several buffered PCM16 inputs into one output."""

from __future__ import annotations

import math
import threading
import time
from typing import Any, Iterable, Optional

from .media import DEF_FRAME_DUR
from .ringbuf import RingBuffer

INPUT_BUFFER_FRAMES = 5
"""Maximum number of frames buffered per input; older frames are dropped."""

INPUT_BUFFER_MIN = INPUT_BUFFER_FRAMES // 2 + 1
"""Frames an input must buffer before it starts (or resumes) playing."""


class MixerInput:
    """One source of audio feeding a Mixer."""

    def __init__(self, mixer: "Mixer", sample_rate: int, size: int) -> None:
        self._mixer = mixer
        self.sample_rate = sample_rate
        self._lock = threading.Lock()
        self.buffer: RingBuffer[int] = RingBuffer(size)
        self.buffering = True  # buffer some data initially

    def __str__(self) -> str:
        return f"MixInput({self.sample_rate}) -> {self._mixer}"

    def _read(self, buf_min: int, count: int) -> list[int]:
        with self._lock:
            if self.buffering:
                if len(self.buffer) < buf_min:
                    return []
                self.buffering = False
            try:
                chunk = self.buffer.read(count)
            except EOFError:
                chunk = []
            if not chunk:
                self.buffering = True  # starving; buffer again before playing
            return chunk

    def write_sample(self, sample: Iterable[int]) -> None:
        with self._lock:
            self.buffer.write(sample)

    def close(self) -> None:
        self._mixer.remove_input(self)


class Mixer:
    """Mixes inputs into frames of ``mix_size`` samples written to ``out``."""

    def __init__(self, out: Any, mix_size: int) -> None:
        self.out = out
        self.sample_rate = out.sample_rate
        self.mix_size = mix_size
        self.ticker_dur = DEF_FRAME_DUR
        self.mix_count = 0
        self._lock = threading.Lock()
        self._inputs: list[MixerInput] = []
        self._last_mix: Optional[float] = None
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __str__(self) -> str:
        return f"Mixer({len(self._inputs)}) -> {self.out}"

    def _mix_inputs(self, mix: list[int]) -> None:
        buf_min = INPUT_BUFFER_MIN * self.mix_size
        with self._lock:
            for inp in self._inputs:
                for j, v in enumerate(inp._read(buf_min, self.mix_size)):
                    # Summing may overflow, but dividing by the source count
                    # would drop the volume whenever somebody joins.
                    mix[j] += v

    def mix_once(self) -> None:
        """Mix one frame from all inputs and write it out."""
        self.mix_count += 1
        mix = [0] * self.mix_size
        self._mix_inputs(mix)
        self.out.write_sample([max(-0x7FFF, min(0x7FFF, v)) for v in mix])

    def mix_update(self) -> None:
        """Mix once, or several times if ticks were missed (up to the buffer size)."""
        n = 1
        if self._last_mix is not None:
            dt = time.monotonic() - self._last_mix
            if dt > 0:
                n = int(dt / self.ticker_dur)
        if n == 0:
            n = 1
        elif n > INPUT_BUFFER_FRAMES:
            n = INPUT_BUFFER_FRAMES
        for _ in range(n):
            self.mix_once()
        self._last_mix = time.monotonic()

    def _run(self) -> None:
        deadline = time.monotonic() + self.ticker_dur
        while not self._stopped.wait(max(0.0, deadline - time.monotonic())):
            self.mix_update()
            deadline += self.ticker_dur
            now = time.monotonic()
            if deadline < now:
                deadline = now + self.ticker_dur

    def start(self) -> None:
        """Start mixing on a background thread every ``ticker_dur`` seconds."""
        self._thread = threading.Thread(target=self._run, name="mixer", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the background mixing."""
        self._stopped.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def new_input(self) -> Optional[MixerInput]:
        """Add an input, or return None if the mixer was stopped."""
        with self._lock:
            if self._stopped.is_set():
                return None
            inp = MixerInput(self, self.sample_rate, self.mix_size * INPUT_BUFFER_FRAMES)
            self._inputs.append(inp)
            return inp

    def remove_input(self, inp: Optional[MixerInput]) -> None:
        if inp is None:
            return
        with self._lock:
            for i, cur in enumerate(self._inputs):
                if cur is inp:
                    del self._inputs[i]
                    break


def new_mixer(out: Any, buffer_dur: float) -> Mixer:
    """Create a mixer producing ``buffer_dur``-second frames and start it."""
    mix_size = math.floor(out.sample_rate * buffer_dur + 1e-9)
    m = Mixer(out, mix_size)
    m.ticker_dur = buffer_dur
    m.start()
    return m