"""Generation of audio tones such as dial, ringing and busy signals."""

from __future__ import annotations

import asyncio
import contextlib
import math
from dataclasses import dataclass
from typing import Any, AsyncIterator, Sequence

from .media import DEF_FRAME_DUR, DEF_FRAMES_PER_SEC

_NS = 1_000_000_000


def generate(count: int, ts: float, dur: float, amp: int, freqs: Sequence[int]) -> list[int]:
    """Generate ``count`` samples covering ``dur`` seconds starting at ``ts``.

    The result is the average of sine waves at ``freqs`` Hz scaled by ``amp``;
    silence if no frequencies are given.
    """
    if not freqs:
        return [0] * count
    out = []
    for i in range(count):
        phi = ts + dur * i / count
        s = sum(math.sin(phi * hz * 2 * math.pi) for hz in freqs)
        out.append(int(amp * s / len(freqs)))
    return out


@dataclass(frozen=True)
class Tone:
    """A tone of ``freq`` lasting ``dur`` seconds, followed by ``silence`` seconds."""

    freq: tuple[int, ...]
    dur: float = 0.0
    silence: float = 0.0


ETSI_DIAL = (Tone(freq=(425,)),)
ETSI_RINGING = (Tone(freq=(425,), dur=1.0, silence=4.0),)
ETSI_BUSY = (Tone(freq=(425,), dur=0.5, silence=0.5),)


async def _ticks(step: float) -> AsyncIterator[None]:
    loop = asyncio.get_running_loop()
    deadline = loop.time()
    while True:
        deadline += step
        await asyncio.sleep(max(0.0, deadline - loop.time()))
        yield


async def play(audio: Any, volume: int, tones: Sequence[Tone]) -> None:
    """Play the tones to ``audio`` in a loop, one frame per tick, until cancelled."""
    tones = list(tones)
    if not tones:
        raise ValueError("no tones to play")
    frame_ns = round(DEF_FRAME_DUR * _NS)
    frame_size = audio.sample_rate // DEF_FRAMES_PER_SEC

    ts = 0
    freq: tuple[int, ...] = ()
    remaining = 0
    ind = -1  # ind % 2 selects tone or silence, ind // 2 the tone

    def next_tone() -> tuple[Tone, bool]:
        nonlocal ind
        ind = (ind + 1) % (len(tones) * 2)
        return tones[ind // 2], ind % 2 != 0

    async with contextlib.aclosing(_ticks(DEF_FRAME_DUR)) as ticks:
        async for _ in ticks:
            if remaining <= 0:
                t, silence = next_tone()
                if silence and t.silence == 0:
                    t, silence = next_tone()
                if not silence:
                    freq = tuple(t.freq)
                    remaining = round(t.dur * _NS)
                else:
                    freq = ()
                    remaining = round(t.silence * _NS)
            audio.write_sample(generate(frame_size, ts / _NS, frame_ns / _NS, volume, freq))
            remaining -= frame_ns
            ts += frame_ns