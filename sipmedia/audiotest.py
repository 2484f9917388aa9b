"""Generate and detect sums of sine waves, for checking audio paths."""

from __future__ import annotations

import cmath
import math
from dataclasses import dataclass
from typing import Iterable, Sequence


@dataclass(frozen=True)
class Wave:
    """A sine wave with ``2**ind`` periods per buffer and amplitude ``amp``."""

    ind: int
    amp: int


def _to_int16(value: float) -> int:
    return max(-0x8000, min(0x7FFF, int(value)))


def _round_half_away(x: float) -> int:
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


def gen_signal(length: int, waves: Iterable[Wave]) -> list[int]:
    """Generate ``length`` samples holding the sum of the given waves."""
    waves = list(waves)
    out = []
    for i in range(length):
        pos = i / length
        v = sum(w.amp * math.sin(pos * 2 * math.pi * (1 << w.ind)) for w in waves)
        out.append(_to_int16(v))
    return out


def find_signal(samples: Sequence[int]) -> list[Wave]:
    """Detect waves produced by gen_signal, strongest first."""
    n = len(samples)
    waves = []
    # Only the first half of the spectrum matters; bin 0 is the offset.
    for i in range(1, n // 2):
        acc = sum(v * cmath.exp(-2j * math.pi * i * t / n) for t, v in enumerate(samples))
        amp = 2 * abs(acc) / n
        if amp < 1:
            continue
        waves.append(Wave(ind=int(math.log2(i)), amp=_round_half_away(amp + 0.5)))
    waves.sort(key=lambda w: -w.amp)
    return waves