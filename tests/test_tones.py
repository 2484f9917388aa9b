import pytest

from sipmedia.audiotest import find_signal
from sipmedia.tones import Tone, generate, play


class _Stop(Exception):
    pass


class Recorder:
    def __init__(self, sample_rate, limit):
        self.sample_rate = sample_rate
        self.limit = limit
        self.frames = []

    def write_sample(self, sample):
        self.frames.append(list(sample))
        if len(self.frames) >= self.limit:
            raise _Stop()

    def close(self):
        pass


def test_generate_without_frequencies_is_silence():
    assert generate(50, 0.3, 0.02, 1000, []) == [0] * 50


def test_generate_length_and_amplitude_bound():
    out = generate(160, 0.0, 0.02, 1000, [697, 1209])
    assert len(out) == 160
    assert all(abs(v) <= 1000 for v in out)
    assert any(v != 0 for v in out)


def test_generate_starts_at_zero_phase():
    assert generate(10, 0.0, 0.02, 1000, [440])[0] == 0


def test_generate_is_continuous_across_frames():
    whole = generate(160, 0.0, 0.02, 1000, [400])
    halves = generate(80, 0.0, 0.01, 1000, [400]) + generate(80, 0.01, 0.01, 1000, [400])
    assert all(abs(a - b) <= 1 for a, b in zip(whole, halves))


def test_generate_single_frequency_detected():
    # 400 Hz over 20 ms gives 8 periods per buffer.
    waves = find_signal(generate(160, 0.0, 0.02, 100, [400]))
    assert [w.ind for w in waves] == [3]


def test_generate_two_frequencies_detected():
    waves = find_signal(generate(160, 0.0, 0.02, 100, [50, 400]))
    assert sorted(w.ind for w in waves) == [0, 3]


@pytest.mark.asyncio
async def test_play_alternates_tone_and_silence():
    rec = Recorder(8000, 6)
    with pytest.raises(_Stop):
        await play(rec, 1000, [Tone(freq=(400,), dur=0.04, silence=0.04)])
    assert all(len(f) == 160 for f in rec.frames)
    assert any(rec.frames[0]) and any(rec.frames[1])
    assert not any(rec.frames[2]) and not any(rec.frames[3])
    assert any(rec.frames[4]) and any(rec.frames[5])


@pytest.mark.asyncio
async def test_play_continuous_tone_without_silence():
    rec = Recorder(8000, 4)
    with pytest.raises(_Stop):
        await play(rec, 1000, [Tone(freq=(400,))])
    assert all(any(f) for f in rec.frames)
    joined = [v for f in rec.frames[:2] for v in f]
    expected = generate(320, 0.0, 0.04, 1000, [400])
    assert all(abs(a - b) <= 1 for a, b in zip(joined, expected))


@pytest.mark.asyncio
async def test_play_requires_tones():
    with pytest.raises(ValueError):
        await play(Recorder(8000, 1), 1000, [])