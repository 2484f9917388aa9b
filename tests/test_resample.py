import math

import pytest

from sipmedia.audiotest import Wave, find_signal, gen_signal
from sipmedia.media import BufferReader, FrameWriter
from sipmedia.resample import (
    BeepResampler,
    ResampleWriter,
    beep_resample,
    lagrange,
    resample,
    resample_writer,
)


@pytest.mark.parametrize("rate", [16000, 8000])
def test_resample_writer_frame_pacing(rate):
    src_rate = 48000
    frames = [gen_signal(960, [Wave(3, 5000)]) for _ in range(20)]
    out = []
    dst = FrameWriter(out, rate)
    w = resample_writer(dst, src_rate)
    total = 0
    for frame in frames:
        w.write_sample(frame)
        total += len(frame)
    w.close()

    assert sum(len(f) for f in out) == total // (src_rate // rate)
    assert len(out) == len(frames)
    assert all(len(f) == 960 // (src_rate // rate) for f in out)


def test_resample_writer_same_rate_is_identity():
    dst = FrameWriter([], 8000)
    assert resample_writer(dst, 8000) is dst


def test_resample_writer_reports_source_rate():
    dst = FrameWriter([], 8000)
    w = resample_writer(dst, 16000)
    assert isinstance(w, ResampleWriter)
    assert w.sample_rate == 16000
    assert str(w) == "Resample(16000->8000) -> Frames(8000)"


def test_resample_upsample_doubles_length():
    src = [100] * 160
    out = resample(src, 8000, 16000)
    assert len(out) == 320


def test_resample_equal_rates_copies():
    src = [1, 2, 3]
    out = resample(src, 8000, 8000)
    assert out == src
    assert out is not src


def test_resample_constant_signal_stays_constant():
    out = resample([1000] * 480, 16000, 8000)
    assert len(out) == 240
    for v in out[5:-5]:
        assert abs(v - 1000) <= 1


def test_resample_keeps_frequency_and_amplitude():
    src = gen_signal(960, [Wave(2, 1000)])
    out = resample(src, 48000, 8000)
    assert len(out) == 160
    waves = find_signal(out)
    assert waves[0].ind == 2
    assert abs(waves[0].amp - 1000) < 30


def test_lagrange_on_line():
    points = [(0.0, 1.0), (1.0, 3.0), (2.0, 5.0), (3.0, 7.0)]
    assert lagrange(points, 2.5) == pytest.approx(6.0)


def test_lagrange_hits_nodes():
    points = [(0.0, 2.0), (1.0, -1.0), (2.0, 4.0)]
    assert lagrange(points, 1.0) == pytest.approx(-1.0)


def test_identity_ratio_reproduces_input_then_drains():
    src = [0, 1000, -1000, 2000, -2000, 3000, -3000, 4000, -4000, 5000]
    r = BeepResampler(3, 1.0, BufferReader(src))
    out = r.stream(len(src))
    assert len(out) == len(src)
    for got, exp in zip(out, src):
        assert abs(got - exp) <= 1
    assert r.stream(5) == []


def test_invalid_quality():
    with pytest.raises(ValueError):
        BeepResampler(0, 1.0, BufferReader([]))
    with pytest.raises(ValueError):
        BeepResampler(65, 1.0, BufferReader([]))


def test_invalid_ratio():
    with pytest.raises(ValueError):
        BeepResampler(3, math.inf, BufferReader([]))
    r = beep_resample(3, 16000, 8000, BufferReader([]))
    with pytest.raises(ValueError):
        r.set_ratio(math.nan)
    with pytest.raises(ValueError):
        beep_resample(3, 8000, 0, BufferReader([]))


def test_set_ratio_updates_ratio():
    r = beep_resample(3, 16000, 8000, BufferReader([0] * 100))
    assert r.ratio == 2.0
    r.set_ratio(0.5)
    assert r.ratio == 0.5