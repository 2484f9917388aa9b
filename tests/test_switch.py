import pytest

from sipmedia.media import FrameWriter
from sipmedia.switch import SwitchWriter


class RecordingWriter:
    def __init__(self, sample_rate):
        self.sample_rate = sample_rate
        self.samples = []
        self.closed = False

    def write_sample(self, sample):
        self.samples.append(list(sample))

    def close(self):
        self.closed = True


def test_invalid_sample_rate():
    with pytest.raises(ValueError):
        SwitchWriter(0)


def test_write_without_writer_is_dropped():
    s = SwitchWriter(8000)
    s.write_sample([1, 2, 3])
    assert s.get() is None
    assert str(s) == "Switch(8000) -> None"


def test_swap_returns_previous_writer():
    s = SwitchWriter(8000)
    a = RecordingWriter(8000)
    b = RecordingWriter(8000)
    assert s.swap(a) is None
    s.write_sample([1, 2])
    assert s.swap(b) is a
    s.write_sample([3, 4])
    assert a.samples == [[1, 2]]
    assert b.samples == [[3, 4]]
    assert s.swap(None) is b
    assert s.get() is None


def test_swap_resamples_mismatched_writer():
    s = SwitchWriter(16000)
    frames = []
    s.swap(FrameWriter(frames, 8000))
    assert s.get().sample_rate == 16000
    s.write_sample([0] * 320)
    assert len(frames) == 1
    assert len(frames[0]) == 320 // 2


def test_close_closes_current_writer():
    s = SwitchWriter(8000)
    w = RecordingWriter(8000)
    s.swap(w)
    s.close()
    assert w.closed
    assert s.get() is None
    s.close()
    assert s.sample_rate == 8000