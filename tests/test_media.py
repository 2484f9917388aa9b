import asyncio

import pytest

from sipmedia.media import (
    BufferReader,
    BufferWriter,
    FileWriter,
    FrameWriter,
    MediaSample,
    MultiWriter,
    NopCloser,
    SampleWriter,
    dump_writer_pcm16,
    frame_to_bytes,
    pcm16_from_bytes,
    pcm16_to_bytes,
    play_audio,
)


class Recorder:
    def __init__(self, sample_rate=8000, fail=False):
        self.sample_rate = sample_rate
        self.samples = []
        self.closed = False
        self.fail = fail

    def __str__(self):
        return f"Recorder({self.sample_rate})"

    def write_sample(self, sample):
        self.samples.append(sample)
        if self.fail:
            raise RuntimeError("write failed")

    def close(self):
        self.closed = True
        if self.fail:
            raise RuntimeError("close failed")


def test_pcm16_wire_format():
    assert pcm16_to_bytes([1, -1]) == b"\x01\x00\xff\xff"


def test_pcm16_round_trip():
    samples = [0, 1, -1, 32767, -32768, 1234]
    assert pcm16_from_bytes(pcm16_to_bytes(samples)) == samples


def test_pcm16_from_bytes_ignores_odd_byte():
    data = pcm16_to_bytes([5, 6]) + b"\x07"
    assert pcm16_from_bytes(data) == [5, 6]


def test_pcm16_out_of_range():
    with pytest.raises(OverflowError):
        pcm16_to_bytes([40000])


def test_frame_to_bytes():
    assert frame_to_bytes(b"\x01\x02\x03") == b"\x01\x02\x03"
    assert frame_to_bytes([3, 4]) == pcm16_to_bytes([3, 4])


def test_frame_writer_copies():
    frames = []
    w = FrameWriter(frames, 8000)
    sample = [1, 2, 3]
    w.write_sample(sample)
    sample[0] = 99
    assert frames == [[1, 2, 3]]
    assert str(w) == "Frames(8000)"


def test_buffer_writer_appends_until_closed():
    buf = []
    w = BufferWriter(buf, 8000)
    w.write_sample([1, 2])
    w.write_sample([3])
    assert buf == [1, 2, 3]
    w.close()
    w.write_sample([4])
    assert buf == [1, 2, 3]


def test_buffer_writer_requires_buffer():
    with pytest.raises(ValueError):
        BufferWriter(None, 8000)


def test_buffer_reader_chunks():
    r = BufferReader([1, 2, 3, 4, 5])
    assert r.read_sample(2) == [1, 2]
    assert r.read_sample(10) == [3, 4, 5]
    assert r.read_sample(3) == []


def test_multi_writer_writes_all():
    frames = []
    buf = []
    m = MultiWriter([FrameWriter(frames, 8000), BufferWriter(buf, 8000)])
    m.write_sample([7, 8])
    assert frames == [[7, 8]]
    assert buf == [7, 8]
    assert m.sample_rate == 8000
    assert str(m) == "MultiWriter(2,8000); $1-> Frames(8000); $2-> Buffer(8000)"


def test_multi_writer_empty_rate():
    assert MultiWriter([]).sample_rate == 0


def test_multi_writer_reports_error_after_all():
    bad = Recorder(fail=True)
    good = Recorder()
    m = MultiWriter([bad, good])
    with pytest.raises(RuntimeError, match="write failed"):
        m.write_sample([1])
    assert good.samples == [[1]]
    with pytest.raises(RuntimeError, match="close failed"):
        m.close()
    assert good.closed is True


def test_nop_closer_keeps_writer_open():
    rec = Recorder(16000)
    w = NopCloser(rec)
    w.write_sample([1])
    w.close()
    assert rec.samples == [[1]]
    assert rec.closed is False
    assert w.sample_rate == 16000
    assert str(w) == str(rec)


def test_file_writer(tmp_path):
    path = tmp_path / "out.raw"
    w = FileWriter(open(path, "wb"), 8000)
    w.write_sample([1, 2, -3])
    w.write_sample(b"\xaa")
    w.close()
    assert path.read_bytes() == pcm16_to_bytes([1, 2, -3]) + b"\xaa"


def test_dump_writer(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    frames = []
    w = dump_writer_pcm16("x", FrameWriter(frames, 8000))
    w.write_sample([10, 20])
    w.close()
    assert frames == [[10, 20]]
    assert (tmp_path / "x_ar8000.s16le").read_bytes() == pcm16_to_bytes([10, 20])


def test_sample_writer():
    rec = Recorder()
    w = SampleWriter(rec, 48000, 0.02)
    w.write_sample(bytearray(b"\x01\x02"))
    assert rec.samples == [MediaSample(data=b"\x01\x02", duration=0.02)]
    assert w.sample_rate == 48000


@pytest.mark.asyncio
async def test_play_audio_writes_in_order():
    rec = Recorder()
    await play_audio(rec, 0.001, [[1], [2], [3]])
    assert rec.samples == [[1], [2], [3]]


@pytest.mark.asyncio
async def test_play_audio_empty():
    rec = Recorder()
    await play_audio(rec, 10.0, [])
    assert rec.samples == []


@pytest.mark.asyncio
async def test_play_audio_cancel():
    rec = Recorder()
    task = asyncio.ensure_future(play_audio(rec, 10.0, [[1], [2]]))
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert rec.samples == []