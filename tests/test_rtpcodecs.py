import pytest

from sipmedia.codecs import CodecInfo, register_codec
from sipmedia.rtp import Packet, PacketBuffer, SeqWriter
from sipmedia.rtpcodecs import AudioCodec, codec_by_payload_type


class Collect:
    sample_rate = 8000

    def __init__(self):
        self.samples = []
        self.closed = False

    def __str__(self):
        return "Collect"

    def write_sample(self, sample):
        self.samples.append(sample)

    def close(self):
        self.closed = True


class Upper:
    """Toy frame transform: passes bytes through upper-cased."""

    def __init__(self, writer):
        self.writer = writer
        self.sample_rate = writer.sample_rate

    def write_sample(self, sample):
        self.writer.write_sample(bytes(sample).upper())

    def close(self):
        self.writer.close()


def make_codec(**kw):
    info = CodecInfo(sdp_name="x-test/8000", sample_rate=8000, **kw)
    return AudioCodec(info, Upper, Upper)


def test_invalid_sample_rate():
    with pytest.raises(ValueError):
        AudioCodec(CodecInfo(sdp_name="bad", sample_rate=0), Upper, Upper)


def test_clock_rate_defaults_to_sample_rate():
    assert make_codec().info.rtp_clock_rate == 8000
    assert make_codec(rtp_clock_rate=4000).info.rtp_clock_rate == 4000


def test_registered_static_codec_is_found_by_type():
    codec = make_codec(rtp_def_type=127, rtp_is_static=True, disabled=True)
    register_codec(codec)
    assert codec_by_payload_type(127) is codec


def test_dynamic_codec_not_indexed():
    codec = make_codec(rtp_def_type=126, rtp_is_static=False, disabled=True)
    register_codec(codec)
    assert codec_by_payload_type(126) is None


def test_encode_rtp_sends_packets():
    buf = PacketBuffer()
    stream = SeqWriter(buf).new_stream_with_dur(96, 160)
    w = make_codec().encode_rtp(stream)
    w.write_sample(b"ab")
    w.write_sample(b"cd")
    assert [p.payload for p in buf] == [b"AB", b"CD"]
    assert [p.payload_type for p in buf] == [96, 96]


def test_decode_rtp_forwards_and_does_not_close():
    dst = Collect()
    h = make_codec().decode_rtp(dst, 96)
    h.handle_rtp(Packet(payload=b"hi"))
    h.writer.close()
    assert dst.samples == [b"HI"]
    assert dst.closed is False


def test_decode_and_encode_direct():
    dst = Collect()
    codec = make_codec()
    codec.decode(dst).write_sample(b"q")
    codec.encode(dst).write_sample(b"r")
    assert dst.samples == [b"Q", b"R"]