"""G.711 A-law and µ-law companding codecs."""

from __future__ import annotations

from typing import Any, Callable, Iterable

from .codecs import CodecInfo, register_codec
from .resample import resample_writer
from .rtpcodecs import AudioCodec

ALAW_SDP_NAME = "PCMA/8000"
ULAW_SDP_NAME = "PCMU/8000"
SAMPLE_RATE = 8000

_SIGN_BIT = 0x80
_QUANT_MASK = 0x0F
_SEG_SHIFT = 4
_SEG_MASK = 0x70
_BIAS = 0x84


def _alaw2linear(v: int) -> int:
    v ^= 0x55
    t = v & _QUANT_MASK
    seg = (v & _SEG_MASK) >> _SEG_SHIFT
    if seg:
        t = (t + t + 1 + 32) << (seg + 2)
    else:
        t = (t + t + 1) << 3
    return t if v & _SIGN_BIT else -t


def _ulaw2linear(v: int) -> int:
    v = ~v & 0xFF
    t = ((v & _QUANT_MASK) << 3) + _BIAS
    t <<= (v & _SEG_MASK) >> _SEG_SHIFT
    return _BIAS - t if v & _SIGN_BIT else t - _BIAS


def _build_law_table(log2lin: Callable[[int], int], mask: int) -> bytes:
    table = bytearray(16384)
    table[8192] = mask
    j = 1
    for i in range(127):
        v1 = log2lin(i ^ mask)
        v2 = log2lin((i + 1) ^ mask)
        v = (v1 + v2 + 4) >> 3
        while j < v:
            table[8192 - j] = i ^ (mask ^ 0x80)
            table[8192 + j] = i ^ mask
            j += 1
    while j < 8192:
        table[8192 - j] = 127 ^ (mask ^ 0x80)
        table[8192 + j] = 127 ^ mask
        j += 1
    table[0] = table[1]
    return bytes(table)


_ALAW_TO_LIN = tuple(_alaw2linear(b) for b in range(256))
_ULAW_TO_LIN = tuple(_ulaw2linear(b) for b in range(256))
_LIN_TO_ALAW = _build_law_table(_alaw2linear, 0xD5)
_LIN_TO_ULAW = _build_law_table(_ulaw2linear, 0xFF)


def _index(v: int) -> int:
    return (max(-0x8000, min(0x7FFF, v)) + 32768) >> 2


def encode_alaw(samples: Iterable[int]) -> bytes:
    """Compress PCM16 samples to A-law bytes; out-of-range values are clamped."""
    return bytes(_LIN_TO_ALAW[_index(v)] for v in samples)


def decode_alaw(data: bytes) -> list[int]:
    """Expand A-law bytes to PCM16 samples."""
    return [_ALAW_TO_LIN[b] for b in bytes(data)]


def encode_ulaw(samples: Iterable[int]) -> bytes:
    """Compress PCM16 samples to µ-law bytes; out-of-range values are clamped."""
    return bytes(_LIN_TO_ULAW[_index(v)] for v in samples)


def decode_ulaw(data: bytes) -> list[int]:
    """Expand µ-law bytes to PCM16 samples."""
    return [_ULAW_TO_LIN[b] for b in bytes(data)]


class _LawDecoder:
    _name = ""
    _decode: Callable[[bytes], list[int]]

    def __init__(self, writer: Any) -> None:
        if writer.sample_rate != SAMPLE_RATE:
            writer = resample_writer(writer, SAMPLE_RATE)
        self._writer = writer

    def __str__(self) -> str:
        return f"{self._name}(decode) -> {self._writer}"

    @property
    def sample_rate(self) -> int:
        return self._writer.sample_rate

    def write_sample(self, sample: bytes) -> None:
        self._writer.write_sample(type(self)._decode(sample))

    def close(self) -> None:
        self._writer.close()


class _LawEncoder:
    _name = ""
    _encode: Callable[[Iterable[int]], bytes]

    def __init__(self, writer: Any) -> None:
        if writer.sample_rate != SAMPLE_RATE:
            raise ValueError("unsupported sample rate")
        self._writer = writer

    def __str__(self) -> str:
        return f"{self._name}(encode) -> {self._writer}"

    @property
    def sample_rate(self) -> int:
        return self._writer.sample_rate

    def write_sample(self, sample: Iterable[int]) -> None:
        self._writer.write_sample(type(self)._encode(sample))

    def close(self) -> None:
        self._writer.close()


class ALawDecoder(_LawDecoder):
    """Writer of A-law frames that decodes them into a PCM16 writer."""

    _name = "PCMA"
    _decode = staticmethod(decode_alaw)

    def __init__(self, writer: Any) -> None:
        super().__init__(writer)

    def write_sample(self, sample: bytes) -> None:
        super().write_sample(sample)

    def close(self) -> None:
        super().close()


class ALawEncoder(_LawEncoder):
    """Writer of PCM16 samples that encodes them into an A-law writer."""

    _name = "PCMA"
    _encode = staticmethod(encode_alaw)

    def __init__(self, writer: Any) -> None:
        super().__init__(writer)

    def write_sample(self, sample: Iterable[int]) -> None:
        super().write_sample(sample)

    def close(self) -> None:
        super().close()


class ULawDecoder(_LawDecoder):
    """Writer of µ-law frames that decodes them into a PCM16 writer."""

    _name = "PCMU"
    _decode = staticmethod(decode_ulaw)

    def __init__(self, writer: Any) -> None:
        super().__init__(writer)

    def write_sample(self, sample: bytes) -> None:
        super().write_sample(sample)

    def close(self) -> None:
        super().close()


class ULawEncoder(_LawEncoder):
    """Writer of PCM16 samples that encodes them into a µ-law writer."""

    _name = "PCMU"
    _encode = staticmethod(encode_ulaw)

    def __init__(self, writer: Any) -> None:
        super().__init__(writer)

    def write_sample(self, sample: Iterable[int]) -> None:
        super().write_sample(sample)

    def close(self) -> None:
        super().close()


register_codec(
    AudioCodec(
        CodecInfo(
            sdp_name=ALAW_SDP_NAME,
            sample_rate=SAMPLE_RATE,
            rtp_def_type=8,
            rtp_is_static=True,
            priority=-20,
            file_ext="g711a",
        ),
        ALawDecoder,
        ALawEncoder,
    )
)

register_codec(
    AudioCodec(
        CodecInfo(
            sdp_name=ULAW_SDP_NAME,
            sample_rate=SAMPLE_RATE,
            rtp_def_type=0,
            rtp_is_static=True,
            priority=-10,
            file_ext="g711u",
        ),
        ULawDecoder,
        ULawEncoder,
    )
)