"""RTP packets, sequence-numbered writers and timestamped media streams."""

from __future__ import annotations

import dataclasses
import random
import struct
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from .media import DEF_FRAME_DUR, DEF_FRAMES_PER_SEC

DEF_CLOCK_RATE = 8000
"""Default clock rate at which RTP timestamps increment."""

__all_constants__ = (DEF_CLOCK_RATE, DEF_FRAME_DUR, DEF_FRAMES_PER_SEC)

_HEADER = struct.Struct("!BBHII")
_U16 = 0xFFFF
_U32 = 0xFFFFFFFF


@dataclass
class Packet:
    """An RTP packet (RFC 3550)."""

    payload_type: int = 0
    sequence_number: int = 0
    timestamp: int = 0
    ssrc: int = 0
    marker: bool = False
    payload: bytes = b""
    csrc: list[int] = field(default_factory=list)
    extension_profile: int = 0
    extension: Optional[bytes] = None
    padding: int = 0
    version: int = 2

    def marshal(self) -> bytes:
        """Serialize the packet to wire format."""
        if not 0 <= self.payload_type <= 0x7F:
            raise ValueError(f"invalid payload type: {self.payload_type}")
        if len(self.csrc) > 15:
            raise ValueError("too many CSRC identifiers")
        if not 0 <= self.padding <= 0xFF:
            raise ValueError(f"invalid padding size: {self.padding}")
        b0 = (self.version & 0x3) << 6 | len(self.csrc)
        if self.padding:
            b0 |= 0x20
        if self.extension is not None:
            b0 |= 0x10
        b1 = self.payload_type | (0x80 if self.marker else 0)
        out = bytearray(
            _HEADER.pack(
                b0,
                b1,
                self.sequence_number & _U16,
                self.timestamp & _U32,
                self.ssrc & _U32,
            )
        )
        for c in self.csrc:
            out += struct.pack("!I", c & _U32)
        if self.extension is not None:
            ext = bytes(self.extension)
            words = -(-len(ext) // 4)
            out += struct.pack("!HH", self.extension_profile & _U16, words)
            out += ext.ljust(words * 4, b"\x00")
        out += bytes(self.payload)
        if self.padding:
            out += bytes(self.padding - 1) + bytes([self.padding])
        return bytes(out)

    def clone(self) -> "Packet":
        """A deep copy of the packet."""
        return dataclasses.replace(self, csrc=list(self.csrc))


def parse_packet(data: bytes) -> Packet:
    """Parse an RTP packet from wire format; raises ValueError if malformed."""
    data = bytes(data)
    if len(data) < _HEADER.size:
        raise ValueError("rtp: packet too short")
    b0, b1, seq, ts, ssrc = _HEADER.unpack_from(data)
    pos = _HEADER.size
    cc = b0 & 0x0F
    end_csrc = pos + cc * 4
    if len(data) < end_csrc:
        raise ValueError("rtp: truncated CSRC list")
    csrc = list(struct.unpack_from(f"!{cc}I", data, pos))
    pos = end_csrc
    extension: Optional[bytes] = None
    profile = 0
    if b0 & 0x10:
        if len(data) < pos + 4:
            raise ValueError("rtp: truncated extension header")
        profile, words = struct.unpack_from("!HH", data, pos)
        pos += 4
        if len(data) < pos + words * 4:
            raise ValueError("rtp: truncated extension")
        extension = data[pos : pos + words * 4]
        pos += words * 4
    end = len(data)
    padding = 0
    if b0 & 0x20:
        if end <= pos:
            raise ValueError("rtp: missing padding")
        padding = data[-1]
        if padding == 0 or end - padding < pos:
            raise ValueError("rtp: invalid padding")
        end -= padding
    return Packet(
        version=b0 >> 6,
        payload_type=b1 & 0x7F,
        marker=bool(b1 & 0x80),
        sequence_number=seq,
        timestamp=ts,
        ssrc=ssrc,
        csrc=csrc,
        extension_profile=profile,
        extension=extension,
        padding=padding,
        payload=data[pos:end],
    )


class PacketBuffer(list):
    """An RTP writer that appends a copy of every packet to itself."""

    def write_rtp(self, packet: Packet) -> None:
        self.append(packet.clone())


def handle_loop(reader: Any, handler: Any) -> None:
    """Feed packets from ``reader.read_rtp()`` to ``handler.handle_rtp``.

    Runs until the reader or the handler raises; the exception propagates.
    """
    while True:
        handler.handle_rtp(reader.read_rtp())


@dataclass
class Event:
    """A payload to send at a given RTP timestamp."""

    type: int = 0
    timestamp: int = 0
    payload: bytes = b""
    marker: bool = False


class SeqWriter:
    """Writes RTP packets with an automatically incremented sequence number."""

    def __init__(self, writer: Any) -> None:
        self._writer = writer
        self._lock = threading.Lock()
        self.ssrc = random.getrandbits(32)
        self._seq = 0

    def write_event(self, event: Event) -> None:
        """Send one packet; the sequence number advances only on success."""
        with self._lock:
            packet = Packet(
                payload_type=event.type,
                sequence_number=self._seq,
                timestamp=event.timestamp,
                ssrc=self.ssrc,
                marker=event.marker,
                payload=bytes(event.payload),
            )
            self._writer.write_rtp(packet)
            self._seq = (self._seq + 1) & _U16

    def new_stream(self, payload_type: int, clock_rate: int) -> "Stream":
        """A media stream whose packets each span one default frame."""
        return self.new_stream_with_dur(payload_type, clock_rate // DEF_FRAMES_PER_SEC)

    def new_stream_with_dur(self, payload_type: int, packet_dur: int) -> "Stream":
        """A media stream advancing its timestamp by ``packet_dur`` per packet."""
        return Stream(self, payload_type, packet_dur)


class Stream:
    """A media stream in RTP that tracks its timestamps."""

    def __init__(self, writer: SeqWriter, payload_type: int, packet_dur: int) -> None:
        self._writer = writer
        self.packet_dur = packet_dur
        self._lock = threading.Lock()
        self._event = Event(type=payload_type)

    @property
    def payload_type(self) -> int:
        return self._event.type

    def _write(self, advance: bool, data: bytes, marker: bool) -> None:
        with self._lock:
            self._event.payload = bytes(data)
            self._event.marker = marker
            self._writer.write_event(self._event)
            if advance:
                self._event.timestamp = (self._event.timestamp + self.packet_dur) & _U32

    def write_payload(self, data: bytes, marker: bool) -> None:
        """Send the payload and advance the timestamp."""
        self._write(True, data, marker)

    def write_payload_at_current(self, data: bytes, marker: bool) -> None:
        """Send the payload at the current timestamp."""
        self._write(False, data, marker)

    def delay(self, dur: int) -> None:
        """Advance the timestamp by ``dur`` clock units."""
        with self._lock:
            self._event.timestamp = (self._event.timestamp + dur) & _U32

    def reset_timestamp(self, ts: int) -> None:
        with self._lock:
            self._event.timestamp = ts & _U32

    def current_timestamp(self) -> int:
        with self._lock:
            return self._event.timestamp


class MediaStreamOut:
    """A frame writer that sends each encoded frame as one RTP packet."""

    def __init__(self, stream: Stream, sample_rate: int) -> None:
        self._stream = stream
        self.sample_rate = sample_rate
        self.closed = False

    def __str__(self) -> str:
        return f"RTP({self.sample_rate})"

    def write_sample(self, sample: bytes) -> None:
        self._stream.write_payload(bytes(sample), False)

    def close(self) -> None:
        """Mark the writer closed; the shared RTP stream stays usable."""
        self.closed = True


class MediaStreamIn:
    """An RTP handler that forwards packet payloads to a frame writer."""

    def __init__(self, writer: Any) -> None:
        self.writer = writer

    def __str__(self) -> str:
        return f"RTP({self.writer.sample_rate}) -> {self.writer}"

    def handle_rtp(self, packet: Packet) -> None:
        self.writer.write_sample(bytes(packet.payload))