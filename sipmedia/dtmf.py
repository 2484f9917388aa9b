"""DTMF digits as RTP telephone events (RFC 2833) and in-band audio tones."""

from __future__ import annotations

import asyncio
import contextlib
import struct
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from . import tones
from .codecs import CodecInfo, new_codec, register_codec
from .media import DEF_FRAME_DUR, DEF_FRAMES_PER_SEC
from .rtp import Packet

SDP_NAME = "telephone-event/8000"
SAMPLE_RATE = 8000

EVENT_VOLUME = 10
TONE_VOLUME = 0x7FFF // 2
EVENT_DUR = 0.25
"""Duration of a DTMF tone in seconds; each tone is followed by a pause as long."""
DELAY_DUR = 0.5
"""Pause in seconds for each 'w' in a digit string."""

register_codec(
    new_codec(
        CodecInfo(
            sdp_name=SDP_NAME,
            sample_rate=SAMPLE_RATE,
            rtp_is_static=False,
            priority=-100,  # last in SDP
        )
    )
)

_NS = 1_000_000_000
_NS_PER_TICK = _NS // SAMPLE_RATE

_EVENT_TO_CHAR = "0123456789*#abcd"
_CHAR_TO_EVENT = {c: i for i, c in enumerate(_EVENT_TO_CHAR)}

_LOW = (697, 770, 852, 941)
_HIGH = (1209, 1336, 1477, 1633)

# Keypad layout: rows are low frequencies, columns are high frequencies.
_KEYPAD = ("123a", "456b", "789c", "*0#d")
_EVENT_FREQ = {
    _CHAR_TO_EVENT[ch]: (_LOW[row], _HIGH[col])
    for row, keys in enumerate(_KEYPAD)
    for col, ch in enumerate(keys)
}


def tone(digit: str) -> tuple[int, tuple[int, ...]]:
    """Event code and tone frequencies for a digit; ``(0, ())`` if unknown."""
    code = _CHAR_TO_EVENT.get(digit)
    if code is None:
        return 0, ()
    return code, _EVENT_FREQ[code]


@dataclass(frozen=True)
class Event:
    """A telephone event; ``volume`` in -dBm0, ``dur`` in timestamp units."""

    code: int = 0
    digit: str = ""
    volume: int = 0
    dur: int = 0
    end: bool = False


def decode(data: bytes) -> Event:
    """Parse an RFC 2833 event payload; raises ValueError if it is too short."""
    if len(data) < 4:
        raise ValueError("dtmf: payload too short")
    code = data[0]
    digit = _EVENT_TO_CHAR[code] if code < len(_EVENT_TO_CHAR) else ""
    (dur,) = struct.unpack_from("!H", data, 2)
    return Event(
        code=code,
        digit=digit,
        volume=data[1] & 0x3F,
        dur=dur,
        end=bool(data[1] >> 7),
    )


def decode_rtp(packet: Packet) -> Optional[Event]:
    """The event in a packet with the marker bit set, else None."""
    if not packet.marker:
        return None
    try:
        return decode(packet.payload)
    except ValueError:
        return None


def encode(event: Event) -> bytes:
    """Serialize an event; a set digit takes precedence over the code."""
    code = _CHAR_TO_EVENT.get(event.digit, 0) if event.digit else event.code
    flags = event.volume & 0x3F
    if event.end:
        flags |= 0x80
    return struct.pack("!BBH", code & 0xFF, flags, event.dur & 0xFFFF)


async def _ticks(step: float) -> AsyncIterator[None]:
    loop = asyncio.get_running_loop()
    deadline = loop.time()
    while True:
        deadline += step
        await asyncio.sleep(max(0.0, deadline - loop.time()))
        yield


async def write(audio: Optional[Any], events: Optional[Any], start_ts: int, digits: str) -> None:
    """Send DTMF digits as audio tones and/or RTP telephone events.

    ``audio`` is a PCM16 writer and ``events`` an RTP stream; either may be
    None. A 'w' in ``digits`` inserts a half-second pause.
    """
    step = round(DEF_FRAME_DUR * _NS)
    event_ns = round(EVENT_DUR * _NS)
    frame_size = audio.sample_rate // DEF_FRAMES_PER_SEC if audio is not None else 0

    ts = 0
    code = 0xFF
    freq: tuple[int, ...] = ()
    next_delay = 0
    total = 0
    remaining = 0
    pending = list(digits)

    def set_delay(dt: int) -> None:
        nonlocal code, freq, remaining, total, next_delay
        code, freq = 0xFF, ()
        remaining = dt
        total = dt
        next_delay = 0
        if events is not None:
            events.delay(dt // _NS_PER_TICK)

    if events is not None:
        events.reset_timestamp(start_ts)

    async with contextlib.aclosing(_ticks(DEF_FRAME_DUR)) as ticks:
        async for _ in ticks:
            if remaining <= 0:
                if next_delay:
                    set_delay(next_delay)
                else:
                    if not pending:
                        return
                    ch = pending.pop(0)
                    if ch == "w":
                        set_delay(round(DELAY_DUR * _NS))
                    else:
                        code, freq = tone(ch)
                        remaining = event_ns
                        next_delay = event_ns
                        total = remaining
            if audio is not None:
                audio.write_sample(
                    tones.generate(frame_size, ts / _NS, step / _NS, TONE_VOLUME, freq)
                )
            if events is not None and freq:
                dur = step + total - remaining
                first = total == remaining
                end = remaining - step <= 0
                payload = encode(
                    Event(code=code, volume=EVENT_VOLUME, dur=dur // _NS_PER_TICK, end=end)
                )
                # All packets for one digit share the same timestamp.
                events.write_payload_at_current(payload, first)
                if end:
                    # The end event is repeated three times.
                    events.write_payload_at_current(payload, first)
                    events.write_payload_at_current(payload, first)
                    events.delay(total // _NS_PER_TICK)
            remaining -= step
            ts += step