"""Codec descriptions and the process-wide codec registry."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Callable, Mapping, Optional


@dataclass(frozen=True)
class CodecInfo:
    """Static properties of a media codec."""

    sdp_name: str
    sample_rate: int
    rtp_clock_rate: int = 0
    rtp_def_type: int = 0
    rtp_is_static: bool = False
    priority: int = 0
    disabled: bool = False
    file_ext: str = ""


class Codec:
    """A codec identified by its description."""

    def __init__(self, info: CodecInfo) -> None:
        self.info = info

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.info.sdp_name!r})"


_disabled: set[str] = set()
_codecs: list[Codec] = []
_on_register: list[Callable[[Codec], None]] = []


def codec_set_enabled(name: str, enabled: bool) -> None:
    """Enable or disable a codec by its SDP name (case-insensitive)."""
    name = name.lower()
    if enabled:
        _disabled.discard(name)
    else:
        _disabled.add(name)


def codecs_set_enabled(codecs: Mapping[str, bool]) -> None:
    """Apply a mapping of codec name to enabled flag."""
    for name, enabled in codecs.items():
        codec_set_enabled(name, enabled)


def codec_enabled(codec: Optional[Codec]) -> bool:
    """Whether the codec is known and not disabled."""
    if codec is None:
        return False
    return codec_enabled_by_name(codec.info.sdp_name)


def codec_enabled_by_name(name: str) -> bool:
    """Whether the codec name has not been disabled."""
    return name.lower() not in _disabled


def on_register(callback: Callable[[Codec], None]) -> None:
    """Call ``callback`` for every registered codec, now and in the future."""
    for codec in list(_codecs):
        callback(codec)
    _on_register.append(callback)


def registered_codecs() -> list[Codec]:
    """A copy of all registered codecs."""
    return list(_codecs)


def enabled_codecs() -> list[Codec]:
    """Registered codecs that are not disabled."""
    return [c for c in _codecs if c.info.sdp_name.lower() not in _disabled]


def register_codec(codec: Codec) -> None:
    """Add a codec to the registry and notify listeners."""
    _codecs.append(codec)
    if codec.info.disabled:
        codec_set_enabled(codec.info.sdp_name, False)
    for callback in list(_on_register):
        callback(codec)


def new_codec(info: CodecInfo) -> Codec:
    """Create a plain codec, defaulting the RTP clock rate to the sample rate."""
    if info.sample_rate <= 0:
        raise ValueError("invalid sample rate")
    if info.rtp_clock_rate == 0:
        info = dataclasses.replace(info, rtp_clock_rate=info.sample_rate)
    return Codec(info)