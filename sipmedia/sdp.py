"""SDP session descriptions and audio offer/answer negotiation."""

from __future__ import annotations

import ipaddress
import random
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .codecs import Codec, codec_enabled, enabled_codecs, on_register
from .dtmf import SDP_NAME as DTMF_SDP_NAME
from .rtpcodecs import AudioCodec, codec_by_payload_type

_DYNAMIC_TYPE = 101
_U64 = (1 << 64) - 1

AddrPort = tuple[str, int]

_codec_by_name: dict[str, Codec] = {}


def _index_codec(codec: Codec) -> None:
    name = codec.info.sdp_name
    if not name:
        return
    name = name.lower()
    _codec_by_name[name] = codec
    if name.count("/") == 1:
        _codec_by_name[name + "/1"] = codec


on_register(_index_codec)


def codec_by_name(name: str) -> Optional[Codec]:
    """The enabled codec with this SDP name (case-insensitive), if any."""
    codec = _codec_by_name.get(name.lower())
    if not codec_enabled(codec):
        return None
    return codec


@dataclass
class Attribute:
    """An ``a=`` line; an empty value marks a flag attribute."""

    key: str
    value: str = ""

    def marshal(self) -> str:
        return f"a={self.key}:{self.value}" if self.value else f"a={self.key}"


@dataclass
class MediaDescription:
    """An ``m=`` section with its attributes."""

    media: str = "audio"
    port: int = 0
    protos: list[str] = field(default_factory=lambda: ["RTP", "AVP"])
    formats: list[str] = field(default_factory=list)
    attributes: list[Attribute] = field(default_factory=list)

    def marshal(self) -> str:
        head = f"m={self.media} {self.port} {'/'.join(self.protos)}"
        if self.formats:
            head += " " + " ".join(self.formats)
        return "\r\n".join([head, *(a.marshal() for a in self.attributes)]) + "\r\n"


@dataclass
class SessionDescription:
    """An SDP session; an empty connection address means no ``c=`` line."""

    version: int = 0
    origin_username: str = "-"
    session_id: int = 0
    session_version: int = 0
    origin_network_type: str = "IN"
    origin_address_type: str = "IP4"
    origin_address: str = ""
    session_name: str = ""
    connection_network_type: str = ""
    connection_address_type: str = ""
    connection_address: str = ""
    start_time: int = 0
    stop_time: int = 0
    attributes: list[Attribute] = field(default_factory=list)
    media: list[MediaDescription] = field(default_factory=list)

    def marshal(self) -> bytes:
        """Serialize the session to SDP text."""
        lines = [
            f"v={self.version}",
            f"o={self.origin_username} {self.session_id} {self.session_version} "
            f"{self.origin_network_type} {self.origin_address_type} {self.origin_address}",
            f"s={self.session_name}",
        ]
        if self.connection_address:
            lines.append(
                f"c={self.connection_network_type} {self.connection_address_type} "
                f"{self.connection_address}"
            )
        lines.append(f"t={self.start_time} {self.stop_time}")
        lines.extend(a.marshal() for a in self.attributes)
        text = "\r\n".join(lines) + "\r\n"
        text += "".join(m.marshal() for m in self.media)
        return text.encode()


def _parse_attribute(value: str) -> Attribute:
    key, sep, rest = value.partition(":")
    return Attribute(key, rest if sep else "")


def _parse_media_line(value: str) -> MediaDescription:
    parts = value.split()
    if len(parts) < 3:
        raise ValueError(f"sdp: invalid media line: {value!r}")
    port = int(parts[1].split("/", 1)[0])
    return MediaDescription(
        media=parts[0], port=port, protos=parts[2].split("/"), formats=parts[3:]
    )


def parse_session(data: Union[bytes, str]) -> SessionDescription:
    """Parse SDP text; raises ValueError if it is malformed."""
    text = data.decode() if isinstance(data, (bytes, bytearray)) else data
    session = SessionDescription()
    seen_version = False
    media: Optional[MediaDescription] = None
    for raw in text.split("\n"):
        line = raw.rstrip("\r")
        if not line:
            continue
        if len(line) < 2 or line[1] != "=":
            raise ValueError(f"sdp: invalid line: {line!r}")
        key, value = line[0], line[2:]
        if not seen_version:
            if key != "v":
                raise ValueError("sdp: description must start with a version")
            session.version = int(value)
            seen_version = True
        elif key == "m":
            media = _parse_media_line(value)
            session.media.append(media)
        elif key == "a":
            target = media.attributes if media is not None else session.attributes
            target.append(_parse_attribute(value))
        elif media is not None:
            continue  # other media-level lines are not used
        elif key == "o":
            parts = value.split()
            if len(parts) != 6:
                raise ValueError(f"sdp: invalid origin: {value!r}")
            session.origin_username = parts[0]
            session.session_id = int(parts[1])
            session.session_version = int(parts[2])
            session.origin_network_type, session.origin_address_type = parts[3], parts[4]
            session.origin_address = parts[5]
        elif key == "s":
            session.session_name = value
        elif key == "c":
            parts = value.split()
            if len(parts) != 3:
                raise ValueError(f"sdp: invalid connection: {value!r}")
            session.connection_network_type, session.connection_address_type = parts[0], parts[1]
            session.connection_address = parts[2].split("/", 1)[0]
        elif key == "t":
            parts = value.split()
            if len(parts) != 2:
                raise ValueError(f"sdp: invalid timing: {value!r}")
            session.start_time, session.stop_time = int(parts[0]), int(parts[1])
    if not seen_version:
        raise ValueError("sdp: empty description")
    return session


def get_audio(session: SessionDescription) -> Optional[MediaDescription]:
    """The first audio section of the session, if any."""
    return next((m for m in session.media if m.media == "audio"), None)


def get_audio_dest(
    session: Optional[SessionDescription], audio: Optional[MediaDescription]
) -> Optional[AddrPort]:
    """The session's connection address paired with the audio port."""
    if audio is None or session is None:
        return None
    if not session.connection_address or session.connection_network_type != "IN":
        return None
    try:
        ip = ipaddress.ip_address(session.connection_address)
    except ValueError:
        return None
    return str(ip), audio.port & 0xFFFF


@dataclass
class PayloadCodec:
    """A codec bound to an RTP payload type; ``codec`` is None if unsupported."""

    type: int
    codec: Optional[Codec]


@dataclass
class MediaDesc:
    """Codecs on offer; ``dtmf_type`` is 0 when DTMF is not available."""

    codecs: list[PayloadCodec] = field(default_factory=list)
    dtmf_type: int = 0


@dataclass
class AudioConfig:
    codec: AudioCodec
    type: int
    dtmf_type: int = 0


@dataclass
class MediaConfig:
    local: Optional[AddrPort]
    remote: Optional[AddrPort]
    audio: AudioConfig


def _addr(ip: Any, port: int) -> AddrPort:
    return str(ipaddress.ip_address(str(ip))), port & 0xFFFF


def offer_codecs() -> list[PayloadCodec]:
    """Enabled codecs in offer order, with dynamic types assigned from 101."""
    codecs = sorted(
        enabled_codecs(), key=lambda c: (not c.info.rtp_is_static, -c.info.priority)
    )
    out = []
    next_type = _DYNAMIC_TYPE
    for c in codecs:
        if c.info.rtp_is_static:
            out.append(PayloadCodec(c.info.rtp_def_type, c))
        else:
            out.append(PayloadCodec(next_type, c))
            next_type += 1
    return out


def _media_tail() -> list[Attribute]:
    return [Attribute("ptime", "20"), Attribute("sendrecv")]


def offer_media(rtp_port: int) -> tuple[MediaDesc, MediaDescription]:
    """The offered codecs and the audio section advertising them."""
    codecs = offer_codecs()
    attrs = []
    formats = []
    dtmf_type = 0
    for pc in codecs:
        name = pc.codec.info.sdp_name
        if name == DTMF_SDP_NAME:
            dtmf_type = pc.type
        formats.append(str(pc.type))
        attrs.append(Attribute("rtpmap", f"{pc.type} {name}"))
    if dtmf_type > 0:
        attrs.append(Attribute("fmtp", f"{dtmf_type} 0-16"))
    attrs.extend(_media_tail())
    return (
        MediaDesc(codecs=codecs, dtmf_type=dtmf_type),
        MediaDescription(port=rtp_port, formats=formats, attributes=attrs),
    )


def answer_media(rtp_port: int, audio: AudioConfig) -> MediaDescription:
    """The audio section answering with the selected codec."""
    attrs = [Attribute("rtpmap", f"{audio.type} {audio.codec.info.sdp_name}")]
    formats = [str(audio.type)]
    if audio.dtmf_type:
        formats.append(str(audio.dtmf_type))
        attrs.append(Attribute("rtpmap", f"{audio.dtmf_type} {DTMF_SDP_NAME}"))
        attrs.append(Attribute("fmtp", f"{audio.dtmf_type} 0-16"))
    attrs.extend(_media_tail())
    return MediaDescription(port=rtp_port, formats=formats, attributes=attrs)


def _session(ip: str, session_id: int, version: int, media: MediaDescription) -> SessionDescription:
    return SessionDescription(
        session_id=session_id,
        session_version=version,
        origin_address=ip,
        session_name="LiveKit",
        connection_network_type="IN",
        connection_address_type="IP4",
        connection_address=ip,
        media=[media],
    )


@dataclass
class Description:
    sdp: SessionDescription
    addr: Optional[AddrPort]
    media: MediaDesc


@dataclass
class Offer(Description):
    def answer(self, public_ip: Any, rtp_port: int) -> tuple["Answer", MediaConfig]:
        """Answer this offer; raises ValueError if no common audio codec exists."""
        audio = select_audio(self.media)
        src = _addr(public_ip, rtp_port)
        session = _session(
            src[0],
            self.sdp.session_id,
            (self.sdp.session_id + 2) & _U64,
            answer_media(rtp_port, audio),
        )
        answer = Answer(
            sdp=session,
            addr=src,
            media=MediaDesc(
                codecs=[PayloadCodec(audio.type, audio.codec)], dtmf_type=audio.dtmf_type
            ),
        )
        return answer, MediaConfig(local=src, remote=self.addr, audio=audio)


@dataclass
class Answer(Description):
    def apply(self, offer: Offer) -> MediaConfig:
        """Media configuration agreed by this answer to ``offer``."""
        audio = select_audio(self.media)
        return MediaConfig(local=offer.addr, remote=self.addr, audio=audio)


def new_offer(public_ip: Any, rtp_port: int) -> Offer:
    """An offer of all enabled codecs on ``public_ip:rtp_port``."""
    session_id = random.getrandbits(64)
    src = _addr(public_ip, rtp_port)
    media, desc = offer_media(rtp_port)
    return Offer(sdp=_session(src[0], session_id, session_id, desc), addr=src, media=media)


def parse(data: Union[bytes, str]) -> Description:
    """Parse an SDP body; raises ValueError if malformed or without audio."""
    session = parse_session(data)
    audio = get_audio(session)
    if audio is None:
        raise ValueError("no audio in sdp")
    return Description(
        sdp=session, addr=get_audio_dest(session, audio), media=parse_media(audio)
    )


def parse_offer(data: Union[bytes, str]) -> Offer:
    d = parse(data)
    return Offer(sdp=d.sdp, addr=d.addr, media=d.media)


def parse_answer(data: Union[bytes, str]) -> Answer:
    d = parse(data)
    return Answer(sdp=d.sdp, addr=d.addr, media=d.media)


def _audio_codec(codec: Optional[Codec]) -> Optional[AudioCodec]:
    return codec if isinstance(codec, AudioCodec) else None


def parse_media(desc: MediaDescription) -> MediaDesc:
    """Codecs from rtpmap attributes, then from the format list."""
    out = MediaDesc()
    for attr in desc.attributes:
        if attr.key != "rtpmap":
            continue
        parts = attr.value.split(" ", 1)
        if len(parts) != 2:
            continue
        try:
            typ = int(parts[0]) & 0xFF
        except ValueError:
            continue
        name = parts[1]
        if name in (DTMF_SDP_NAME, DTMF_SDP_NAME + "/1"):
            out.dtmf_type = typ
            continue
        out.codecs.append(PayloadCodec(typ, _audio_codec(codec_by_name(name))))
    for fmt in desc.formats:
        try:
            typ = int(fmt) & 0xFF
        except ValueError:
            continue
        out.codecs.append(PayloadCodec(typ, _audio_codec(codec_by_payload_type(typ))))
    return out


def select_audio(desc: MediaDesc) -> AudioConfig:
    """The supported audio codec of highest priority; ValueError if none."""
    best: Optional[PayloadCodec] = None
    for pc in desc.codecs:
        if not isinstance(pc.codec, AudioCodec):
            continue
        if best is None or pc.codec.info.priority > best.codec.info.priority:
            best = pc
    if best is None:
        raise ValueError("common audio codec not found")
    return AudioConfig(codec=best.codec, type=best.type, dtmf_type=desc.dtmf_type)