"""Audio codecs that can be carried over RTP, and lookup by payload type."""

from __future__ import annotations

import dataclasses
import itertools
import os
from typing import Any, Callable, Optional

from .codecs import Codec, CodecInfo, on_register
from .media import NopCloser, dump_writer
from .rtp import MediaStreamIn, MediaStreamOut, Stream

_media_ids = itertools.count(1)
_DUMP_TO_FILE = os.environ.get("SIPMEDIA_DUMP_MEDIA") == "true"

_codec_by_type: dict[int, Codec] = {}


def _index_codec(codec: Codec) -> None:
    if codec.info.rtp_is_static:
        _codec_by_type[codec.info.rtp_def_type] = codec


on_register(_index_codec)


def codec_by_payload_type(payload_type: int) -> Optional[Codec]:
    """The registered codec with this static RTP payload type, if any."""
    return _codec_by_type.get(payload_type)


class AudioCodec(Codec):
    """A codec with functions to build decoding and encoding writer chains.

    ``decode(pcm_writer)`` returns a writer of encoded frames;
    ``encode(frame_writer)`` returns a writer of PCM16 samples.
    """

    def __init__(
        self,
        info: CodecInfo,
        decode: Callable[[Any], Any],
        encode: Callable[[Any], Any],
    ) -> None:
        if info.sample_rate <= 0:
            raise ValueError("invalid sample rate")
        if info.rtp_clock_rate == 0:
            info = dataclasses.replace(info, rtp_clock_rate=info.sample_rate)
        super().__init__(info)
        self._decode = decode
        self._encode = encode

    def decode(self, writer: Any) -> Any:
        """Writer of encoded frames that decodes into ``writer``."""
        return self._decode(writer)

    def encode(self, writer: Any) -> Any:
        """Writer of PCM16 samples that encodes into ``writer``."""
        return self._encode(writer)

    def _dump(self, direction: str, writer: Any) -> Any:
        name = f"sip_rtp_{direction}_{next(_media_ids)}"
        ext = self.info.file_ext or "raw"
        return dump_writer(ext, name, NopCloser(writer))

    def encode_rtp(self, stream: Stream) -> Any:
        """PCM16 writer whose encoded frames are sent on the RTP stream."""
        out: Any = MediaStreamOut(stream, self.info.sample_rate)
        if _DUMP_TO_FILE:
            out = self._dump("out", out)
        return self._encode(out)

    def decode_rtp(self, writer: Any, payload_type: int) -> MediaStreamIn:
        """RTP handler decoding packet payloads into the PCM16 ``writer``."""
        dec = self._decode(NopCloser(writer))
        if _DUMP_TO_FILE:
            dec = self._dump("in", dec)
        return MediaStreamIn(dec)