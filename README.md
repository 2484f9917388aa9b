# sipmedia

The media side of a SIP telephony service, as a set of plain Python
modules:

- `sipmedia.ringbuf` has `RingBuffer`, a bounded FIFO. When it overflows,
  it drops the oldest items.
- `sipmedia.codecs` has `CodecInfo`, `Codec` and a process-wide codec
  registry. Codecs are enabled and disabled by SDP name, and the name
  match ignores case (`codec_set_enabled`, `codecs_set_enabled`,
  `enabled_codecs`, `register_codec`, `on_register`).
- `sipmedia.media` has PCM16 helpers (`pcm16_to_bytes`,
  `pcm16_from_bytes`) and a set of writers and readers: `MultiWriter`,
  `FileWriter`, `FrameWriter`, `BufferWriter`, `BufferReader`,
  `SampleWriter` and `NopCloser`. It also has the debug tee writers
  `dump_writer` and `dump_writer_pcm16`, and the coroutine `play_audio`.
- `sipmedia.pipe` has `pipe(sample_rate)`, a blocking in-memory pipe made
  of a `PipeReader` and a `PipeWriter`.
- `sipmedia.resample` has `resample`, a Lagrange-interpolating
  `BeepResampler`, and the streaming `ResampleWriter` and
  `resample_writer`.
- `sipmedia.switch` has `SwitchWriter`, which forwards to a writer that
  can be swapped. It resamples the new writer when its rate differs.
- `sipmedia.audiotest` has `gen_signal` and `find_signal`. They generate
  and detect sums of sine waves.
- `sipmedia.mixer` has `Mixer`, `MixerInput` and `new_mixer`. The mixer
  adds its inputs together and clips the sum. Each input buffers before
  it plays, and the mixer catches up after a stall.
- `sipmedia.rtp` has the RTP `Packet` with `parse_packet`, plus
  `PacketBuffer`, `SeqWriter`, the timestamped `Stream`, `MediaStreamOut`
  and `MediaStreamIn`.
- `sipmedia.rtpmux` has `Mux`, which dispatches packets by payload type.
- `sipmedia.rtpcodecs` has `AudioCodec` and `codec_by_payload_type`.
- `sipmedia.rtpconn` has `Conn`, an RTP endpoint over UDP with a media
  timeout callback, and `listen_udp_port_range`.
- `sipmedia.g711` has μ-law and A-law encoding and decoding, with writer
  classes for each direction.
- `sipmedia.tones` has `generate`, the coroutine `play`, and the
  `ETSI_DIAL`, `ETSI_RINGING` and `ETSI_BUSY` tone sets.
- `sipmedia.dtmf` covers RFC 2833 telephone events (`decode`, `encode`,
  `decode_rtp`) and the coroutine `write`. `write` sends digits as audio
  tones, as RTP events, or as both.
- `sipmedia.sdp` covers SDP parsing and serialization, and builds offers
  and answers. `select_audio` chooses the codec.
- `sipmedia.config` loads the service configuration from YAML and
  provides `get_local_ip`.

## Installation

The package needs Python 3.10 or later. Its runtime dependencies are
PyYAML and psutil. The `test` extra adds pytest and pytest-asyncio.

## Examples

### G.711

```python
from sipmedia.g711 import encode_ulaw, decode_ulaw

pcm = [0, 1200, -1200, 30000]
encoded = encode_ulaw(pcm)       # bytes, one per sample
restored = decode_ulaw(encoded)  # companded approximation of pcm
```

`encode_alaw` and `decode_alaw` work the same way for A-law. Samples
outside the 16-bit range are clamped before encoding.

### Ring buffer

```python
from sipmedia.ringbuf import RingBuffer

buf = RingBuffer(5)
buf.write([1, 2, 3, 4, 5, 6, 7])  # returns 7; the oldest items are dropped
print(len(buf))                   # 5
print(buf.read(6))                # [3, 4, 5, 6, 7]
```

Reading from an empty buffer raises `EOFError`.

### DTMF events

```python
from sipmedia import dtmf

event = dtmf.decode(bytes.fromhex("0a8a0820"))
# Event(code=10, digit='*', volume=10, dur=2080, end=True)
assert dtmf.encode(event) == bytes.fromhex("0a8a0820")
```

`await dtmf.write(audio, stream, start_ts, "1w23")` plays the digits.
Each digit is a 250 ms tone followed by 250 ms of silence. Each `w` adds
a half-second pause.

### SDP negotiation

Importing a codec module registers its codecs, and offers include only
the codecs that are registered and enabled.

```python
import sipmedia.g711  # registers PCMU and PCMA
from sipmedia import sdp

desc, media = sdp.offer_media(12345)
# media.formats == ["0", "8", "101"]: PCMU, PCMA, telephone-event

offer = sdp.parse_offer(remote_sdp_bytes)
answer, media_config = offer.answer("192.0.2.10", 12345)
body = answer.sdp.marshal()
```

`sdp.select_audio` returns the supported audio codec with the highest
priority. It raises `ValueError` when the two sides share no codec.

### Mixing

```python
from sipmedia.mixer import new_mixer

mixer = new_mixer(output_writer, 0.02)  # 20 ms frames, mixed on a thread
a = mixer.new_input()
b = mixer.new_input()
a.write_sample(frame_a)
b.write_sample(frame_b)
mixer.stop()
```

### Configuration

```python
from sipmedia.config import new_config

conf = new_config(yaml_text)  # raises ConfigError without a redis section
conf.init()                   # sets the node id and fills in default ports,
                              # RTP range and CPU limit
```

`api_key`, `api_secret` and `ws_url` take their defaults from the
environment variables `LIVEKIT_API_KEY`, `LIVEKIT_API_SECRET` and
`LIVEKIT_WS_URL`.

## Debug dumps

Set `SIPMEDIA_DUMP_RESAMPLE=true` to write the input and output of every
resampler to raw `s16le` files. Set `SIPMEDIA_DUMP_MEDIA=true` to write
the encoded RTP media of each `AudioCodec` to files. Both variables are
read when the package is imported.

## What the package does not do

The package contains only building blocks. It does not include:

- a SIP signalling stack or server;
- a command-line program or a service to run;
- any connection to Redis or to a media room.

It also has no Opus or G.722 codecs. The registry holds only the codecs
that are imported: PCMU, PCMA and telephone-event.