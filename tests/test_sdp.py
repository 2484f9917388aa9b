import pytest

from sipmedia import dtmf, g711
from sipmedia.codecs import codec_enabled_by_name, codec_set_enabled, registered_codecs
from sipmedia.sdp import (
    Attribute,
    AudioConfig,
    MediaDescription,
    SessionDescription,
    answer_media,
    codec_by_name,
    get_audio,
    get_audio_dest,
    new_offer,
    offer_codecs,
    offer_media,
    parse,
    parse_answer,
    parse_media,
    parse_offer,
    parse_session,
    select_audio,
)

PORT = 12345
KNOWN = [g711.ULAW_SDP_NAME, g711.ALAW_SDP_NAME, dtmf.SDP_NAME]


@pytest.fixture(autouse=True)
def only_known_codecs():
    known = {n.lower() for n in KNOWN}
    others = [c.info.sdp_name for c in registered_codecs() if c.info.sdp_name.lower() not in known]
    previous = {n: codec_enabled_by_name(n) for n in others + KNOWN}
    for n in others:
        codec_set_enabled(n, False)
    for n in KNOWN:
        codec_set_enabled(n, True)
    yield
    for n, enabled in previous.items():
        codec_set_enabled(n, enabled)


def get_codec(name):
    return codec_by_name(name)


def test_offer_media():
    _, offer = offer_media(PORT)
    assert offer == MediaDescription(
        media="audio",
        port=PORT,
        protos=["RTP", "AVP"],
        formats=["0", "8", "101"],
        attributes=[
            Attribute("rtpmap", "0 PCMU/8000"),
            Attribute("rtpmap", "8 PCMA/8000"),
            Attribute("rtpmap", "101 telephone-event/8000"),
            Attribute("fmtp", "101 0-16"),
            Attribute("ptime", "20"),
            Attribute("sendrecv"),
        ],
    )

    codec_set_enabled(g711.ULAW_SDP_NAME, False)
    desc, offer = offer_media(PORT)
    assert offer.formats == ["8", "101"]
    assert offer.attributes == [
        Attribute("rtpmap", "8 PCMA/8000"),
        Attribute("rtpmap", "101 telephone-event/8000"),
        Attribute("fmtp", "101 0-16"),
        Attribute("ptime", "20"),
        Attribute("sendrecv"),
    ]
    assert desc.dtmf_type == 101


def test_offer_codecs_static_first():
    assert [c.type for c in offer_codecs()] == [0, 8, 101]


def _media(formats, attrs):
    return MediaDescription(formats=formats, attributes=[Attribute("rtpmap", v) for v in attrs])


@pytest.mark.parametrize(
    "formats,attrs,name,typ,dtmf_type",
    [
        (["0", "9", "8", "101"], ["0 PCMU/8000", "9 G722/8000", "101 telephone-event/8000"], g711.ULAW_SDP_NAME, 0, 101),
        (["0", "9", "101"], ["0 pcmu/8000", "9 g722/8000", "101 telephone-event/8000"], g711.ULAW_SDP_NAME, 0, 101),
        (["0", "9"], ["0 PCMU/8000", "9 G722/8000"], g711.ULAW_SDP_NAME, 0, 0),
        (["0", "9", "103"], ["0 PCMU/8000", "9 G722/8000", "103 telephone-event/8000"], g711.ULAW_SDP_NAME, 0, 103),
        (["0", "101"], ["0 PCMU/8000", "101 telephone-event/8000"], g711.ULAW_SDP_NAME, 0, 101),
        (["8", "101"], ["8 PCMA/8000", "101 telephone-event/8000"], g711.ALAW_SDP_NAME, 8, 101),
        (["0", "101"], ["101 telephone-event/8000"], g711.ULAW_SDP_NAME, 0, 101),
        ([], ["0 PCMU/8000/1", "101 telephone-event/8000/1"], g711.ULAW_SDP_NAME, 0, 101),
    ],
)
def test_select_audio(formats, attrs, name, typ, dtmf_type):
    got = select_audio(parse_media(_media(formats, attrs)))
    expected_codec = get_codec(name)
    assert expected_codec is not None
    assert got == AudioConfig(codec=expected_codec, type=typ, dtmf_type=dtmf_type)


@pytest.mark.parametrize(
    "formats,attrs",
    [
        (["101", "102"], ["101 telephone-event/8000", "102 FOOBAR/8000"]),
        (["9", "101"], ["9 G722/8000", "101 telephone-event/8000"]),
    ],
)
def test_select_audio_unsupported(formats, attrs):
    with pytest.raises(ValueError, match="common audio codec not found"):
        select_audio(parse_media(_media(formats, attrs)))


def test_codec_by_name_respects_enabled():
    assert codec_by_name("pcma/8000/1") is codec_by_name(g711.ALAW_SDP_NAME)
    codec_set_enabled(g711.ALAW_SDP_NAME, False)
    assert codec_by_name(g711.ALAW_SDP_NAME) is None


def test_answer_media():
    audio = AudioConfig(codec=get_codec(g711.ULAW_SDP_NAME), type=0, dtmf_type=101)
    desc = answer_media(PORT, audio)
    assert desc.formats == ["0", "101"]
    assert desc.attributes == [
        Attribute("rtpmap", "0 PCMU/8000"),
        Attribute("rtpmap", "101 telephone-event/8000"),
        Attribute("fmtp", "101 0-16"),
        Attribute("ptime", "20"),
        Attribute("sendrecv"),
    ]


def test_session_marshal():
    session = SessionDescription(
        session_id=1,
        session_version=1,
        origin_address="192.0.2.1",
        session_name="LiveKit",
        connection_network_type="IN",
        connection_address_type="IP4",
        connection_address="192.0.2.1",
        media=[MediaDescription(port=PORT, formats=["0"], attributes=[Attribute("sendrecv")])],
    )
    assert session.marshal() == (
        b"v=0\r\no=- 1 1 IN IP4 192.0.2.1\r\ns=LiveKit\r\nc=IN IP4 192.0.2.1\r\n"
        b"t=0 0\r\nm=audio 12345 RTP/AVP 0\r\na=sendrecv\r\n"
    )
    assert parse_session(session.marshal()) == session


def test_offer_answer_round_trip():
    offer = new_offer("192.0.2.10", PORT)
    parsed = parse_offer(offer.sdp.marshal())
    assert parsed.addr == ("192.0.2.10", PORT)
    assert parsed.sdp.session_id == offer.sdp.session_id
    assert parsed.media.dtmf_type == 101
    assert [c.type for c in parsed.media.codecs] == [0, 8, 0, 8, 101]

    answer, cfg = parsed.answer("192.0.2.20", 23456)
    ulaw = get_codec(g711.ULAW_SDP_NAME)
    assert cfg.local == ("192.0.2.20", 23456)
    assert cfg.remote == ("192.0.2.10", PORT)
    assert cfg.audio == AudioConfig(codec=ulaw, type=0, dtmf_type=101)
    assert answer.sdp.session_version == offer.sdp.session_id + 2

    applied = parse_answer(answer.sdp.marshal()).apply(offer)
    assert applied.local == offer.addr
    assert applied.remote == ("192.0.2.20", 23456)
    assert applied.audio == AudioConfig(codec=ulaw, type=0, dtmf_type=101)


def test_parse_without_audio():
    body = b"v=0\r\no=- 1 1 IN IP4 192.0.2.1\r\ns=x\r\nt=0 0\r\nm=video 5000 RTP/AVP 96\r\n"
    with pytest.raises(ValueError, match="no audio in sdp"):
        parse(body)


def test_parse_malformed():
    with pytest.raises(ValueError):
        parse_session(b"not sdp")


def test_audio_dest_requires_internet_address():
    session = parse_session(b"v=0\r\ns=x\r\nc=IN IP4 bogus\r\nt=0 0\r\nm=audio 5000 RTP/AVP 0\r\n")
    audio = get_audio(session)
    assert audio.port == 5000
    assert get_audio_dest(session, audio) is None
    session.connection_address = "192.0.2.7"
    assert get_audio_dest(session, audio) == ("192.0.2.7", 5000)
    session.connection_network_type = "XX"
    assert get_audio_dest(session, audio) is None