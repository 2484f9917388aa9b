"""Telephony media building blocks: G.711, resampling, mixing, tones, DTMF, RTP, SDP and config."""

__version__ = "0.1.0"