"""Dispatch of RTP packets to handlers by payload type."""

from __future__ import annotations

import threading
from typing import Any, Optional

from .rtp import Packet


class Mux:
    """Selects an RTP handler based on the packet's payload type."""

    def __init__(self, default: Optional[Any] = None) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[int, Any] = {}
        self._default = default

    def handle_rtp(self, packet: Packet) -> None:
        """Pass the packet to its registered handler, or the default one.

        Packets with no handler at all are dropped.
        """
        with self._lock:
            handler = self._handlers.get(packet.payload_type, self._default)
        if handler is not None:
            handler.handle_rtp(packet)

    def set_default(self, handler: Optional[Any]) -> None:
        """Set the fallback handler; None drops packets of unregistered types."""
        with self._lock:
            self._default = handler

    def register(self, payload_type: int, handler: Optional[Any]) -> None:
        """Register a handler for a payload type; None removes it."""
        with self._lock:
            if handler is None:
                self._handlers.pop(payload_type, None)
            else:
                self._handlers[payload_type] = handler