"""UDP connection carrying RTP, with media timeout detection."""

from __future__ import annotations

import random
import socket
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .rtp import Packet, parse_packet

_MTU = 1500


class ListenError(OSError):
    """Raised when no UDP port in the requested range could be bound."""

    def __init__(self, message: str = "failed to listen on udp port") -> None:
        super().__init__(message)


def _bind(ip: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in ip else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_DGRAM)
    try:
        sock.bind((ip, port))
    except OSError:
        sock.close()
        raise
    return sock


def listen_udp_port_range(port_min: int, port_max: int, ip: Any = None) -> socket.socket:
    """Bind a UDP socket on a port in ``[port_min, port_max]``.

    A random port is tried first, then the following ones, wrapping around.
    Both bounds zero means any free port. Raises ListenError on failure.
    """
    host = str(ip) if ip is not None else "0.0.0.0"
    if port_min == 0 and port_max == 0:
        return _bind(host, 0)
    low = port_min or 1
    high = port_max or 0xFFFF
    if low > high:
        raise ListenError()
    start = random.randint(low, high)
    port = start
    while True:
        try:
            return _bind(host, port)
        except OSError:
            pass
        port += 1
        if port > high:
            port = low
        if port == start:
            raise ListenError()


@dataclass
class ConnConfig:
    """Media timeouts in seconds; zero or less picks the default."""

    media_timeout_initial: float = 0.0
    media_timeout: float = 0.0
    timeout_callback: Optional[Callable[[], None]] = None


class Conn:
    """An RTP endpoint over UDP.

    The destination address follows the source of the last received packet.
    If a timeout callback is configured, it is called once no packets arrive
    for ``media_timeout`` seconds (``media_timeout_initial`` before the first).
    """

    def __init__(self, config: Optional[ConnConfig] = None, sock: Optional[socket.socket] = None) -> None:
        config = config or ConnConfig()
        self._sock = sock
        self._timeout = config.media_timeout if config.media_timeout > 0 else 15.0
        self._timeout_initial = (
            config.media_timeout_initial if config.media_timeout_initial > 0 else 30.0
        )
        self._write_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._closed = threading.Event()
        self._received = threading.Event()
        self._packet_count = 0
        self._timeout_start: Optional[float] = None
        self._dest: Optional[tuple] = None
        self._handler: Optional[Any] = None
        if config.timeout_callback is not None:
            self.enable_timeout(True)
            threading.Thread(
                target=self._watch_timeout,
                args=(config.timeout_callback,),
                name="rtp-timeout",
                daemon=True,
            ).start()

    def local_addr(self) -> Optional[tuple]:
        """The bound socket address, or None if not listening."""
        if self._sock is None:
            return None
        return self._sock.getsockname()

    @property
    def dest_addr(self) -> Optional[tuple]:
        return self._dest

    @dest_addr.setter
    def dest_addr(self, addr: Optional[tuple]) -> None:
        self._dest = addr

    @property
    def received(self) -> threading.Event:
        """Set once at least one RTP packet has been received."""
        return self._received

    def on_rtp(self, handler: Optional[Any]) -> None:
        """Set the handler for received packets; None removes it."""
        self._handler = handler

    def close(self) -> None:
        self.on_rtp(None)
        with self._close_lock:
            if self._closed.is_set():
                return
            self._closed.set()
            if self._sock is not None:
                self._sock.close()

    def listen(self, port_min: int, port_max: int, listen_addr: str = "") -> None:
        """Bind a socket in the port range unless one is already set."""
        if self._sock is not None:
            return
        self._sock = listen_udp_port_range(port_min, port_max, listen_addr or "0.0.0.0")

    def listen_and_serve(self, port_min: int, port_max: int, listen_addr: str = "") -> None:
        """Bind and start delivering packets to the handler on a thread."""
        self.listen(port_min, port_max, listen_addr)
        threading.Thread(target=self._read_loop, name="rtp-read", daemon=True).start()

    def _read_loop(self) -> None:
        sock = self._sock
        while True:
            try:
                data, addr = sock.recvfrom(_MTU)
            except OSError:
                return
            self._dest = addr
            try:
                packet = parse_packet(data)
            except ValueError:
                continue
            self._packet_count += 1
            if self._packet_count == 1:
                self._received.set()
            handler = self._handler
            if handler is not None:
                try:
                    handler.handle_rtp(packet)
                except Exception:
                    pass  # a failing handler must not stop reception

    def write_rtp(self, packet: Packet) -> None:
        """Send a packet to the destination; does nothing without one."""
        addr = self._dest
        if addr is None:
            return
        data = packet.marshal()
        with self._write_lock:
            self._sock.sendto(data, addr)

    def read_rtp(self) -> tuple[Packet, tuple]:
        """Receive one packet and its source address."""
        data, addr = self._sock.recvfrom(_MTU)
        return parse_packet(data), addr

    def enable_timeout(self, enabled: bool) -> None:
        """Start (or restart) the timeout clock, or pause timeout detection."""
        self._timeout_start = time.monotonic() if enabled else None

    def _watch_timeout(self, callback: Callable[[], None]) -> None:
        last = 0
        while not self._closed.wait(self._timeout):
            cur = self._packet_count
            if cur != last:
                last = cur
                continue
            start = self._timeout_start
            if start is None:
                continue
            if last == 0 and time.monotonic() - start < self._timeout_initial:
                continue
            callback()
            return