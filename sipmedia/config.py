"""Service configuration loaded from YAML and the environment."""

from __future__ import annotations

import ipaddress
import logging
import os
import re
import secrets
import socket
import string
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import psutil
import yaml

DEFAULT_SIP_PORT = 5060
DEFAULT_SIP_PORT_TLS = 5061
DEFAULT_RTP_PORT_START = 10000
DEFAULT_RTP_PORT_END = 20000

INVALID_ARGUMENT = "invalid_argument"
UNAVAILABLE = "unavailable"


class ConfigError(ValueError):
    """A configuration problem, tagged with an error code."""

    def __init__(self, message: str, code: str = INVALID_ARGUMENT) -> None:
        super().__init__(message)
        self.code = code


@dataclass
class TLSCert:
    cert_file: str = ""
    key_file: str = ""


@dataclass
class TLSConfig:
    port: int = 0  # announced SIP signaling port
    listen_port: int = 0  # SIP signaling port to listen on
    certs: list[TLSCert] = field(default_factory=list)


@dataclass
class PortRange:
    start: int = 0
    end: int = 0


_DURATION_UNITS = {
    "ns": 1e-9, "us": 1e-6, "µs": 1e-6, "μs": 1e-6, "ms": 1e-3, "s": 1.0, "m": 60.0, "h": 3600.0,
}
_DURATION_PART = r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)"


def _check(value: Any, kinds: tuple, what: str) -> Any:
    if isinstance(value, bool) and bool not in kinds:
        raise TypeError(f"expected {what}, got {value!r}")
    if not isinstance(value, kinds):
        raise TypeError(f"expected {what}, got {value!r}")
    return value


def _int(v: Any) -> int:
    return _check(v, (int,), "integer")


def _str(v: Any) -> str:
    return _check(v, (str,), "string")


def _bool(v: Any) -> bool:
    return _check(v, (bool,), "boolean")


def _float(v: Any) -> float:
    return float(_check(v, (int, float), "number"))


def _mapping(v: Any) -> dict:
    return dict(_check(v, (dict,), "mapping"))


def _duration(v: Any) -> float:
    """Seconds from a duration string such as "1m30s", or integer nanoseconds."""
    if isinstance(v, int) and not isinstance(v, bool):
        return v / 1e9
    s = _str(v).strip()
    sign = -1.0 if s.startswith("-") else 1.0
    s = s.lstrip("+-")
    if s == "0":
        return 0.0
    if not s or not re.fullmatch(f"(?:{_DURATION_PART})+", s):
        raise ValueError(f"invalid duration {v!r}")
    return sign * sum(float(n) * _DURATION_UNITS[u] for n, u in re.findall(_DURATION_PART, s))


def _codecs(v: Any) -> dict[str, bool]:
    return {_str(k): _bool(enabled) for k, enabled in _mapping(v).items()}


def _tls(v: Any) -> TLSConfig:
    m = _mapping(v)
    certs = [
        TLSCert(cert_file=_str(c.get("cert_file", "")), key_file=_str(c.get("key_file", "")))
        for c in map(_mapping, _check(m.get("certs") or [], (list,), "list"))
    ]
    return TLSConfig(
        port=_int(m.get("port", 0)), listen_port=_int(m.get("port_listen", 0)), certs=certs
    )


def _port_range(v: Any) -> PortRange:
    m = _mapping(v)
    return PortRange(start=_int(m.get("start", 0)), end=_int(m.get("end", 0)))


def _optional_mapping(v: Any) -> Optional[dict]:
    return None if v is None else _mapping(v)


_FIELDS: dict[str, Callable[[Any], Any]] = {
    "redis": _optional_mapping,
    "api_key": _str,
    "api_secret": _str,
    "ws_url": _str,
    "health_port": _int,
    "prometheus_port": _int,
    "pprof_port": _int,
    "sip_port": _int,
    "sip_port_listen": _int,
    "sip_hostname": _str,
    "tls": lambda v: None if v is None else _tls(v),
    "rtp_port": _port_range,
    "logging": _mapping,
    "cluster_id": _str,
    "max_cpu_utilization": _float,
    "use_external_ip": _bool,
    "local_net": _str,
    "nat_1_to_1_ip": _str,
    "listen_ip": _str,
    "media_timeout": _duration,
    "media_timeout_initial": _duration,
    "codecs": _codecs,
    "hide_inbound_port": _bool,
    "audio_dtmf": _bool,
    "enable_jitter_buffer": _bool,
}


@dataclass
class Config:
    """Service settings; durations are in seconds."""

    redis: Optional[dict] = None  # required
    api_key: str = ""
    api_secret: str = ""
    ws_url: str = ""
    health_port: int = 0
    prometheus_port: int = 0
    pprof_port: int = 0
    sip_port: int = 0  # announced SIP signaling port
    sip_port_listen: int = 0  # SIP signaling port to listen on
    sip_hostname: str = ""
    tls: Optional[TLSConfig] = None
    rtp_port: PortRange = field(default_factory=PortRange)
    logging: dict = field(default_factory=dict)
    cluster_id: str = ""
    max_cpu_utilization: float = 0.0
    use_external_ip: bool = False
    local_net: str = ""
    nat_1_to_1_ip: str = ""
    listen_ip: str = ""
    media_timeout: float = 0.0
    media_timeout_initial: float = 0.0
    codecs: dict[str, bool] = field(default_factory=dict)
    # Silently drop unverified INVITEs instead of answering, to hide from port scanners.
    hide_inbound_port: bool = False
    # Generate audio DTMF tones in addition to digital ones.
    audio_dtmf: bool = False
    enable_jitter_buffer: bool = False
    service_name: str = "sip"
    node_id: str = ""
    logger: Optional[logging.LoggerAdapter] = field(default=None, repr=False, compare=False)

    def init(self) -> None:
        """Assign a node id, fill in defaults and set up logging."""
        alphabet = string.ascii_letters + string.digits
        self.node_id = "NE_" + "".join(secrets.choice(alphabet) for _ in range(12))
        if self.sip_port == 0:
            self.sip_port = DEFAULT_SIP_PORT
        if self.sip_port_listen == 0:
            self.sip_port_listen = self.sip_port
        if self.tls is not None:
            if self.tls.port == 0:
                self.tls.port = DEFAULT_SIP_PORT_TLS
            if self.tls.listen_port == 0:
                self.tls.listen_port = self.tls.port
        if self.rtp_port.start == 0:
            self.rtp_port.start = DEFAULT_RTP_PORT_START
        if self.rtp_port.end == 0:
            self.rtp_port.end = DEFAULT_RTP_PORT_END
        if self.max_cpu_utilization <= 0 or self.max_cpu_utilization > 1:
            self.max_cpu_utilization = 0.9
        self.init_logger()
        if self.use_external_ip and self.nat_1_to_1_ip:
            raise ConfigError("use_external_ip and nat_1_to_1_ip can not both be set")

    def init_logger(self, *args: Any) -> logging.LoggerAdapter:
        """Configure the service logger with node values plus ``args`` pairs."""
        level_name = str(self.logging.get("level", "info")).upper()
        if level_name == "WARN":
            level_name = "WARNING"
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            raise ValueError(f"unknown log level {self.logging.get('level')!r}")
        base = logging.getLogger(self.service_name)
        base.setLevel(level)
        values = self.logger_values() + list(args)
        extra = {str(values[i]): values[i + 1] for i in range(0, len(values) - 1, 2)}
        self.logger = logging.LoggerAdapter(base, extra)
        return self.logger

    def logger_values(self) -> list:
        """Alternating key/value pairs identifying this node."""
        if not self.node_id:
            return []
        return ["nodeID", self.node_id]

    def logger_fields(self) -> dict[str, Any]:
        """Logger name and node values as a dictionary."""
        values = self.logger_values()
        fields: dict[str, Any] = {"logger": self.service_name}
        fields.update(zip(values[::2], values[1::2]))
        return fields


def new_config(body: str) -> Config:
    """Build a config from a YAML body over environment defaults.

    Raises ConfigError if the body cannot be parsed or redis is not configured.
    """
    conf = Config(
        api_key=os.environ.get("LIVEKIT_API_KEY", ""),
        api_secret=os.environ.get("LIVEKIT_API_SECRET", ""),
        ws_url=os.environ.get("LIVEKIT_WS_URL", ""),
    )
    if body:
        try:
            data = yaml.safe_load(body)
            if data is not None:
                for key, value in _mapping(data).items():
                    convert = _FIELDS.get(key)
                    if convert is not None:
                        setattr(conf, key, convert(value))
        except (yaml.YAMLError, TypeError, ValueError) as exc:
            raise ConfigError(f"could not parse config: {exc}") from exc
    if conf.redis is None:
        raise ConfigError("redis configuration is required")
    return conf


def get_local_ip() -> Optional[ipaddress.IPv4Address]:
    """The first IPv4 address of an interface that is up and not loopback.

    Returns None if interfaces cannot be listed; raises OSError if none fit.
    """
    try:
        addrs = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
    except OSError:
        return None
    for name, entries in addrs.items():
        st = stats.get(name)
        if st is None or not st.isup:
            continue
        flags = set(filter(None, getattr(st, "flags", "").split(",")))
        if flags and "running" not in flags:
            continue
        if flags & {"loopback", "pointopoint"}:
            continue
        for entry in entries:
            if entry.family != socket.AF_INET:
                continue
            try:
                ip = ipaddress.IPv4Address(entry.address)
            except ValueError:
                continue
            if ip.is_loopback:
                continue
            logging.getLogger(__name__).debug("considering interface %s ip %s", name, ip)
            return ip
    raise OSError("No local IP found")