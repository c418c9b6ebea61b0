"""Data models shared by every discovery component.

Endpoints are the dedup/lookup key throughout the engine; server records are
the immutable result of one successful status probe.
"""

import ipaddress
import re
import socket
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

# Default Quake II game server port
DEFAULT_GAME_PORT = 27910

# Longest address string accepted from user input
MAX_ADDRESS_LENGTH = 512

_COLOR_MARKER = re.compile(r"\^(\d)")


@dataclass(frozen=True)
class Endpoint:
    """An IP address plus a UDP port."""
    host: str
    port: int

    def __post_init__(self):
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"Port out of range: {self.port}")

    @property
    def is_ipv6(self) -> bool:
        return ":" in self.host

    @property
    def key(self) -> str:
        """Canonical address:port form used for dedup and lookup."""
        if self.is_ipv6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    @property
    def sockaddr(self) -> tuple[str, int]:
        return (self.host, self.port)

    def __str__(self) -> str:
        return self.key

    @classmethod
    def parse(cls, text: str, default_port: int = DEFAULT_GAME_PORT) -> "Endpoint":
        """Parse an IP literal with an optional port.

        Accepted forms: ``10.0.0.1``, ``10.0.0.1:27911``, ``2001:db8::1``,
        ``[2001:db8::1]:27911``.

        Raises:
            ValueError: If the host is not an IP literal or the port is invalid.
        """
        host, port = split_host_port(text, default_port)
        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            raise ValueError(f"Not an IP address: {host!r}") from None
        return cls(str(address), port)

    @classmethod
    def resolve(cls, text: str, default_port: int = DEFAULT_GAME_PORT) -> "Endpoint":
        """Like :meth:`parse`, but host names are resolved (IPv4 preferred).

        Raises:
            ValueError: If the address is malformed or cannot be resolved.
        """
        host, port = split_host_port(text, default_port)
        try:
            return cls(str(ipaddress.ip_address(host)), port)
        except ValueError:
            pass

        try:
            infos = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
        except (socket.gaierror, UnicodeError) as e:
            raise ValueError(f"Cannot resolve {host!r}: {e}") from e

        infos.sort(key=lambda info: info[0] != socket.AF_INET)
        for family, _, _, _, sockaddr in infos:
            if family in (socket.AF_INET, socket.AF_INET6):
                return cls(sockaddr[0], port)
        raise ValueError(f"No usable address for {host!r}")


def split_host_port(text: str, default_port: int) -> tuple[str, int]:
    """Split user-supplied ``host[:port]`` text."""
    text = (text or "").strip()
    if not text:
        raise ValueError("Address cannot be empty")
    if len(text) > MAX_ADDRESS_LENGTH:
        raise ValueError(f"Address longer than {MAX_ADDRESS_LENGTH} characters")

    port_text: Optional[str] = None
    if text.startswith("["):
        end = text.find("]")
        if end < 0:
            raise ValueError(f"Unterminated IPv6 bracket in {text!r}")
        host = text[1:end]
        rest = text[end + 1:]
        if rest:
            if not rest.startswith(":"):
                raise ValueError(f"Unexpected text after address: {rest!r}")
            port_text = rest[1:]
    elif text.count(":") == 1:
        host, port_text = text.split(":")
    else:
        # Bare host name, IPv4 or unbracketed IPv6 without port
        host = text

    if not host:
        raise ValueError(f"Missing host in {text!r}")

    if port_text is None:
        return host, default_port
    if not (port_text.isascii() and port_text.isdigit()):
        raise ValueError(f"Invalid port {port_text!r}")
    port = int(port_text)
    if not 1 <= port <= 0xFFFF:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
    return host, port


@dataclass(frozen=True)
class PlayerEntry:
    """One player line of a status reply.

    ``time`` is the second numeric column: ping on stock servers,
    connected time on some mods.
    """
    name: str
    score: int
    time: int

    @property
    def plain_name(self) -> str:
        return strip_color_codes(self.name)


@dataclass(frozen=True)
class ColorSegment:
    """A run of text drawn in one color (None = default color)."""
    text: str
    color: Optional[int] = None


def parse_color_segments(text: str) -> tuple[ColorSegment, ...]:
    """Split text on ``^<digit>`` color markers.

    A caret not followed by a digit is kept as literal text.
    """
    segments: list[ColorSegment] = []
    color: Optional[int] = None
    pos = 0
    for match in _COLOR_MARKER.finditer(text):
        if match.start() > pos:
            segments.append(ColorSegment(text[pos:match.start()], color))
        color = int(match.group(1))
        pos = match.end()
    if pos < len(text):
        segments.append(ColorSegment(text[pos:], color))
    return tuple(segments)


def strip_color_codes(text: str) -> str:
    return _COLOR_MARKER.sub("", text)


@dataclass(frozen=True)
class ServerRecord:
    """Parsed result of one successful status probe."""
    endpoint: Endpoint
    hostname: str
    map_name: str
    mod: str
    current_players: int
    max_players: int
    latency_ms: int
    players: tuple[PlayerEntry, ...] = ()
    attributes: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        # Freeze the attribute mapping together with the record
        object.__setattr__(self, "players", tuple(self.players))
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @property
    def key(self) -> str:
        return self.endpoint.key

    @property
    def hostname_segments(self) -> tuple[ColorSegment, ...]:
        return parse_color_segments(self.hostname)

    @property
    def plain_hostname(self) -> str:
        return strip_color_codes(self.hostname)

    @property
    def is_full(self) -> bool:
        return self.max_players > 0 and self.current_players >= self.max_players

    def matches(self, text: str) -> bool:
        """Case-insensitive search over hostname, map and mod."""
        if not text or not text.strip():
            return True
        needle = text.strip().lower()
        return (
            needle in self.plain_hostname.lower()
            or needle in self.map_name.lower()
            or needle in self.mod.lower()
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.key,
            "hostname": self.hostname,
            "plain_hostname": self.plain_hostname,
            "map": self.map_name,
            "mod": self.mod,
            "players": self.current_players,
            "max_players": self.max_players,
            "latency_ms": self.latency_ms,
            "player_list": [
                {"name": p.name, "score": p.score, "time": p.time}
                for p in self.players
            ],
            "attributes": dict(self.attributes),
        }

