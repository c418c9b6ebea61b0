"""Status reply parsing.

A status reply is an OOB ``print`` packet::

    \\xff\\xff\\xff\\xffprint\\n
    \\hostname\\My Server\\mapname\\q2dm1\\maxclients\\16\\n
    12 48 "player one"\\n
    3 102 "^1red^7player"\\n

The first line after the marker is a backslash-delimited attribute string;
each following line describes one player as ``score time "name"``.
Replies come from untrusted servers, so sizes and counts are capped and
malformed player lines are skipped instead of failing the whole reply.
"""

import logging
import re
from typing import Optional

from ..models import Endpoint, PlayerEntry, ServerRecord
from .packet import STATUS_REPLY_MARKER, has_oob_header, remove_oob_header

logger = logging.getLogger(__name__)

MAX_PAYLOAD_SIZE = 64 * 1024
MAX_ATTRIBUTES = 256
MAX_PLAYERS = 128

DEFAULT_HOSTNAME = "Unnamed"
DEFAULT_MOD = "baseq2"

_PLAYER_LINE = re.compile(r'^\s*(-?\d+)\s+(-?\d+)\s+"(.*)"\s*$')
_UNQUOTED_PLAYER_LINE = re.compile(r"^\s*(-?\d+)\s+(-?\d+)\s+(\S.*?)\s*$")


def parse_info_string(line: str, max_pairs: int = MAX_ATTRIBUTES) -> dict[str, str]:
    """Parse a ``\\key\\value\\key\\value`` attribute string.

    Stops after ``max_pairs`` pairs. A trailing key without a value maps to
    an empty string; pairs with an empty key are dropped.
    """
    line = line.strip("\r\n")
    if line.startswith("\\"):
        line = line[1:]
    if not line:
        return {}

    parts = line.split("\\", 2 * max_pairs)
    attributes: dict[str, str] = {}
    for i in range(0, min(len(parts), 2 * max_pairs), 2):
        key = parts[i]
        value = parts[i + 1] if i + 1 < len(parts) else ""
        if len(attributes) >= max_pairs:
            break
        if key:
            attributes[key] = value
    return attributes


def parse_player_line(line: str) -> Optional[PlayerEntry]:
    """Parse one ``score time "name"`` line; None if malformed."""
    match = _PLAYER_LINE.match(line) or _UNQUOTED_PLAYER_LINE.match(line)
    if not match:
        return None
    try:
        score, time = int(match.group(1)), int(match.group(2))
    except ValueError:
        return None
    return PlayerEntry(name=match.group(3), score=score, time=time)


def _split_reply(data: bytes, log: logging.Logger) -> Optional[list[str]]:
    """Return the text lines following the ``print`` marker, or None."""
    if len(data) > MAX_PAYLOAD_SIZE:
        log.debug("Truncating %d-byte status reply to %d bytes", len(data), MAX_PAYLOAD_SIZE)
        data = data[:MAX_PAYLOAD_SIZE]

    payload = remove_oob_header(data)
    if not payload.startswith(STATUS_REPLY_MARKER):
        return None

    # latin-1 maps every byte, so high-bit Quake characters never fail to decode
    lines = payload.decode("latin-1").split("\n")
    if lines[0].strip() != STATUS_REPLY_MARKER.decode("ascii"):
        return None
    return lines[1:]


def is_status_reply(data: bytes) -> bool:
    """Whether a datagram is a framed status reply with attributes."""
    if not has_oob_header(data):
        return False
    lines = _split_reply(data, logger)
    return bool(lines) and bool(parse_info_string(lines[0]))


def _to_int(value: Optional[str], default: int = 0) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def parse_status_reply(
    data: bytes,
    endpoint: Endpoint,
    latency_ms: int,
    log: Optional[logging.Logger] = None,
) -> Optional[ServerRecord]:
    """Parse a status reply into a ServerRecord.

    Args:
        data: Raw datagram, with or without the OOB marker.
        endpoint: Server the reply came from.
        latency_ms: Measured round-trip time.
        log: Logger for diagnostics. Default: module logger.

    Returns:
        The record, or None if the reply is not a status reply or carries
        no attributes.
    """
    log = log or logger
    lines = _split_reply(data, log)
    if not lines:
        log.debug("%s: reply is not a status reply", endpoint)
        return None

    attributes = parse_info_string(lines[0])
    if not attributes:
        log.debug("%s: status reply has no attributes", endpoint)
        return None

    players: list[PlayerEntry] = []
    for line in lines[1:]:
        if not line.strip():
            continue
        if len(players) >= MAX_PLAYERS:
            log.debug("%s: player list capped at %d", endpoint, MAX_PLAYERS)
            break
        player = parse_player_line(line)
        if player is not None:
            players.append(player)

    current_players = _to_int(attributes.get("clients"), default=-1)
    if current_players < 0:
        current_players = len(players)

    return ServerRecord(
        endpoint=endpoint,
        hostname=attributes.get("hostname") or DEFAULT_HOSTNAME,
        map_name=attributes.get("mapname", ""),
        mod=attributes.get("gamename") or attributes.get("game") or DEFAULT_MOD,
        current_players=current_players,
        max_players=max(0, _to_int(attributes.get("maxclients"))),
        latency_ms=max(0, int(latency_ms)),
        players=tuple(players),
        attributes=attributes,
    )
