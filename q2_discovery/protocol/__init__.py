"""Protocol module - OOB framing, binary server lists and status replies."""

from .byte_reader import (
    ENDPOINT_RECORD_SIZE,
    iter_endpoints,
    parse_endpoint,
    read_big_endian_uint16,
)
from .packet import (
    OOB_HEADER,
    build_command,
    has_oob_header,
    prepend_oob_header,
    remove_oob_header,
)
from .status import (
    MAX_ATTRIBUTES,
    MAX_PAYLOAD_SIZE,
    MAX_PLAYERS,
    is_status_reply,
    parse_info_string,
    parse_player_line,
    parse_status_reply,
)

__all__ = [
    "ENDPOINT_RECORD_SIZE",
    "iter_endpoints",
    "parse_endpoint",
    "read_big_endian_uint16",
    "OOB_HEADER",
    "build_command",
    "has_oob_header",
    "prepend_oob_header",
    "remove_oob_header",
    "MAX_ATTRIBUTES",
    "MAX_PAYLOAD_SIZE",
    "MAX_PLAYERS",
    "is_status_reply",
    "parse_info_string",
    "parse_player_line",
    "parse_status_reply",
]
