"""Out-of-band (OOB) packet framing.

Control datagrams of the Quake II protocol family start with four 0xFF bytes,
which separates them from in-game traffic on the same port.
"""

OOB_HEADER = b"\xff\xff\xff\xff"

# Command and reply markers
MASTER_QUERY_COMMAND = "query"
STATUS_COMMAND = "status"
MASTER_REPLY_MARKER = b"servers"
STATUS_REPLY_MARKER = b"print"


def prepend_oob_header(payload: bytes) -> bytes:
    """Frame a payload as an OOB packet."""
    return OOB_HEADER + bytes(payload)


def has_oob_header(data: bytes) -> bool:
    """Whether the first four bytes are the OOB marker."""
    return len(data) >= 4 and data[:4] == OOB_HEADER


def remove_oob_header(data: bytes) -> bytes:
    """Strip the OOB marker if present; otherwise return data unchanged."""
    if not has_oob_header(data):
        return data
    return data[4:]


def build_command(command: str, terminator: bytes = b"\n") -> bytes:
    """Build a framed, newline-terminated OOB command datagram.

    Args:
        command: Command text, e.g. ``"status"``.
        terminator: Bytes appended after the command.

    Returns:
        The complete datagram.
    """
    return prepend_oob_header(command.encode("ascii") + terminator)
