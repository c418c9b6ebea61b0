"""Big-endian field decoding for binary server lists."""

import ipaddress
from typing import Iterator, Optional

from ..models import Endpoint

# 4-byte IPv4 address + 2-byte port
ENDPOINT_RECORD_SIZE = 6

# Upper bound on endpoints accepted from one master response
MAX_SERVERS_PER_RESPONSE = 10000


def read_big_endian_uint16(buf: bytes, offset: int) -> int:
    """Read an unsigned 16-bit big-endian integer.

    Raises:
        IndexError: If fewer than two bytes are available at offset.
    """
    if offset < 0 or offset + 2 > len(buf):
        raise IndexError(f"uint16 read at {offset} past end of {len(buf)}-byte buffer")
    return (buf[offset] << 8) | buf[offset + 1]


def parse_endpoint(buf: bytes, offset: int) -> Optional[Endpoint]:
    """Decode an IPv4 address and port from a 6-byte record.

    Returns:
        The endpoint, or None if fewer than 6 bytes remain at offset.
        Callers treat None as "no more records".
    """
    if offset < 0 or len(buf) < offset + ENDPOINT_RECORD_SIZE:
        return None
    address = ipaddress.IPv4Address(bytes(buf[offset:offset + 4]))
    port = read_big_endian_uint16(buf, offset + 4)
    return Endpoint(str(address), port)


def is_zero_endpoint(endpoint: Endpoint) -> bool:
    return endpoint.port == 0 and endpoint.host == "0.0.0.0"


def iter_endpoints(
    buf: bytes,
    offset: int = 0,
    chunk_size: int = ENDPOINT_RECORD_SIZE,
    stop_at_zero: bool = False,
) -> Iterator[Endpoint]:
    """Walk fixed-size endpoint records.

    A short trailing stride is discarded. Chunk sizes larger than 6 read the
    endpoint from the first 6 bytes of each stride; smaller ones yield nothing.

    Args:
        buf: Raw bytes.
        offset: Where the first record starts.
        chunk_size: Stride between records.
        stop_at_zero: End the walk at a ``0.0.0.0:0`` sentinel record.
    """
    if chunk_size < ENDPOINT_RECORD_SIZE:
        return

    while offset + chunk_size <= len(buf):
        endpoint = parse_endpoint(buf, offset)
        if endpoint is None:
            break
        if stop_at_zero and is_zero_endpoint(endpoint):
            break
        yield endpoint
        offset += chunk_size
