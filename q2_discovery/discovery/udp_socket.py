"""Scoped UDP socket helpers with cancellation-aware receive."""

import ipaddress
import socket
from typing import Callable, Optional

from ..cancellation import CancellationToken
from ..models import Endpoint
from .deadline import Deadline

# Largest possible UDP payload
MAX_DATAGRAM_SIZE = 65535

# Cancellation is checked at least this often while waiting for replies
POLL_INTERVAL = 0.1

Address = tuple  # (host, port[, flowinfo, scope_id])


def open_udp_socket(ipv6: bool = False, broadcast: bool = False) -> socket.socket:
    """Create an unbound UDP socket. Use it in a ``with`` block."""
    family = socket.AF_INET6 if ipv6 else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_DGRAM)
    if broadcast:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
    return sock


def same_host(addr: Address, endpoint: Endpoint) -> bool:
    """Whether a recvfrom() address belongs to the endpoint's host."""
    try:
        # Strip IPv6 zone ids like fe80::1%eth0
        return ipaddress.ip_address(addr[0].split("%")[0]) == ipaddress.ip_address(endpoint.host)
    except ValueError:
        return False


def same_endpoint(addr: Address, endpoint: Endpoint) -> bool:
    return addr[1] == endpoint.port and same_host(addr, endpoint)


def receive_datagram(
    sock: socket.socket,
    deadline: Deadline,
    cancel: CancellationToken,
    accept: Optional[Callable[[Address], bool]] = None,
) -> Optional[tuple[bytes, Address]]:
    """Wait for the next acceptable datagram.

    Datagrams rejected by ``accept`` are dropped and waiting continues.

    Returns:
        ``(data, address)``, or None once the deadline expires.

    Raises:
        OperationCancelled: If cancel is triggered while waiting.
        OSError: On socket errors other than a receive timeout.
    """
    while True:
        cancel.raise_if_cancelled()
        remaining = deadline.remaining
        if remaining <= 0:
            return None

        sock.settimeout(min(POLL_INTERVAL, remaining))
        try:
            data, addr = sock.recvfrom(MAX_DATAGRAM_SIZE)
        except socket.timeout:
            continue

        if accept is None or accept(addr):
            return data, addr
