"""UDP master server client.

Sends an OOB ``query`` to the configured master server and parses the single
framed reply::

    \\xff\\xff\\xff\\xffservers <6-byte record><6-byte record>...

Each record is a 4-byte IPv4 address and a 2-byte big-endian port. The list
ends at a ``0.0.0.0:0`` sentinel or at the end of the datagram. This source is
best-effort: every failure yields an empty list.
"""

import logging
from itertools import islice
from typing import Optional

from ..cancellation import CancellationToken, OperationCancelled
from ..config.schema import DiscoveryConfig
from ..models import Endpoint
from ..protocol.byte_reader import (
    ENDPOINT_RECORD_SIZE,
    MAX_SERVERS_PER_RESPONSE,
    iter_endpoints,
)
from ..protocol.packet import (
    MASTER_QUERY_COMMAND,
    MASTER_REPLY_MARKER,
    build_command,
    remove_oob_header,
)
from .deadline import Deadline
from .udp_socket import open_udp_socket, receive_datagram, same_host

MASTER_QUERY = build_command(MASTER_QUERY_COMMAND, terminator=b"\n\x00")

_SPACE = ord(" ")
_LINE_BREAKS = b"\n\r"


def parse_master_response(data: bytes) -> Optional[list[Endpoint]]:
    """Parse a master server reply.

    Returns:
        Endpoints in reply order (at most MAX_SERVERS_PER_RESPONSE), or None
        if the reply does not carry the ``servers`` marker.
    """
    payload = remove_oob_header(data)
    if not payload.startswith(MASTER_REPLY_MARKER):
        return None

    offset = len(MASTER_REPLY_MARKER)
    if offset < len(payload) and payload[offset] == _SPACE:
        offset += 1
    elif (
        offset < len(payload)
        and payload[offset] in _LINE_BREAKS
        and (len(payload) - offset) % ENDPOINT_RECORD_SIZE != 0
        and (len(payload) - offset - 1) % ENDPOINT_RECORD_SIZE == 0
    ):
        # A line break only counts as a separator when skipping it realigns the records
        offset += 1

    return list(islice(
        iter_endpoints(payload, offset, stop_at_zero=True),
        MAX_SERVERS_PER_RESPONSE,
    ))


class MasterServerClient:
    """Queries a UDP master server for game server endpoints."""

    def __init__(self, config: DiscoveryConfig, logger: Optional[logging.Logger] = None):
        """Initialize master server client.

        Args:
            config: Discovery configuration (master address, port, timeout).
            logger: Logger for diagnostics. Default: module logger.
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

    def query_servers(self, cancel: Optional[CancellationToken] = None) -> list[Endpoint]:
        """Query the master server once.

        Args:
            cancel: Cancellation token for the current discovery cycle.

        Returns:
            Server endpoints; empty on timeout, error, or cancellation.
        """
        cancel = cancel or CancellationToken()
        address = (self.config.master_server_address or "").strip()
        port = self.config.master_server_port

        if not address:
            self.logger.warning("UDP master server address is not configured")
            return []
        if not 1 <= port <= 0xFFFF:
            self.logger.error("Invalid UDP master server port: %s", port)
            return []

        try:
            cancel.raise_if_cancelled()
            master = Endpoint.resolve(address, default_port=port)
            self.logger.info("Querying UDP master server %s", master)

            deadline = Deadline(self.config.master_timeout).start()
            with open_udp_socket(ipv6=master.is_ipv6) as sock:
                sock.sendto(MASTER_QUERY, master.sockaddr)
                reply = receive_datagram(
                    sock, deadline, cancel,
                    accept=lambda addr: same_host(addr, master),
                )
        except OperationCancelled:
            self.logger.info("UDP master query cancelled")
            return []
        except ValueError as e:
            self.logger.error("Cannot resolve UDP master server '%s': %s", address, e)
            return []
        except OSError as e:
            self.logger.warning("UDP master server query failed: %s", e)
            return []

        if reply is None:
            self.logger.warning(
                "UDP master server %s did not reply within %.1fs",
                master, self.config.master_timeout,
            )
            return []

        servers = parse_master_response(reply[0])
        if servers is None:
            self.logger.warning("UDP master server %s sent an unrecognized reply", master)
            return []

        self.logger.info("UDP master server returned %d server(s)", len(servers))
        return servers
