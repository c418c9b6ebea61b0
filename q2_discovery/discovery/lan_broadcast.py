"""LAN broadcast discovery.

Broadcasts the OOB ``status`` query on the local subnet and collects the
servers that answer during a fixed listen window. A valid answer is a normal
status reply; the sender's address becomes the discovered endpoint.
"""

import logging
from typing import Optional

from ..cancellation import CancellationToken, OperationCancelled
from ..config.schema import DiscoveryConfig
from ..models import Endpoint
from ..protocol.packet import STATUS_COMMAND, build_command
from ..protocol.status import is_status_reply
from .deadline import Deadline
from .udp_socket import open_udp_socket, receive_datagram

STATUS_QUERY = build_command(STATUS_COMMAND)


class LanBroadcastClient:
    """Finds game servers on the local subnet via UDP broadcast."""

    def __init__(self, config: DiscoveryConfig, logger: Optional[logging.Logger] = None):
        """Initialize LAN broadcast client.

        Args:
            config: Discovery configuration (broadcast address, ports, window).
            logger: Logger for diagnostics. Default: module logger.
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

    def discover_servers(self, cancel: Optional[CancellationToken] = None) -> list[Endpoint]:
        """Broadcast a status query and collect replies.

        Args:
            cancel: Cancellation token for the current discovery cycle.

        Returns:
            Endpoints that answered, deduplicated by address:port, in the
            order they first replied. Socket errors (for example broadcast
            not permitted) end collection early instead of raising.
        """
        cancel = cancel or CancellationToken()
        discovered: dict[str, Endpoint] = {}
        target = self.config.lan_broadcast_address

        if not self.config.lan_ports:
            self.logger.warning("LAN broadcast enabled but no ports configured")
            return []

        try:
            cancel.raise_if_cancelled()
            deadline = Deadline(self.config.lan_timeout).start()

            with open_udp_socket(broadcast=True) as sock:
                for port in self.config.lan_ports:
                    sock.sendto(STATUS_QUERY, (target, port))
                self.logger.info(
                    "Broadcast status query to %s on port(s) %s (%.1fs window)",
                    target, ", ".join(str(p) for p in self.config.lan_ports),
                    self.config.lan_timeout,
                )

                while True:
                    reply = receive_datagram(sock, deadline, cancel)
                    if reply is None:
                        break

                    data, addr = reply
                    if not is_status_reply(data):
                        self.logger.debug("Ignoring non-status datagram from %s:%s", addr[0], addr[1])
                        continue

                    endpoint = Endpoint(addr[0], addr[1])
                    if endpoint.key not in discovered:
                        discovered[endpoint.key] = endpoint
                        self.logger.debug("LAN server found: %s", endpoint)

        except OperationCancelled:
            self.logger.info("LAN broadcast cancelled")
        except OSError as e:
            self.logger.warning("LAN broadcast failed: %s", e)

        self.logger.info("LAN broadcast discovered %d server(s)", len(discovered))
        return list(discovered.values())
