"""Discovery module - UDP master server and LAN broadcast sources."""

from .deadline import Deadline
from .lan_broadcast import LanBroadcastClient
from .master_client import MasterServerClient, parse_master_response
from .udp_socket import POLL_INTERVAL, open_udp_socket, receive_datagram

__all__ = [
    "Deadline",
    "LanBroadcastClient",
    "MasterServerClient",
    "parse_master_response",
    "POLL_INTERVAL",
    "open_udp_socket",
    "receive_datagram",
]
