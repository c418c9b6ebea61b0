"""Shared fixtures: loopback UDP responders and record builders."""

import socket
import threading
import time
from typing import Callable, Optional

import pytest

from q2_discovery.models import Endpoint, PlayerEntry, ServerRecord

STATUS_REPLY = (
    b"\xff\xff\xff\xffprint\n"
    b"\\hostname\\^1Red ^7Server\\mapname\\q2dm1\\gamename\\ctf\\maxclients\\16\\cheats\\0\n"
    b'12 48 "alice"\n'
    b'3 102 "^2bob"\n'
    b'0 999 "carol"\n'
)


class FakeUdpServer:
    """UDP responder on 127.0.0.1.

    ``respond`` maps each received datagram to a list of replies (possibly
    empty). Replies are sent back to the sender after ``delay`` seconds.
    """

    def __init__(
        self,
        respond: Optional[Callable[[bytes], list[bytes]]] = None,
        delay: float = 0.0,
    ):
        self.respond = respond
        self.delay = delay
        self.received: list[bytes] = []
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.settimeout(0.05)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    @property
    def port(self) -> int:
        return self._sock.getsockname()[1]

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint("127.0.0.1", self.port)

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                data, addr = self._sock.recvfrom(65535)
            except socket.timeout:
                continue
            except OSError:
                break
            self.received.append(data)
            if self.respond is None:
                continue
            if self.delay:
                time.sleep(self.delay)
            for reply in self.respond(data):
                self._sock.sendto(reply, addr)

    def close(self) -> None:
        self._stop.set()
        self._thread.join(timeout=2)
        self._sock.close()


@pytest.fixture
def udp_server():
    """Factory for FakeUdpServer instances, all closed at teardown."""
    servers: list[FakeUdpServer] = []

    def make(respond=None, delay: float = 0.0) -> FakeUdpServer:
        server = FakeUdpServer(respond, delay)
        servers.append(server)
        return server

    yield make

    for server in servers:
        server.close()


@pytest.fixture
def game_server(udp_server):
    """A fake game server answering status queries with STATUS_REPLY."""
    return udp_server(lambda data: [STATUS_REPLY] if b"status" in data else [])


@pytest.fixture
def silent_server(udp_server):
    """A bound UDP port that never replies."""
    return udp_server()


def make_record(endpoint: Endpoint, players: int = 0, latency_ms: int = 50, **kwargs) -> ServerRecord:
    values = dict(
        endpoint=endpoint,
        hostname=f"server {endpoint.port}",
        map_name="q2dm1",
        mod="baseq2",
        current_players=players,
        max_players=16,
        latency_ms=latency_ms,
        players=tuple(PlayerEntry(f"p{i}", i, 50) for i in range(players)),
        attributes={"hostname": f"server {endpoint.port}"},
    )
    values.update(kwargs)
    return ServerRecord(**values)


def endpoints(count: int, base_port: int = 27910) -> list[Endpoint]:
    return [Endpoint(f"10.0.{i // 250}.{i % 250 + 1}", base_port) for i in range(count)]
