"""Server status prober.

Fans out one OOB ``status`` query per endpoint with a bounded number of
probes in flight. The bound is congestion control: a burst of hundreds of
simultaneous UDP queries overflows consumer router queues and the replies
are lost. Each probe has its own timeout measured from send time and is
never retried; a lost reply simply yields no record this cycle.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ..cancellation import CancellationToken, OperationCancelled
from ..config.schema import DiscoveryConfig
from ..discovery.deadline import Deadline
from ..discovery.udp_socket import (
    POLL_INTERVAL,
    open_udp_socket,
    receive_datagram,
    same_endpoint,
)
from ..models import Endpoint, ServerRecord
from ..protocol.packet import STATUS_COMMAND, build_command
from ..protocol.status import parse_status_reply

STATUS_QUERY = build_command(STATUS_COMMAND)

RecordCallback = Callable[[ServerRecord], None]


@dataclass(frozen=True)
class ProbeRequest:
    """One pending probe; the deadline starts when the query is sent."""
    endpoint: Endpoint
    timeout: float

    def start_deadline(self) -> Deadline:
        return Deadline(self.timeout).start()


@dataclass
class ProbeSummary:
    """Outcome counts of one probe batch."""
    attempted: int = 0
    responded: int = 0
    cancelled: bool = False
    duration_ms: int = 0

    @property
    def dropped(self) -> int:
        return self.attempted - self.responded


class GameServerProbe:
    """Queries game servers for their status."""

    def __init__(self, config: DiscoveryConfig, logger: Optional[logging.Logger] = None):
        """Initialize prober.

        Args:
            config: Discovery configuration (probe timeout, concurrency bound).
            logger: Logger for diagnostics. Default: module logger.
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.max_concurrent = max(1, config.max_concurrent_probes)
        self.timeout = config.probe_timeout

    def probe_server(
        self,
        endpoint: Endpoint,
        cancel: Optional[CancellationToken] = None,
    ) -> Optional[ServerRecord]:
        """Probe one server.

        Returns:
            The parsed record, or None on timeout, socket error, malformed
            reply or cancellation.
        """
        return self._execute(ProbeRequest(endpoint, self.timeout), cancel or CancellationToken())

    def _execute(self, request: ProbeRequest, cancel: CancellationToken) -> Optional[ServerRecord]:
        endpoint = request.endpoint
        try:
            cancel.raise_if_cancelled()
            with open_udp_socket(ipv6=endpoint.is_ipv6) as sock:
                deadline = request.start_deadline()
                sock.sendto(STATUS_QUERY, endpoint.sockaddr)
                reply = receive_datagram(
                    sock, deadline, cancel,
                    accept=lambda addr: same_endpoint(addr, endpoint),
                )
                received_at = time.monotonic()
        except OperationCancelled:
            return None
        except OSError as e:
            self.logger.debug("%s: socket error: %s", endpoint, e)
            return None

        if reply is None:
            self.logger.debug("%s: no reply within %.1fs", endpoint, request.timeout)
            return None

        latency_ms = int((received_at - deadline.started_at) * 1000)
        try:
            return parse_status_reply(reply[0], endpoint, latency_ms, self.logger)
        except ValueError as e:
            self.logger.debug("%s: unparseable status reply: %s", endpoint, e)
            return None

    def probe_servers(
        self,
        endpoints: Iterable[Endpoint],
        on_record: RecordCallback,
        cancel: Optional[CancellationToken] = None,
    ) -> ProbeSummary:
        """Probe every endpoint with at most ``max_concurrent`` in flight.

        ``on_record`` is called once per parsed record as soon as it
        arrives, in completion order, never concurrently, and never after
        cancellation. Endpoints that time out or send garbage are dropped.

        Args:
            endpoints: Unique endpoints to probe.
            on_record: Receives each ServerRecord.
            cancel: Cancellation token; when triggered, no new probes start,
                in-flight probes are abandoned and the call returns.

        Returns:
            ProbeSummary with attempted/responded counts.
        """
        cancel = cancel or CancellationToken()
        endpoints = list(endpoints)
        summary = ProbeSummary()
        start_time = time.monotonic()

        if not endpoints:
            return summary

        limiter = threading.BoundedSemaphore(self.max_concurrent)
        emit_lock = threading.Lock()

        def emit(record: ServerRecord) -> None:
            with emit_lock:
                if cancel.is_cancelled:
                    return
                summary.responded += 1
                try:
                    on_record(record)
                except Exception:
                    self.logger.error("Record callback failed for %s", record.key, exc_info=True)

        def run(endpoint: Endpoint) -> None:
            try:
                record = self.probe_server(endpoint, cancel)
            except Exception:
                # A broken reply must never take down the batch
                self.logger.warning("Probe of %s failed", endpoint, exc_info=True)
                record = None
            finally:
                limiter.release()
            if record is not None:
                emit(record)

        self.logger.info(
            "Probing %d server(s), %d at a time, %.1fs timeout",
            len(endpoints), self.max_concurrent, self.timeout,
        )

        workers = min(self.max_concurrent, len(endpoints))
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="q2-probe")
        futures = []
        try:
            for endpoint in endpoints:
                if not self._acquire(limiter, cancel):
                    break
                summary.attempted += 1
                futures.append(pool.submit(run, endpoint))

            pending = set(futures)
            while pending and not cancel.is_cancelled:
                _, pending = wait(pending, timeout=POLL_INTERVAL)
        finally:
            # In-flight probes observe the token within POLL_INTERVAL and close their sockets
            pool.shutdown(wait=True, cancel_futures=True)

        summary.cancelled = cancel.is_cancelled
        summary.duration_ms = int((time.monotonic() - start_time) * 1000)
        self.logger.info(
            "Probe batch %s: %d of %d server(s) responded in %dms",
            "cancelled" if summary.cancelled else "complete",
            summary.responded, summary.attempted, summary.duration_ms,
        )
        return summary

    @staticmethod
    def _acquire(limiter: threading.BoundedSemaphore, cancel: CancellationToken) -> bool:
        """Wait for a free probe slot; False if cancelled first."""
        while not cancel.is_cancelled:
            if limiter.acquire(timeout=POLL_INTERVAL):
                if cancel.is_cancelled:
                    limiter.release()
                    return False
                return True
        return False
