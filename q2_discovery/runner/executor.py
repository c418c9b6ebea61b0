"""Discovery cycle executor - orchestrates one server list refresh.

Coordinates the full cycle:
1. Gather endpoints from the enabled sources (HTTP master, UDP master,
   LAN broadcast, manually added servers), concurrently
2. Merge and deduplicate
3. Probe every endpoint, streaming records to the caller
4. Summarize the cycle

Every source is isolated: a failing source contributes an empty list and the
cycle carries on with the others.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

import requests

from ..cancellation import CancellationToken
from ..config.schema import DiscoveryConfig
from ..discovery.lan_broadcast import LanBroadcastClient
from ..discovery.master_client import MasterServerClient
from ..models import Endpoint, ServerRecord
from ..reporting.json_reporter import JsonReporter
from ..transport.http_master import HttpMasterServerClient
from .merge import merge_endpoints
from .prober import GameServerProbe, RecordCallback
from .result_collector import RecordCollector

SOURCE_HTTP_MASTER = "http_master"
SOURCE_UDP_MASTER = "udp_master"
SOURCE_LAN = "lan"
SOURCE_EXTRA = "extra"

# Merge order; all sources are equally trusted
SOURCE_ORDER = (SOURCE_HTTP_MASTER, SOURCE_UDP_MASTER, SOURCE_LAN, SOURCE_EXTRA)


@dataclass
class CycleResult:
    """Complete result of one discovery cycle."""
    endpoints_by_source: dict[str, int] = field(default_factory=dict)
    discovered: int = 0
    attempted: int = 0
    records: list[ServerRecord] = field(default_factory=list)
    cancelled: bool = False
    duration_ms: int = 0
    error: Optional[str] = None

    @property
    def responded(self) -> int:
        return len(self.records)

    @property
    def total_players(self) -> int:
        return sum(r.current_players for r in self.records)

    def to_cli_json(self, report_path: Optional[str] = None) -> dict:
        """Convert to the CLI JSON output format."""
        reporter = JsonReporter()
        return reporter.generate_cli_output(reporter.generate(self), report_path)


class DiscoveryExecutor:
    """Runs discovery cycles.

    One executor can run any number of cycles; the HTTP session it is given
    is reused across all of them.
    """

    def __init__(
        self,
        config: DiscoveryConfig,
        http_session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
        on_record: Optional[RecordCallback] = None,
        http_client: Optional[HttpMasterServerClient] = None,
        master_client: Optional[MasterServerClient] = None,
        lan_client: Optional[LanBroadcastClient] = None,
        probe: Optional[GameServerProbe] = None,
    ):
        """Initialize discovery executor.

        Args:
            config: Discovery configuration, read-only during a cycle.
            http_session: Shared HTTP session for the HTTP master source.
            logger: Logger handed to every component. Default: module logger.
            on_record: Receives each ServerRecord as soon as it is parsed.
            http_client: Pre-built HTTP master client (skips construction).
            master_client: Pre-built UDP master client.
            lan_client: Pre-built LAN broadcast client.
            probe: Pre-built status prober.
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.on_record = on_record
        self.http_client = http_client or HttpMasterServerClient(
            config, session=http_session, logger=self.logger
        )
        self.master_client = master_client or MasterServerClient(config, logger=self.logger)
        self.lan_client = lan_client or LanBroadcastClient(config, logger=self.logger)
        self.probe = probe or GameServerProbe(config, logger=self.logger)

    def gather_endpoints(
        self, cancel: Optional[CancellationToken] = None
    ) -> dict[str, list[Endpoint]]:
        """Query every enabled source concurrently.

        Returns:
            Endpoint lists keyed by source name, in merge order.
        """
        cancel = cancel or CancellationToken()
        config = self.config
        sources: dict[str, Callable[[CancellationToken], list[Endpoint]]] = {}

        if config.http_master_enabled:
            sources[SOURCE_HTTP_MASTER] = self.http_client.query_servers
        if not config.use_http_master:
            sources[SOURCE_UDP_MASTER] = self.master_client.query_servers
        if config.enable_lan_broadcast:
            sources[SOURCE_LAN] = self.lan_client.discover_servers
        if config.extra_servers:
            sources[SOURCE_EXTRA] = self._resolve_extra_servers

        results: dict[str, list[Endpoint]] = {}
        if sources:
            with ThreadPoolExecutor(
                max_workers=len(sources), thread_name_prefix="q2-source"
            ) as pool:
                futures = {
                    name: pool.submit(self._run_source, name, query, cancel)
                    for name, query in sources.items()
                }
                results = {name: future.result() for name, future in futures.items()}

        if (
            config.use_http_master
            and config.udp_master_fallback
            and not results.get(SOURCE_HTTP_MASTER)
            and not cancel.is_cancelled
        ):
            self.logger.info("HTTP master returned nothing, falling back to UDP master")
            results[SOURCE_UDP_MASTER] = self._run_source(
                SOURCE_UDP_MASTER, self.master_client.query_servers, cancel
            )

        return {name: results[name] for name in SOURCE_ORDER if name in results}

    def run(self, cancel: Optional[CancellationToken] = None) -> CycleResult:
        """Run one discovery cycle.

        Never raises for network or parse failures; cancellation ends the
        cycle early with whatever records had already arrived.

        Returns:
            CycleResult with counts and the collected records.
        """
        cancel = cancel or CancellationToken()
        start_time = time.monotonic()
        result = CycleResult()
        collector = RecordCollector()

        def on_record(record: ServerRecord) -> None:
            collector.add(record)
            if self.on_record:
                self.on_record(record)

        self.logger.info("=== Starting server refresh ===")
        try:
            sources = self.gather_endpoints(cancel)
            result.endpoints_by_source = {name: len(eps) for name, eps in sources.items()}

            endpoints = merge_endpoints(*sources.values())
            result.discovered = len(endpoints)
            self.logger.info("Found %d unique server(s). Probing...", len(endpoints))

            if not cancel.is_cancelled:
                summary = self.probe.probe_servers(endpoints, on_record, cancel)
                result.attempted = summary.attempted

        except Exception as e:
            result.error = f"Unexpected error: {type(e).__name__}: {e}"
            self.logger.error("Discovery cycle failed: %s", e, exc_info=True)

        finally:
            result.records = collector.records()
            result.cancelled = cancel.is_cancelled
            result.duration_ms = int((time.monotonic() - start_time) * 1000)

        if result.cancelled:
            self.logger.info("Refresh cancelled after %d server(s)", result.responded)
        else:
            self.logger.info("Found %d active server(s)", result.responded)
        return result

    def close(self) -> None:
        """Release the HTTP session if the HTTP client owns it."""
        self.http_client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def _run_source(
        self,
        name: str,
        query: Callable[[CancellationToken], list[Endpoint]],
        cancel: CancellationToken,
    ) -> list[Endpoint]:
        """Run one source, converting any failure into an empty list."""
        try:
            endpoints = list(query(cancel))
        except Exception as e:
            self.logger.error("Discovery source '%s' failed: %s", name, e, exc_info=True)
            return []
        self.logger.info("Source '%s' returned %d server(s)", name, len(endpoints))
        return endpoints

    def _resolve_extra_servers(self, cancel: CancellationToken) -> list[Endpoint]:
        """Resolve manually added server addresses."""
        endpoints = []
        for address in self.config.extra_servers:
            if cancel.is_cancelled:
                break
            try:
                endpoints.append(Endpoint.resolve(address))
            except ValueError as e:
                self.logger.warning("Skipping server address '%s': %s", address, e)
        return endpoints
