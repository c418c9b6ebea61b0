"""Tests for the discovery cycle executor and its JSON report."""

import json
from unittest.mock import MagicMock

from conftest import make_record

from q2_discovery.cancellation import CancellationToken
from q2_discovery.config import DiscoveryConfig
from q2_discovery.models import Endpoint
from q2_discovery.reporting import JsonReporter
from q2_discovery.runner.executor import (
    SOURCE_EXTRA,
    SOURCE_HTTP_MASTER,
    SOURCE_LAN,
    SOURCE_UDP_MASTER,
    CycleResult,
    DiscoveryExecutor,
)
from q2_discovery.runner.prober import GameServerProbe

A = Endpoint("10.0.0.1", 27910)
B = Endpoint("10.0.0.2", 27910)
C = Endpoint("10.0.0.3", 27910)
D = Endpoint("192.168.1.5", 27910)


class FakeProbe(GameServerProbe):
    """Answers for every endpoint except the ones listed as silent."""

    def __init__(self, config, silent=(), players=None):
        super().__init__(config)
        self.silent = set(silent)
        self.players = players or {}
        self.probed = []

    def probe_server(self, endpoint, cancel=None):
        self.probed.append(endpoint)
        if endpoint in self.silent:
            return None
        return make_record(endpoint, players=self.players.get(endpoint, 0))


def source(*endpoints, error=None):
    client = MagicMock()
    if error is not None:
        client.query_servers.side_effect = error
        client.discover_servers.side_effect = error
    else:
        client.query_servers.return_value = list(endpoints)
        client.discover_servers.return_value = list(endpoints)
    return client


def make_executor(config, http=None, udp=None, lan=None, probe=None, **kwargs):
    return DiscoveryExecutor(
        config,
        http_client=http or source(),
        master_client=udp or source(),
        lan_client=lan or source(),
        probe=probe or FakeProbe(config),
        **kwargs,
    )


class TestGatherEndpoints:

    def test_http_and_lan_by_default(self):
        config = DiscoveryConfig()
        executor = make_executor(config, http=source(A, B), udp=source(C), lan=source(D))

        sources = executor.gather_endpoints()

        assert sources == {SOURCE_HTTP_MASTER: [A, B], SOURCE_LAN: [D]}
        executor.master_client.query_servers.assert_not_called()

    def test_udp_master_when_http_disabled(self):
        config = DiscoveryConfig(use_http_master=False, enable_lan_broadcast=False)
        executor = make_executor(config, http=source(A), udp=source(C))

        assert executor.gather_endpoints() == {SOURCE_UDP_MASTER: [C]}
        executor.http_client.query_servers.assert_not_called()

    def test_udp_fallback_when_http_empty(self):
        config = DiscoveryConfig(udp_master_fallback=True, enable_lan_broadcast=False)
        executor = make_executor(config, http=source(), udp=source(C))

        assert executor.gather_endpoints() == {SOURCE_HTTP_MASTER: [], SOURCE_UDP_MASTER: [C]}

    def test_no_fallback_when_http_has_results(self):
        config = DiscoveryConfig(udp_master_fallback=True, enable_lan_broadcast=False)
        executor = make_executor(config, http=source(A), udp=source(C))

        assert executor.gather_endpoints() == {SOURCE_HTTP_MASTER: [A]}

    def test_extra_servers_resolved(self):
        config = DiscoveryConfig(
            use_http_master=False,
            master_server_address="",
            enable_lan_broadcast=False,
            extra_servers=["10.0.0.1", "10.0.0.2:27910", "bad address:"],
        )
        executor = make_executor(config, udp=source())

        sources = executor.gather_endpoints()

        assert sources[SOURCE_EXTRA] == [A, B]

    def test_failing_source_isolated(self):
        config = DiscoveryConfig()
        executor = make_executor(
            config, http=source(error=RuntimeError("mirror down")), lan=source(D)
        )

        assert executor.gather_endpoints() == {SOURCE_HTTP_MASTER: [], SOURCE_LAN: [D]}


class TestRun:

    def test_cycle_merges_probes_and_sorts(self):
        config = DiscoveryConfig()
        probe = FakeProbe(config, silent=[B], players={C: 4, D: 9})
        streamed = []
        executor = make_executor(
            config,
            http=source(A, B, C),
            lan=source(C, D),
            probe=probe,
            on_record=streamed.append,
        )

        result = executor.run()

        assert result.endpoints_by_source == {SOURCE_HTTP_MASTER: 3, SOURCE_LAN: 2}
        assert result.discovered == 4
        assert result.attempted == 4
        assert sorted(probe.probed, key=str) == sorted([A, B, C, D], key=str)
        assert [r.endpoint for r in result.records] == [D, C, A]
        assert result.responded == 3
        assert result.total_players == 13
        assert {r.endpoint for r in streamed} == {A, C, D}
        assert not result.cancelled
        assert result.error is None

    def test_no_sources_no_probes(self):
        config = DiscoveryConfig(
            use_http_master=False, master_server_address="", enable_lan_broadcast=False
        )
        probe = FakeProbe(config)
        result = make_executor(config, udp=source(), probe=probe).run()

        assert result.discovered == 0
        assert result.records == []
        assert probe.probed == []

    def test_cancelled_before_start(self):
        config = DiscoveryConfig()
        probe = FakeProbe(config)
        cancel = CancellationToken()
        cancel.cancel()

        result = make_executor(config, http=source(A), probe=probe).run(cancel)

        assert result.cancelled
        assert result.records == []
        assert probe.probed == []

    def test_unexpected_error_reported(self):
        config = DiscoveryConfig()
        probe = MagicMock()
        probe.probe_servers.side_effect = RuntimeError("pool exploded")

        result = make_executor(config, http=source(A), probe=probe).run()

        assert result.error == "Unexpected error: RuntimeError: pool exploded"
        assert result.records == []

    def test_context_manager_closes_http_client(self):
        config = DiscoveryConfig()
        executor = make_executor(config)
        with executor:
            pass
        executor.http_client.close.assert_called_once_with()


class TestJsonReport:

    def make_result(self, **overrides):
        values = dict(
            endpoints_by_source={SOURCE_HTTP_MASTER: 2},
            discovered=2,
            attempted=2,
            records=[make_record(A, players=3)],
            duration_ms=1200,
        )
        values.update(overrides)
        return CycleResult(**values)

    def test_generate(self):
        report = JsonReporter().generate(self.make_result())

        assert report["status"] == "completed"
        assert report["summary"] == {
            "sources": {SOURCE_HTTP_MASTER: 2},
            "discovered": 2,
            "attempted": 2,
            "responded": 1,
            "players": 3,
            "duration_ms": 1200,
        }
        assert report["servers"][0]["address"] == A.key
        assert report["error"] is None

    def test_status_values(self):
        reporter = JsonReporter()
        assert reporter.generate(self.make_result(cancelled=True))["status"] == "cancelled"
        assert reporter.generate(self.make_result(error="boom"))["status"] == "failed"

    def test_cli_envelope(self):
        output = self.make_result().to_cli_json("/tmp/report.json")

        assert output["success"] is True
        assert output["command"] == "refresh"
        assert output["data"]["responded"] == 1
        assert output["data"]["report_path"] == "/tmp/report.json"
        assert output["message"] == "Found 1 active server(s)"

    def test_failed_envelope(self):
        output = self.make_result(error="boom").to_cli_json()
        assert output["success"] is False
        assert output["message"] == "Refresh failed: boom"
        assert "report_path" not in output["data"]

    def test_save(self, tmp_path):
        reporter = JsonReporter()
        path = reporter.save(reporter.generate(self.make_result()), tmp_path / "out" / "report.json")

        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["summary"]["responded"] == 1

    def test_to_json_string(self):
        reporter = JsonReporter()
        report = reporter.generate(self.make_result())
        assert "\n" not in reporter.to_json_string(report, pretty=False)
        assert json.loads(reporter.to_json_string(report))["status"] == "completed"
