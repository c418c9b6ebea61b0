"""CLI entry point for q2-discovery.

Usage:
    q2-discovery [--config FILE] [--verbose] refresh [options]
    q2-discovery master [--http | --udp]
    q2-discovery lan
    q2-discovery probe ADDRESS [--players]
    q2-discovery config [--validate]
"""

import json
import sys
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from pathlib import Path
from typing import Callable, Optional, TypeVar

import click
import yaml

from . import __version__
from .cancellation import CancellationToken
from .config import DiscoveryConfig, load_config, validate_config
from .diagnostics import configure_logging
from .discovery import LanBroadcastClient, MasterServerClient
from .models import Endpoint, ServerRecord
from .reporting import JsonReporter
from .runner import DiscoveryExecutor, GameServerProbe
from .transport import HttpMasterServerClient, create_http_session

T = TypeVar("T")

EXIT_NO_RESULT = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def run_interruptible(operation: Callable[[CancellationToken], T]) -> tuple[T, bool]:
    """Run an operation in a worker thread so Ctrl-C can cancel it.

    Returns:
        ``(result, interrupted)``. On Ctrl-C the token is cancelled and the
        partial result is still returned.
    """
    cancel = CancellationToken()
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="q2-cli") as pool:
        future = pool.submit(operation, cancel)
        try:
            while True:
                try:
                    return future.result(timeout=0.2), False
                except FuturesTimeout:
                    continue
        except KeyboardInterrupt:
            click.echo("Cancelling...", err=True)
            cancel.cancel()
            return future.result(), True


def format_server_table(records: list[ServerRecord]) -> str:
    """Render records as a fixed-width text table."""
    lines = [
        f"{'HOSTNAME':<32} {'MAP':<12} {'MOD':<10} {'PLAYERS':>7} {'PING':>5}  ADDRESS"
    ]
    for r in records:
        players = f"{r.current_players}/{r.max_players}"
        lines.append(
            f"{r.plain_hostname[:32]:<32} {r.map_name[:12]:<12} {r.mod[:10]:<10} "
            f"{players:>7} {r.latency_ms:>5}  {r.key}"
        )
    return "\n".join(lines)


def _load(ctx: click.Context) -> DiscoveryConfig:
    """Load and validate configuration, exiting with status 2 on errors."""
    config_path: Optional[str] = ctx.obj.get("config_path")
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Configuration error: {e}", err=True)
        ctx.exit(EXIT_CONFIG_ERROR)

    validation = validate_config(config)
    for warning in validation.warnings:
        click.echo(f"Warning: {warning.path}: {warning.message}", err=True)
    if not validation.valid:
        errors_str = "; ".join(f"{e.path}: {e.message}" for e in validation.errors)
        click.echo(f"Invalid configuration: {errors_str}", err=True)
        ctx.exit(EXIT_CONFIG_ERROR)
    return config


@click.group()
@click.version_option(__version__, prog_name="q2-discovery")
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="YAML configuration file.")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], verbose: bool):
    """Discover and probe Quake II servers."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    configure_logging(verbose=verbose)


@cli.command()
@click.option("--no-http", is_flag=True, help="Skip the HTTP master server.")
@click.option("--no-lan", is_flag=True, help="Skip LAN broadcast discovery.")
@click.option("--udp-master", is_flag=True, help="Query the UDP master server instead of HTTP.")
@click.option("--timeout", "timeout_ms", type=click.IntRange(1, 30000),
              help="Probe timeout in milliseconds.")
@click.option("--max-probes", type=click.IntRange(1, 200),
              help="Maximum concurrent probes.")
@click.option("--filter", "filter_text", default="", help="Only show servers matching text.")
@click.option("--json", "as_json", is_flag=True, help="Print the JSON report.")
@click.option("--save-report", type=click.Path(dir_okay=False),
              help="Save the JSON report to a file.")
@click.pass_context
def refresh(ctx, no_http, no_lan, udp_master, timeout_ms, max_probes,
            filter_text, as_json, save_report):
    """Run one discovery cycle and list responding servers."""
    config = _load(ctx)

    changes = {}
    if no_http or udp_master:
        changes["use_http_master"] = False
    if no_lan:
        changes["enable_lan_broadcast"] = False
    if timeout_ms:
        changes["probe_timeout_ms"] = timeout_ms
    if max_probes:
        changes["max_concurrent_probes"] = max_probes
    if changes:
        config = config.replace(**changes)

    session = create_http_session()
    try:
        with DiscoveryExecutor(config, http_session=session) as executor:
            result, interrupted = run_interruptible(executor.run)
    finally:
        session.close()

    reporter = JsonReporter()
    report_path = None
    if save_report:
        report_path = str(reporter.save(reporter.generate(result), Path(save_report)))

    records = [r for r in result.records if r.matches(filter_text)]
    if as_json:
        output = result.to_cli_json(report_path)
        output["data"]["servers"] = [r.to_dict() for r in records]
        click.echo(json.dumps(output, ensure_ascii=False))
    else:
        if records:
            click.echo(format_server_table(records))
        click.echo(
            f"\n{len(records)} server(s) shown, {result.responded} of "
            f"{result.attempted} responded in {result.duration_ms}ms"
        )
        if report_path:
            click.echo(f"Report saved: {report_path}")

    if interrupted:
        ctx.exit(EXIT_INTERRUPTED)
    if result.error:
        click.echo(f"ERROR: {result.error}", err=True)
        ctx.exit(EXIT_NO_RESULT)


@cli.command()
@click.option("--http/--udp", "use_http", default=True,
              help="Query the HTTP mirror (default) or the UDP master.")
@click.pass_context
def master(ctx, use_http):
    """List server addresses from a master server."""
    config = _load(ctx)
    if use_http:
        with HttpMasterServerClient(config) as client:
            servers, _ = run_interruptible(client.query_servers)
    else:
        servers, _ = run_interruptible(MasterServerClient(config).query_servers)

    for endpoint in servers:
        click.echo(endpoint.key)
    click.echo(f"{len(servers)} server(s)", err=True)
    if not servers:
        ctx.exit(EXIT_NO_RESULT)


@cli.command()
@click.pass_context
def lan(ctx):
    """List servers answering a LAN broadcast."""
    config = _load(ctx)
    servers, _ = run_interruptible(LanBroadcastClient(config).discover_servers)
    for endpoint in servers:
        click.echo(endpoint.key)
    click.echo(f"{len(servers)} server(s)", err=True)


@cli.command()
@click.argument("address")
@click.option("--players", "show_players", is_flag=True, help="Also list players.")
@click.option("--json", "as_json", is_flag=True, help="Print the record as JSON.")
@click.pass_context
def probe(ctx, address, show_players, as_json):
    """Probe a single server (host[:port])."""
    config = _load(ctx)
    try:
        endpoint = Endpoint.resolve(address)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="ADDRESS")

    prober = GameServerProbe(config)
    start = time.monotonic()
    record, _ = run_interruptible(lambda cancel: prober.probe_server(endpoint, cancel))
    if record is None:
        elapsed = time.monotonic() - start
        click.echo(f"No reply from {endpoint} after {elapsed:.1f}s", err=True)
        ctx.exit(EXIT_NO_RESULT)

    if as_json:
        click.echo(json.dumps(record.to_dict(), ensure_ascii=False))
        return

    click.echo(format_server_table([record]))
    if show_players:
        click.echo("")
        for player in record.players:
            click.echo(f"  {player.score:>5} {player.time:>5}  {player.plain_name}")


@cli.command(name="config")
@click.option("--validate", "validate_only", is_flag=True,
              help="Only validate; print nothing on success.")
@click.pass_context
def show_config(ctx, validate_only):
    """Print the effective configuration."""
    config = _load(ctx)
    if validate_only:
        click.echo("Configuration is valid")
        return
    click.echo(yaml.safe_dump({"discovery": config.to_dict()}, sort_keys=False), nl=False)


def main():
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    sys.exit(main())
