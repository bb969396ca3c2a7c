"""CLI entry point for vpnspeed."""

from __future__ import annotations

import sys
from datetime import datetime

import click

from vpnspeed import __version__
from vpnspeed.config import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REPEAT,
    DEFAULT_SPEEDTEST_BINARY,
    DEFAULT_VPN_BINARY,
    ENV_SPEEDTEST_BINARY,
    ENV_VPN_BINARY,
    EXAMPLE_INPUT,
    RESULTS_FILE_STAMP,
    RESULTS_FILE_TEMPLATE,
)
from vpnspeed.models import BenchmarkConfig, Mode, RetryPolicy

EPILOG = "\b\nExample:\n  vpnspeed --repeat 10 locations.json\n\n\b\nInput file format example:\n" + "\n".join(
    f"  {line}" for line in EXAMPLE_INPUT.splitlines()
)


def default_results_file(now: datetime | None = None) -> str:
    """Results file name, timestamped at process start."""
    return RESULTS_FILE_TEMPLATE.format(stamp=(now or datetime.now()).strftime(RESULTS_FILE_STAMP))


def describe_run(config: BenchmarkConfig) -> str:
    if config.count == 1:
        return "Running a single speed test per VPN connection"
    if config.mode is Mode.SERIES:
        return f"Running {config.count} speed tests in series"
    return f"Running speed tests with {config.count} parallel tests"


@click.command(epilog=EPILOG, context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("input_file", type=click.Path(dir_okay=False))
@click.option("-s", "--series", is_flag=True, help="Run speed tests in series, one after another (e.g. on a 1Gbps network)")
@click.option("-r", "--repeat", default=DEFAULT_REPEAT, type=click.IntRange(min=1), help="Speed tests per VPN connection", show_default=True)
@click.option("-o", "--output", default=None, help="Results file [default: results-<timestamp>.json]")
@click.option("--connect-timeout", default=None, type=click.FloatRange(min=0, min_open=True), help="Give up waiting for the VPN after this many seconds [default: wait forever]")
@click.option("--poll-interval", default=DEFAULT_POLL_INTERVAL, type=click.FloatRange(min=0, min_open=True), help="Seconds between connection-state checks", show_default=True)
@click.option("--vpn-bin", default=DEFAULT_VPN_BINARY, envvar=ENV_VPN_BINARY, help="VPN control binary", show_default=True)
@click.option("--speedtest-bin", default=DEFAULT_SPEEDTEST_BINARY, envvar=ENV_SPEEDTEST_BINARY, help="Speed test binary", show_default=True)
@click.option("--speedtest-arg", "speedtest_args", multiple=True, help="Extra argument for the speed test binary (repeatable)")
@click.option("-q", "--quiet", is_flag=True, help="Suppress per-test output and spinners")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__)
def main(
    input_file: str,
    series: bool,
    repeat: int,
    output: str | None,
    connect_timeout: float | None,
    poll_interval: float,
    vpn_bin: str,
    speedtest_bin: str,
    speedtest_args: tuple[str, ...],
    quiet: bool,
    verbose: bool,
) -> None:
    """vpnspeed: VPN throughput benchmark.

    Measures download/upload speed and latency without a VPN and through
    each VPN location listed in INPUT_FILE, and appends the averaged
    results to a JSON report.
    """
    from vpnspeed.display import configure_logging, render_error, render_status
    from vpnspeed.errors import InputError
    from vpnspeed.location import load_locations

    configure_logging(verbose)

    config = BenchmarkConfig(
        count=repeat,
        mode=Mode.SERIES if series else Mode.PARALLEL,
        results_file=output or default_results_file(),
        vpn_binary=vpn_bin,
        speedtest_binary=speedtest_bin,
        speedtest_args=list(speedtest_args),
        retry=RetryPolicy(interval=poll_interval, timeout=connect_timeout),
        quiet=quiet,
    )

    try:
        locations = load_locations(input_file)
    except InputError as exc:
        render_error(str(exc))
        sys.exit(1)

    if not quiet:
        render_status(describe_run(config))

    try:
        _run(config, locations)
    except KeyboardInterrupt:
        if not quiet:
            render_status("\n[yellow]Interrupted.[/yellow]")
        sys.exit(130)


def _run(config: BenchmarkConfig, locations: list) -> None:
    """Wire the display into the orchestrator and render the summary."""
    from vpnspeed.display import BatchProgress, render_status, render_summary, render_warning
    from vpnspeed.runner import run_benchmark

    progress_factory = None
    on_status = None
    if not config.quiet:
        progress_factory = lambda through_vpn: BatchProgress(config.mode, through_vpn)  # noqa: E731
        on_status = render_status

    summary = run_benchmark(
        config,
        locations,
        progress_factory=progress_factory,
        on_status=on_status,
    )

    render_summary(summary, config.results_file)
    if summary.outcomes and not summary.persisted:
        render_warning("No VPN location produced results")


if __name__ == "__main__":
    main()
