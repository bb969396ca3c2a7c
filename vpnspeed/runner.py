"""Benchmark orchestration: baseline, then one VPN batch per location."""

from __future__ import annotations

import contextlib
import logging
from typing import Callable, ContextManager, Optional, Sequence

from vpnspeed.engine import ProgressCallback, run_batch
from vpnspeed.errors import VPNError
from vpnspeed.models import BenchmarkConfig, Location, LocationOutcome, RunSummary
from vpnspeed.regions import find_region
from vpnspeed.stats import format_baseline
from vpnspeed.store import ResultStore
from vpnspeed.vpn import VPNController, format_duration

logger = logging.getLogger(__name__)

# Called with through_vpn; returns a context manager yielding the batch's
# progress callback (or None).
ProgressFactory = Callable[[bool], ContextManager[Optional[ProgressCallback]]]
StatusCallback = Callable[[str], None]


def _no_progress(through_vpn: bool) -> ContextManager[Optional[ProgressCallback]]:
    return contextlib.nullcontext(None)


def run_benchmark(
    config: BenchmarkConfig,
    locations: Sequence[Location],
    controller: VPNController | None = None,
    store: ResultStore | None = None,
    progress_factory: ProgressFactory | None = None,
    on_status: StatusCallback | None = None,
) -> RunSummary:
    """Run the baseline batch, then benchmark each location in order.

    Locations are processed strictly one at a time: resolve, connect,
    measure, persist, disconnect.  Failures are logged and recorded in
    the returned summary; none of them stop the run.
    """
    controller = controller or VPNController(config.vpn_binary, config.retry)
    store = store or ResultStore(config.results_file)
    progress_factory = progress_factory or _no_progress

    def status(message: str) -> None:
        logger.info(message)
        if on_status:
            on_status(message)

    summary = RunSummary()

    # ---- Baseline without VPN ----
    with progress_factory(False) as progress:
        baseline = run_batch(config, "", progress)
    summary.baseline_stat = baseline.stat
    summary.baseline = format_baseline(baseline.samples)
    store.baseline = summary.baseline
    if baseline.stat is None:
        logger.warning("Baseline speed test produced no samples")

    for location in locations:
        outcome = LocationOutcome(location=location)
        summary.outcomes.append(outcome)

        outcome.region = find_region(location, vpn_binary=config.vpn_binary)
        if not outcome.region:
            logger.warning(
                "Skipping: No matching region found for %s, %s",
                location.country,
                location.city,
            )
            continue

        status(f"Connecting to VPN: {location.country}, {location.city}...")
        try:
            elapsed = controller.connect(outcome.region)
        except VPNError as exc:
            logger.error("Failed to connect to VPN: %s", exc)
            outcome.status = "failed"
            outcome.error = str(exc)
            continue

        outcome.connect_time = format_duration(elapsed)
        status(f"Connected in {outcome.connect_time}")

        try:
            with progress_factory(True) as progress:
                batch = run_batch(config, outcome.connect_time, progress)
            outcome.stat = batch.stat
            if batch.stat is None:
                outcome.status = "empty"
                outcome.error = "no successful speed tests"
            elif store.append(batch.stat):
                outcome.status = "ok"
            else:
                outcome.status = "failed"
                outcome.error = "could not save results"
        finally:
            try:
                controller.disconnect()
            except VPNError as exc:
                logger.error("Failed to disconnect VPN: %s", exc)

    return summary
