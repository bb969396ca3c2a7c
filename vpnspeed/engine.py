"""Speed-test execution engine for vpnspeed.

Runs the external speed-measurement tool for one batch, either:
  series   -- ``count`` invocations one after another; the first failure
              aborts the rest of the batch and discards it
  parallel -- ``count`` invocations at once on a thread pool sized by
              ``count``; a failure only loses that one sample

Each invocation parses its own JSON report into a MeasurementSample.
The batch is aggregated once every invocation has finished.

Public API:
    run_speedtest  -- run the tool once and parse its output
    run_batch      -- run one batch in the configured mode and aggregate it
"""

from __future__ import annotations

import json
import logging
import subprocess
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Callable, Optional

from vpnspeed.config import SPEEDTEST_ARGS
from vpnspeed.errors import MeasurementError
from vpnspeed.models import BatchResult, BenchmarkConfig, MeasurementSample, Mode
from vpnspeed.stats import aggregate

logger = logging.getLogger(__name__)

# Type alias for the progress callback.
# Signature: (sample_index, total_samples, sample_or_none, error_or_none)
# Both None means the sample is starting.
ProgressCallback = Callable[[int, int, Optional[MeasurementSample], Optional[str]], None]


# ---------------------------------------------------------------------------
# Output parsing
# ---------------------------------------------------------------------------

def parse_speedtest_output(text: str) -> MeasurementSample:
    """Parse the speed tool's JSON report.

    Raises
    ------
    MeasurementError
        If the text is not JSON or lacks the ping/bandwidth fields.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise MeasurementError(f"Error parsing speed test result: {exc}") from exc

    if not isinstance(data, dict):
        raise MeasurementError("Error parsing speed test result: not a JSON object")

    try:
        ping = data["ping"]
        server = data.get("server") or {}
        if not isinstance(server, dict):
            raise MeasurementError("Error parsing speed test result: server is not a JSON object")
        return MeasurementSample(
            ping_latency_ms=float(ping["latency"]),
            download_bandwidth=int(data["download"]["bandwidth"]),
            upload_bandwidth=int(data["upload"]["bandwidth"]),
            server_host=str(server.get("host", "")),
            server_name=str(server.get("name", "")),
            server_country=str(server.get("country", "")),
            server_location=str(server.get("location", "")),
            completed_at=datetime.now(),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise MeasurementError(f"Error parsing speed test result: missing or invalid {exc}") from exc


# ---------------------------------------------------------------------------
# Single invocation
# ---------------------------------------------------------------------------

def run_speedtest(config: BenchmarkConfig) -> MeasurementSample:
    """Run the speed tool once and return the parsed sample."""
    cmd = [config.speedtest_binary, *SPEEDTEST_ARGS, *config.speedtest_args]
    logger.debug("Speed test command: %s", " ".join(cmd))
    try:
        completed = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as exc:
        raise MeasurementError(f"Speed test failed: {exc}") from exc

    if completed.returncode != 0:
        output = (completed.stdout or "").strip()
        raise MeasurementError(
            f"Speed test failed: exit status {completed.returncode}"
            + (f" ({output})" if output else "")
        )
    return parse_speedtest_output(completed.stdout)


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------

def run_series(
    config: BenchmarkConfig,
    progress_callback: ProgressCallback | None = None,
) -> list[MeasurementSample]:
    """Run ``config.count`` speed tests one after another.

    A failed test aborts the rest of the batch and the samples already
    taken are discarded, so the batch yields no stat.
    """
    total = config.count
    samples: list[MeasurementSample] = []

    for i in range(total):
        if progress_callback:
            progress_callback(i, total, None, None)
        try:
            sample = run_speedtest(config)
        except MeasurementError as exc:
            logger.warning(
                "Speed test #%d failed, discarding batch of %d sample(s): %s", i + 1, len(samples), exc
            )
            if progress_callback:
                progress_callback(i, total, None, str(exc))
            return []

        samples.append(sample)
        if progress_callback:
            progress_callback(i, total, sample, None)

    return samples


def run_parallel(
    config: BenchmarkConfig,
    progress_callback: ProgressCallback | None = None,
) -> list[MeasurementSample]:
    """Run ``config.count`` speed tests concurrently and wait for all of them.

    Samples are returned in completion order.  A failed test contributes
    nothing and does not affect the others.
    """
    total = config.count
    samples: list[MeasurementSample] = []

    with ThreadPoolExecutor(max_workers=total, thread_name_prefix="speedtest") as pool:
        futures = {}
        for i in range(total):
            if progress_callback:
                progress_callback(i, total, None, None)
            futures[pool.submit(run_speedtest, config)] = i

        for future in as_completed(futures):
            index = futures[future]
            try:
                sample = future.result()
            except MeasurementError as exc:
                logger.warning("Speed test #%d failed: %s", index + 1, exc)
                if progress_callback:
                    progress_callback(index, total, None, str(exc))
                continue

            samples.append(sample)
            if progress_callback:
                progress_callback(index, total, sample, None)

    return samples


def run_batch(
    config: BenchmarkConfig,
    connection_tag: str = "",
    progress_callback: ProgressCallback | None = None,
) -> BatchResult:
    """Run one batch in ``config.mode`` and aggregate it.

    Parameters
    ----------
    config:
        Run configuration (count, mode, speed tool).
    connection_tag:
        ``""`` for the without-VPN baseline; otherwise the serialized
        connect duration, stamped into the stat's ``time_to_connect``.
    progress_callback:
        Optional callable invoked as samples start, finish or fail.
    """
    mode = Mode(config.mode)
    if mode is Mode.SERIES:
        samples = run_series(config, progress_callback)
    else:
        samples = run_parallel(config, progress_callback)

    logger.debug(
        "%s batch (%s) finished with %d/%d samples",
        "VPN" if connection_tag else "Baseline",
        mode.value,
        len(samples),
        config.count,
    )
    return BatchResult(samples=samples, stat=aggregate(samples, connection_tag, mode))
