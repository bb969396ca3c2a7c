"""Statistical aggregation for speed-test batches."""

from __future__ import annotations

from typing import Optional, Sequence

from vpnspeed.config import STAT_TIMESTAMP_FORMAT
from vpnspeed.models import AggregatedStat, MeasurementSample, Mode


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def format_mbps(value: float) -> str:
    return f"{value:.2f}Mbps"


def aggregate(
    samples: Sequence[MeasurementSample],
    time_to_connect: str = "",
    mode: Mode = Mode.PARALLEL,
) -> Optional[AggregatedStat]:
    """Reduce a batch of samples to one stat.

    Download and upload are averaged over the whole batch.  Every
    descriptive field (location, server, latency, timestamp) is taken
    from the last sample; samples are not checked for coming from the
    same server.  Returns None for an empty batch.
    """
    if not samples:
        return None

    download = mean([s.download_mbps for s in samples])
    upload = mean([s.upload_mbps for s in samples])
    last = samples[-1]

    return AggregatedStat(
        location_name=last.location_name,
        time_to_connect=time_to_connect,
        download_speed=format_mbps(download),
        upload_speed=format_mbps(upload),
        latency=f"{last.ping_latency_ms:.2f}ms",
        server=last.server_host,
        timestamp=last.completed_at.strftime(STAT_TIMESTAMP_FORMAT),
        mode=Mode(mode).label,
        download_mbps=download,
        upload_mbps=upload,
    )


def format_baseline(samples: Sequence[MeasurementSample]) -> str:
    """Render the without-VPN baseline from the last sample, e.g. ``"940Mbps ▼  38Mbps ▲"``.

    Returns ``""`` for an empty batch.
    """
    if not samples:
        return ""
    last = samples[-1]
    return f"{last.download_mbps}Mbps ▼  {last.upload_mbps}Mbps ▲"
