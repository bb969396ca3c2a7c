"""Data models for vpnspeed."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from vpnspeed.config import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REPEAT,
    DEFAULT_SPEEDTEST_BINARY,
    DEFAULT_VPN_BINARY,
    MBPS_DIVISOR,
    MODE_LABELS,
)


class Mode(str, enum.Enum):
    """How the speed tests of one batch are scheduled."""

    PARALLEL = "parallel"
    SERIES = "series"

    @property
    def label(self) -> str:
        """Text written to the report's ``Mode`` field."""
        return MODE_LABELS[self.value]


@dataclass(frozen=True)
class Location:
    """A benchmark target as supplied in the input document."""

    country: str
    city: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Location:
        return cls(country=str(data["country"]), city=str(data.get("city") or ""))

    def __str__(self) -> str:
        return f"{self.country}, {self.city}" if self.city else self.country


@dataclass
class MeasurementSample:
    """Result of a single speed-measurement invocation."""

    ping_latency_ms: float
    download_bandwidth: int
    upload_bandwidth: int
    server_host: str = ""
    server_name: str = ""
    server_country: str = ""
    server_location: str = ""
    completed_at: datetime = field(default_factory=datetime.now)

    @property
    def download_mbps(self) -> int:
        return self.download_bandwidth // MBPS_DIVISOR

    @property
    def upload_mbps(self) -> int:
        return self.upload_bandwidth // MBPS_DIVISOR

    @property
    def location_name(self) -> str:
        return f"{self.server_country}, {self.server_location}"


@dataclass(frozen=True)
class AggregatedStat:
    """One row of the persisted report."""

    location_name: str
    time_to_connect: str
    download_speed: str
    upload_speed: str
    latency: str
    server: str
    timestamp: str
    mode: str
    # Numeric means behind the formatted speeds; not persisted.
    download_mbps: float = field(default=0.0, compare=False)
    upload_mbps: float = field(default=0.0, compare=False)


@dataclass
class ResultsDocument:
    """The results file: machine identity plus the ordered stats."""

    machine_name: str = ""
    os: str = ""
    without_vpn: str = ""
    vpn_stats: list[AggregatedStat] = field(default_factory=list)

    @property
    def has_identity(self) -> bool:
        return bool(self.machine_name)


@dataclass
class BatchResult:
    """Samples collected by one batch and their aggregate (None when empty)."""

    samples: list[MeasurementSample] = field(default_factory=list)
    stat: Optional[AggregatedStat] = None


@dataclass(frozen=True)
class RetryPolicy:
    """Polling policy for the connection-state loop.

    ``timeout`` of None polls forever.
    """

    interval: float = DEFAULT_POLL_INTERVAL
    timeout: Optional[float] = None

    def deadline(self, clock=time.monotonic) -> Optional[float]:
        if self.timeout is None:
            return None
        return clock() + self.timeout


@dataclass
class BenchmarkConfig:
    """Configuration for a benchmark run."""

    count: int = DEFAULT_REPEAT
    mode: Mode = Mode.PARALLEL
    results_file: str = "results.json"
    vpn_binary: str = DEFAULT_VPN_BINARY
    speedtest_binary: str = DEFAULT_SPEEDTEST_BINARY
    speedtest_args: list[str] = field(default_factory=list)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    quiet: bool = False


@dataclass
class LocationOutcome:
    """What happened to one requested location."""

    location: Location
    region: str = ""
    status: str = "skipped"  # ok | skipped | failed | empty
    connect_time: Optional[str] = None
    stat: Optional[AggregatedStat] = None
    error: Optional[str] = None


@dataclass
class RunSummary:
    """Complete benchmark run results."""

    baseline: str = ""
    baseline_stat: Optional[AggregatedStat] = None
    outcomes: list[LocationOutcome] = field(default_factory=list)

    @property
    def persisted(self) -> list[LocationOutcome]:
        return [o for o in self.outcomes if o.status == "ok"]
