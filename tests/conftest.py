"""Shared fixtures: a fake ``subprocess.run`` standing in for the external tools."""

from __future__ import annotations

import json
import subprocess
import threading
from datetime import datetime
from typing import Optional

import pytest

from vpnspeed.config import MBPS_DIVISOR
from vpnspeed.models import BenchmarkConfig, MeasurementSample, Mode


def speedtest_payload(
    download_mbps: int = 1000,
    upload_mbps: int = 500,
    ping: float = 25.5,
    host: str = "test.speedtest.com",
    country: str = "TestCountry",
    location: str = "TestCity",
) -> dict:
    """A report shaped like ``speedtest -f json-pretty`` output."""
    return {
        "type": "result",
        "ping": {"jitter": 0.4, "latency": ping},
        "download": {"bandwidth": download_mbps * MBPS_DIVISOR, "bytes": 1, "elapsed": 1},
        "upload": {"bandwidth": upload_mbps * MBPS_DIVISOR, "bytes": 1, "elapsed": 1},
        "server": {
            "id": 1,
            "host": host,
            "name": "TestServer",
            "location": location,
            "country": country,
        },
    }


def decode_output(data, kwargs: dict):
    """Decode raw tool output the way ``subprocess.run`` does for text mode."""
    if not isinstance(data, bytes):
        return data
    return data.decode(kwargs.get("encoding") or "utf-8", kwargs.get("errors") or "strict")


def make_sample(
    download_mbps: int = 100,
    upload_mbps: int = 50,
    ping: float = 20.0,
    host: str = "test.speedtest.com",
    country: str = "TestCountry",
    location: str = "TestCity",
    completed_at: Optional[datetime] = None,
) -> MeasurementSample:
    return MeasurementSample(
        ping_latency_ms=ping,
        download_bandwidth=download_mbps * MBPS_DIVISOR,
        upload_bandwidth=upload_mbps * MBPS_DIVISOR,
        server_host=host,
        server_name="TestServer",
        server_country=country,
        server_location=location,
        completed_at=completed_at or datetime(2025, 3, 1, 12, 30, 45),
    )


class FakeTools:
    """Emulates ``expressvpnctl`` and ``speedtest``.

    ``states`` and ``speedtests`` are consumed in call order; the last
    entry repeats.  A ``None`` speedtest entry is a failing run, a ``str``
    or ``bytes`` entry is printed verbatim.  ``regions_rc`` may be a list
    of exit codes consumed per region query.
    """

    def __init__(self) -> None:
        self.regions = ["netherlands-amsterdam", "romania", "canada-toronto", "usa"]
        self.regions_rc: int | list[int] = 0
        self.connect_rc = 0
        self.disconnect_rc = 0
        self.states = ["Connected"]
        self.speedtests: list = [speedtest_payload()]
        self.barrier: Optional[threading.Barrier] = None
        self.calls: list[list[str]] = []
        self._lock = threading.Lock()

    def _next(self, entries: list):
        with self._lock:
            if len(entries) > 1:
                return entries.pop(0)
            return entries[0]

    def commands(self, name: str) -> list[list[str]]:
        return [c[1:] for c in self.calls if c[0] == name]

    def __call__(self, cmd, **kwargs) -> subprocess.CompletedProcess:
        cmd = list(cmd)
        with self._lock:
            self.calls.append(cmd)
        name, args = cmd[0], cmd[1:]

        if name == "expressvpnctl":
            if args == ["get", "regions"]:
                rc = self._next(self.regions_rc) if isinstance(self.regions_rc, list) else self.regions_rc
                output = self.regions if isinstance(self.regions, bytes) else "\n".join(self.regions) + "\n"
                return subprocess.CompletedProcess(cmd, rc, decode_output(output, kwargs), "")
            if args[:1] == ["connect"]:
                return subprocess.CompletedProcess(cmd, self.connect_rc, "", "connect failed" if self.connect_rc else "")
            if args == ["disconnect"]:
                return subprocess.CompletedProcess(cmd, self.disconnect_rc, "", "")
            if args == ["get", "connectionstate"]:
                return subprocess.CompletedProcess(cmd, 0, self._next(self.states) + "\n", "")

        if name == "speedtest":
            if self.barrier is not None:
                self.barrier.wait()
            entry = self._next(self.speedtests)
            if entry is None:
                return subprocess.CompletedProcess(cmd, 2, "[error] Cannot open socket", None)
            if isinstance(entry, (str, bytes)):
                return subprocess.CompletedProcess(cmd, 0, decode_output(entry, kwargs), None)
            return subprocess.CompletedProcess(cmd, 0, json.dumps(entry, indent=2), None)

        raise FileNotFoundError(2, "No such file or directory", name)


@pytest.fixture
def tools(monkeypatch) -> FakeTools:
    fake = FakeTools()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


@pytest.fixture
def config(tmp_path) -> BenchmarkConfig:
    return BenchmarkConfig(count=2, mode=Mode.PARALLEL, results_file=str(tmp_path / "results.json"))
