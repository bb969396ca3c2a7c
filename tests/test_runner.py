import contextlib
import logging

import pytest

from vpnspeed.models import Location, Mode, RetryPolicy
from vpnspeed.runner import run_benchmark
from vpnspeed.store import ResultStore, load_from_file
from vpnspeed.vpn import VPNController

from conftest import speedtest_payload

LOCATIONS = [
    Location("Netherlands", "Amsterdam"),
    Location("France", "Paris"),
    Location("Romania", "Bucharest"),
]


@pytest.fixture
def controller():
    return VPNController(retry=RetryPolicy(interval=0.5), sleep=lambda _: None)


@pytest.fixture
def store(config):
    return ResultStore(config.results_file, identity=lambda: ("TestMachine", "linux: Ubuntu 22.04 LTS"))


def test_full_run_persists_matched_locations(tools, config, controller, store):
    summary = run_benchmark(config, LOCATIONS, controller=controller, store=store)

    document = load_from_file(config.results_file)
    assert document.machine_name == "TestMachine"
    assert document.without_vpn == "1000Mbps ▼  500Mbps ▲"
    assert len(document.vpn_stats) == 2
    assert all(s.download_speed == "1000.00Mbps" for s in document.vpn_stats)
    assert [o.status for o in summary.outcomes] == ["ok", "skipped", "ok"]
    assert [o.region for o in summary.outcomes] == ["netherlands-amsterdam", "", "romania"]
    assert summary.baseline == document.without_vpn


def test_unmatched_location_is_skipped_without_connecting(tools, config, controller, store, caplog):
    with caplog.at_level(logging.WARNING):
        run_benchmark(config, [Location("France", "Paris")], controller=controller, store=store)

    assert "Skipping: No matching region found for France, Paris" in caplog.text
    assert tools.commands("expressvpnctl") == [["get", "regions"]]
    assert load_from_file(config.results_file).vpn_stats == []


def test_lifecycle_order_per_location(tools, config, controller, store):
    config.count = 1
    run_benchmark(config, [LOCATIONS[0], LOCATIONS[2]], controller=controller, store=store)

    sequence = [
        " ".join(c[1:]) if c[0] == "expressvpnctl" else "speedtest"
        for c in tools.calls
        if c[1:] != ["get", "connectionstate"]
    ]
    assert sequence == [
        "speedtest",
        "get regions",
        "connect netherlands-amsterdam",
        "speedtest",
        "disconnect",
        "get regions",
        "connect romania",
        "speedtest",
        "disconnect",
    ]


def test_connect_failure_skips_location_without_disconnect(tools, config, controller, store):
    tools.connect_rc = 1

    summary = run_benchmark(config, [LOCATIONS[0]], controller=controller, store=store)

    assert summary.outcomes[0].status == "failed"
    assert "connect" in summary.outcomes[0].error
    assert ["disconnect"] not in tools.commands("expressvpnctl")
    assert tools.commands("speedtest") == [["-f", "json-pretty"]] * config.count


def test_connect_timeout_moves_on(tools, config, store):
    tools.states = ["Connecting"]
    ticks = iter(range(1000))
    controller = VPNController(
        retry=RetryPolicy(interval=0.5, timeout=2),
        sleep=lambda _: None,
        clock=lambda: float(next(ticks)),
    )

    summary = run_benchmark(config, [LOCATIONS[0], LOCATIONS[2]], controller=controller, store=store)

    assert [o.status for o in summary.outcomes] == ["failed", "failed"]
    assert load_from_file(config.results_file).vpn_stats == []


def test_empty_vpn_batch_persists_nothing_but_disconnects(tools, config, controller, store):
    tools.speedtests = [speedtest_payload(), speedtest_payload(), None]

    summary = run_benchmark(config, [LOCATIONS[0]], controller=controller, store=store)

    assert summary.outcomes[0].status == "empty"
    assert tools.commands("expressvpnctl")[-1] == ["disconnect"]
    assert load_from_file(config.results_file).vpn_stats == []


def test_connect_time_is_stamped(tools, config, store):
    ticks = iter([0.0, 1.5])
    controller = VPNController(sleep=lambda _: None, clock=lambda: next(ticks))

    summary = run_benchmark(config, [LOCATIONS[0]], controller=controller, store=store)

    assert summary.outcomes[0].connect_time == "1.5s"
    assert load_from_file(config.results_file).vpn_stats[0].time_to_connect == "1.5s"


def test_region_query_failure_skips_only_that_location(tools, config, controller, store):
    tools.regions_rc = [1, 0]

    summary = run_benchmark(config, LOCATIONS, controller=controller, store=store)

    assert [o.status for o in summary.outcomes] == ["skipped", "skipped", "ok"]
    assert tools.commands("expressvpnctl").count(["get", "regions"]) == 3
    assert ["connect", "romania"] in tools.commands("expressvpnctl")


def test_undecodable_speed_test_output_does_not_stop_run(tools, config, controller, store):
    tools.speedtests = [b"\xff\xfegarbage"]

    summary = run_benchmark(config, [LOCATIONS[0], LOCATIONS[2]], controller=controller, store=store)

    assert summary.baseline == ""
    assert [o.status for o in summary.outcomes] == ["empty", "empty"]
    assert tools.commands("expressvpnctl")[-1] == ["disconnect"]


def test_series_failure_persists_nothing_for_location(tools, config, controller, store):
    config.mode = Mode.SERIES
    tools.speedtests = [speedtest_payload(), speedtest_payload(), speedtest_payload(), None]

    summary = run_benchmark(config, [LOCATIONS[0]], controller=controller, store=store)

    assert summary.outcomes[0].status == "empty"
    assert load_from_file(config.results_file).vpn_stats == []


def test_disconnect_failure_does_not_stop_run(tools, config, controller, store):
    tools.disconnect_rc = 1

    summary = run_benchmark(config, [LOCATIONS[0], LOCATIONS[2]], controller=controller, store=store)

    assert [o.status for o in summary.outcomes] == ["ok", "ok"]


def test_failed_baseline_leaves_baseline_empty(tools, config, controller, store):
    tools.speedtests = [None, None, speedtest_payload()]

    summary = run_benchmark(config, [LOCATIONS[0]], controller=controller, store=store)

    assert summary.baseline == ""
    assert load_from_file(config.results_file).without_vpn == ""
    assert summary.outcomes[0].status == "ok"


def test_progress_factory_and_status_messages(tools, config, controller, store):
    opened = []
    messages = []

    @contextlib.contextmanager
    def factory(through_vpn):
        opened.append(through_vpn)
        yield None

    run_benchmark(config, [LOCATIONS[0]], controller=controller, store=store,
                  progress_factory=factory, on_status=messages.append)

    assert opened == [False, True]
    assert messages[0] == "Connecting to VPN: Netherlands, Amsterdam..."
    assert messages[1].startswith("Connected in ")
