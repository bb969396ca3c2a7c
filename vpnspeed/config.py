"""Constants and configuration for vpnspeed."""

# External tools
DEFAULT_VPN_BINARY = "expressvpnctl"
DEFAULT_SPEEDTEST_BINARY = "speedtest"
SPEEDTEST_ARGS = ["-f", "json-pretty"]

# VPN control verbs
VPN_LIST_REGIONS = ["get", "regions"]
VPN_CONNECT = ["connect"]
VPN_DISCONNECT = ["disconnect"]
VPN_CONNECTION_STATE = ["get", "connectionstate"]
CONNECTED_STATE = "Connected"

# Default measurement settings
DEFAULT_REPEAT = 5
DEFAULT_POLL_INTERVAL = 0.5  # seconds between connection-state queries

# Bandwidth reported by speedtest divided by this gives Mbps
MBPS_DIVISOR = 125_000

# Report formats
RESULTS_FILE_TEMPLATE = "results-{stamp}.json"
RESULTS_FILE_STAMP = "%Y%m%d%H%M%S"
STAT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

MODE_LABELS = {
    "parallel": "Tests ran in parallel",
    "series": "Tests ran in series (one after another)",
}

# Environment overrides for the binaries
ENV_VPN_BINARY = "VPNSPEED_VPN_BIN"
ENV_SPEEDTEST_BINARY = "VPNSPEED_SPEEDTEST_BIN"

EXAMPLE_INPUT = """\
{
  "locations": [
    {"country": "Netherlands", "city": "Amsterdam"},
    {"country": "Romania", "city": "Bucharest"},
    {"country": "Canada", "city": "Toronto"}
  ]
}"""
