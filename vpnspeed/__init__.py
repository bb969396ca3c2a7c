"""vpnspeed: benchmark network throughput through VPN regions."""

__version__ = "0.1.0"
