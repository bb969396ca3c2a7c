"""Map user locations to VPN region tokens."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from vpnspeed.config import DEFAULT_VPN_BINARY, VPN_LIST_REGIONS
from vpnspeed.errors import VPNCommandError
from vpnspeed.models import Location
from vpnspeed.vpn import run_vpn_command

logger = logging.getLogger(__name__)


def list_regions(vpn_binary: str = DEFAULT_VPN_BINARY) -> list[str]:
    """Return the region tokens offered by the VPN tool, as returned."""
    output = run_vpn_command(vpn_binary, VPN_LIST_REGIONS)
    return [line.strip() for line in output.splitlines() if line.strip()]


def region_candidates(location: Location) -> list[str]:
    """Candidate tokens for *location*, most specific first."""
    country = location.country.strip().lower()
    city = location.city.strip().lower()
    if city:
        return [f"{country}-{city}", country]
    return [country]


def find_region(
    location: Location,
    regions: Optional[Sequence[str]] = None,
    vpn_binary: str = DEFAULT_VPN_BINARY,
) -> str:
    """Resolve *location* to a region token, or ``""`` when nothing matches.

    The country-city token wins over the country-only token.  When
    *regions* is omitted the VPN tool is queried; a failed query is logged
    and treated as no match.
    """
    if regions is None:
        try:
            regions = list_regions(vpn_binary)
        except VPNCommandError as exc:
            logger.error("Could not list VPN regions: %s", exc)
            return ""

    available = set(regions)
    for candidate in region_candidates(location):
        if candidate in available:
            return candidate
    return ""
