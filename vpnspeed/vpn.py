"""VPN connection lifecycle, driven through the VPN control tool.

Connecting is a blocking sequence:
  connect command -> poll connection state -> Connected

The connect command only starts the tunnel; readiness is observed by
polling ``get connectionstate`` on a fixed interval.  The poll loop is
unbounded unless the :class:`RetryPolicy` carries a timeout.
"""

from __future__ import annotations

import enum
import logging
import subprocess
import time
from typing import Callable, Sequence

from vpnspeed.config import (
    CONNECTED_STATE,
    DEFAULT_VPN_BINARY,
    VPN_CONNECT,
    VPN_CONNECTION_STATE,
    VPN_DISCONNECT,
)
from vpnspeed.errors import VPNCommandError, VPNConnectError, VPNTimeoutError
from vpnspeed.models import RetryPolicy

logger = logging.getLogger(__name__)


class ConnectionState(str, enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    POLLING = "polling"
    CONNECTED = "connected"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Subprocess helper
# ---------------------------------------------------------------------------

def run_vpn_command(binary: str, args: Sequence[str]) -> str:
    """Run ``binary args...`` and return its stdout.

    Raises
    ------
    VPNCommandError
        If the binary is missing or exits with a nonzero status.
    """
    cmd = [binary, *args]
    logger.debug("VPN command: %s", " ".join(cmd))
    try:
        completed = subprocess.run(cmd, capture_output=True, encoding="utf-8", errors="replace")
    except OSError as exc:
        raise VPNCommandError(cmd, output=str(exc)) from exc

    if completed.returncode != 0:
        raise VPNCommandError(cmd, completed.returncode, completed.stderr or "")
    return completed.stdout or ""


# ---------------------------------------------------------------------------
# Duration formatting
# ---------------------------------------------------------------------------

def _trim(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return text or "0"


def format_duration(seconds: float) -> str:
    """Render a millisecond-rounded duration compactly.

    Examples: ``0.85 -> "850ms"``, ``1.5 -> "1.5s"``, ``123.25 -> "2m3.25s"``.
    """
    seconds = round(seconds, 3)
    if seconds <= 0:
        return "0s"
    if seconds < 1:
        return f"{round(seconds * 1000)}ms"
    if seconds < 60:
        return f"{_trim(seconds)}s"
    minutes, rest = divmod(seconds, 60)
    if minutes < 60:
        return f"{int(minutes)}m{_trim(rest)}s"
    hours, minutes = divmod(int(minutes), 60)
    return f"{hours}h{minutes}m{_trim(rest)}s"


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class VPNController:
    """Issues connect/disconnect commands and waits for the tunnel to come up."""

    def __init__(
        self,
        binary: str = DEFAULT_VPN_BINARY,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.binary = binary
        self.retry = retry or RetryPolicy()
        self._sleep = sleep
        self._clock = clock
        self.state = ConnectionState.IDLE

    def connect(self, region: str) -> float:
        """Connect to *region* and return the elapsed seconds (ms precision).

        Elapsed time runs from issuing the connect command to the first
        ``Connected`` observation.
        """
        start = self._clock()
        self.state = ConnectionState.CONNECTING
        try:
            run_vpn_command(self.binary, [*VPN_CONNECT, region])
        except VPNCommandError as exc:
            self.state = ConnectionState.FAILED
            raise VPNConnectError(exc.command, exc.returncode, exc.output) from exc

        self.wait_for_connection()
        return round(self._clock() - start, 3)

    def connection_state(self) -> str:
        """Return the tool's current state string ("" if the query fails)."""
        try:
            return run_vpn_command(self.binary, VPN_CONNECTION_STATE).strip()
        except VPNCommandError as exc:
            logger.debug("Connection state query failed: %s", exc)
            return ""

    def wait_for_connection(self) -> None:
        """Block until the tool reports ``Connected``.

        Raises
        ------
        VPNTimeoutError
            If the retry policy has a timeout and it elapses first.
        """
        self.state = ConnectionState.POLLING
        deadline = self.retry.deadline(self._clock)
        attempts = 0
        while True:
            attempts += 1
            if self.connection_state() == CONNECTED_STATE:
                self.state = ConnectionState.CONNECTED
                logger.debug("Connected after %d state queries", attempts)
                return
            if deadline is not None and self._clock() >= deadline:
                self.state = ConnectionState.FAILED
                raise VPNTimeoutError(
                    f"VPN not connected after {self.retry.timeout:g}s ({attempts} state queries)"
                )
            self._sleep(self.retry.interval)

    def disconnect(self) -> None:
        """Issue the disconnect command once; no confirmation polling."""
        try:
            run_vpn_command(self.binary, VPN_DISCONNECT)
        finally:
            self.state = ConnectionState.IDLE
