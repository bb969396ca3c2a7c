"""Exception types raised by vpnspeed."""

from __future__ import annotations

from typing import Optional, Sequence


class VPNSpeedError(Exception):
    """Base class for all vpnspeed errors."""


class InputError(VPNSpeedError):
    """The input document could not be read or is invalid."""


class VPNError(VPNSpeedError):
    """The VPN control tool failed."""


class VPNCommandError(VPNError):
    """A VPN control command exited unsuccessfully or could not be started."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: Optional[int] = None,
        output: str = "",
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        detail = f"exit status {returncode}" if returncode is not None else "could not be run"
        message = f"{' '.join(self.command)}: {detail}"
        if output:
            message += f" ({output.strip()})"
        super().__init__(message)


class VPNConnectError(VPNCommandError):
    """The connect command itself failed."""


class VPNTimeoutError(VPNError):
    """The connection never reached the connected state in time."""


class MeasurementError(VPNSpeedError):
    """A speed test failed or its output could not be parsed."""


class PersistenceError(VPNSpeedError):
    """The results file could not be read, parsed or written."""
