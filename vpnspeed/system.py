"""Machine identity for the results file."""

from __future__ import annotations

import logging
import platform
import socket
import subprocess

logger = logging.getLogger(__name__)


def get_machine_name() -> str:
    return socket.gethostname()


def get_os_name() -> str:
    """Lower-case OS family: ``linux``, ``darwin``, ``windows``..."""
    return platform.system().lower() or "unknown"


def _command_output(cmd: list[str]) -> str:
    try:
        completed = subprocess.run(cmd, capture_output=True, encoding="utf-8", errors="replace", timeout=5)
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("OS version command %s failed: %s", cmd[0], exc)
        return ""
    return (completed.stdout or "").strip()


def get_os_version(os_name: str | None = None) -> str:
    """Human-readable OS version, e.g. ``"Ubuntu 22.04.4 LTS"`` or ``"macOS 14.5"``."""
    os_name = os_name or get_os_name()

    if os_name == "linux":
        out = _command_output(["lsb_release", "-d"])
        if ":" in out:
            return out.split(":", 1)[1].strip()
        return platform.release() or "Unknown OS"
    if os_name == "darwin":
        out = _command_output(["sw_vers", "-productVersion"])
        return f"macOS {out or platform.mac_ver()[0]}"
    if os_name == "windows":
        return _command_output(["cmd", "/C", "ver"]) or platform.version()
    return "Unknown OS"


def machine_identity() -> tuple[str, str]:
    """Return ``(machine_name, "<os>: <version>")``."""
    os_name = get_os_name()
    return get_machine_name(), f"{os_name}: {get_os_version(os_name)}"
