"""Append-only JSON results file.

Every append is a full read-modify-write of the document under one lock:
  load -> fill machine identity (first write only) -> append -> save
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, Optional, Union

from vpnspeed.errors import PersistenceError
from vpnspeed.models import AggregatedStat, ResultsDocument
from vpnspeed.system import machine_identity

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]
IdentityProvider = Callable[[], tuple[str, str]]

# Report field names, in output order.
_STAT_FIELDS = {
    "location_name": "LocationName",
    "time_to_connect": "TimeToConnect",
    "download_speed": "VPNDownloadSpeed",
    "upload_speed": "VPNUploadSpeed",
    "latency": "VPNLatency",
    "server": "Server",
    "timestamp": "Date/Time",
    "mode": "Mode",
}


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def _stat_to_dict(stat: AggregatedStat) -> dict:
    return {key: getattr(stat, attr) for attr, key in _STAT_FIELDS.items()}


def _stat_from_dict(data: dict) -> AggregatedStat:
    return AggregatedStat(**{attr: str(data.get(key) or "") for attr, key in _STAT_FIELDS.items()})


def document_to_dict(document: ResultsDocument) -> dict:
    """Build a serializable dictionary in the report's field layout."""
    return {
        "MachineName": document.machine_name,
        "OS": document.os,
        "WithoutVPN": document.without_vpn,
        "VPNStats": [_stat_to_dict(s) for s in document.vpn_stats],
    }


def document_from_dict(data: dict) -> ResultsDocument:
    if not isinstance(data, dict):
        raise PersistenceError("results file does not contain a JSON object")
    stats = data.get("VPNStats") or []
    if not isinstance(stats, list):
        raise PersistenceError("VPNStats is not a list")
    return ResultsDocument(
        machine_name=str(data.get("MachineName") or ""),
        os=str(data.get("OS") or ""),
        without_vpn=str(data.get("WithoutVPN") or ""),
        vpn_stats=[_stat_from_dict(s) for s in stats if isinstance(s, dict)],
    )


def load_from_file(path: PathLike) -> ResultsDocument:
    """Load the results document; a missing file is an empty document.

    Raises
    ------
    PersistenceError
        If the file exists but cannot be read or parsed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return ResultsDocument()
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise PersistenceError(f"Error loading {path}: {exc}") from exc
    return document_from_dict(data)


def save_to_file(document: ResultsDocument, path: PathLike) -> None:
    """Write the document as pretty-printed JSON.

    The content goes to a temporary file next to *path* that is then
    renamed over it, so readers see either the old or the new document.
    """
    target = Path(path)
    content = json.dumps(document_to_dict(document), indent=2, ensure_ascii=False)

    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=target.parent,
            prefix=f".{target.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(content)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, target)
    except OSError as exc:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise PersistenceError(f"Error saving {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class ResultStore:
    """Thread-safe appender for one results file."""

    def __init__(
        self,
        path: PathLike,
        baseline: str = "",
        identity: Optional[IdentityProvider] = None,
    ) -> None:
        self.path = Path(path)
        self.baseline = baseline
        self._identity = identity or machine_identity
        self._lock = threading.Lock()
        self._identity_written = False

    def append(self, stat: AggregatedStat) -> bool:
        """Append *stat* to the file; returns False (and logs) on failure."""
        with self._lock:
            try:
                document = load_from_file(self.path)
            except PersistenceError as exc:
                logger.error("%s", exc)
                return False

            # Identity is written once per store, even when the hostname is empty.
            if not (self._identity_written or document.has_identity):
                try:
                    machine_name, os_string = self._identity()
                except OSError as exc:
                    logger.error("Error getting machine identity: %s", exc)
                    return False
                document.machine_name = machine_name
                document.os = os_string
                document.without_vpn = self.baseline

            document.vpn_stats.append(stat)

            try:
                save_to_file(document, self.path)
            except PersistenceError as exc:
                logger.error("%s", exc)
                return False
            self._identity_written = True

        logger.info("Saved %s to %s", stat.location_name, self.path)
        return True
