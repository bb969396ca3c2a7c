"""Input document loading: the list of locations to benchmark."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Union

from vpnspeed.errors import InputError
from vpnspeed.models import Location


def parse_locations(data: object) -> list[Location]:
    """Validate a decoded input document and return its locations."""
    if not isinstance(data, dict) or not isinstance(data.get("locations"), list):
        raise InputError('Input must be a JSON object with a "locations" list')

    locations: list[Location] = []
    for index, entry in enumerate(data["locations"]):
        if not isinstance(entry, dict) or not str(entry.get("country") or "").strip():
            raise InputError(f"Location #{index + 1} has no country")
        locations.append(Location.from_dict(entry))
    return locations


def load_locations(path: Union[str, Path]) -> list[Location]:
    """Read and parse the input file.

    Raises
    ------
    InputError
        If the file cannot be read, is not valid JSON, or has no usable
        ``locations`` list.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise InputError(f"Failed to read input file: {exc}") from exc

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InputError(f"Failed to parse JSON: {exc}") from exc

    return parse_locations(data)
