"""Best-effort mapping of arbitrary nasne JSON payloads to a Snapshot."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .client import Snapshot

_SEPARATORS = str.maketrans({"-": "_", " ": "_", "/": "_"})


def normalize(key: str) -> str:
    """Lower-case a key, trim it and turn '-', ' ' and '/' into '_'."""
    return key.strip().lower().translate(_SEPARATORS)


def flatten(value: Any, prefix: str = "") -> dict[str, Any]:
    """Map every nested object key to a dotted, normalized path.

    List elements are flattened under the same prefix as the list itself.
    """
    out: dict[str, Any] = {}
    if isinstance(value, Mapping):
        for key, item in value.items():
            path = normalize(key)
            if prefix:
                path = f"{prefix}.{path}"
            out[path] = item
            out.update(flatten(item, path))
    elif isinstance(value, list):
        for item in value:
            out.update(flatten(item, prefix))
    return out


def _candidates(flat: Mapping[str, Any], key: str):
    """Yield the exact match for a key, then every value whose path ends in it."""
    key = normalize(key)
    if key in flat:
        yield flat[key]
    suffix = "." + key
    for path, value in flat.items():
        if path.endswith(suffix):
            yield value


def _first_string(flat: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        for value in _candidates(flat, key):
            if isinstance(value, str) and value:
                return value
    return ""


def _number_from(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _first_number(flat: Mapping[str, Any], *keys: str) -> float:
    for key in keys:
        for value in _candidates(flat, key):
            number = _number_from(value)
            if number is not None:
                return number
    return 0.0


def extract_snapshot(payload: Mapping[str, Any]) -> Snapshot:
    """Build a Snapshot from whichever known keys appear anywhere in payload."""
    flat = flatten(payload)
    return Snapshot(
        name=_first_string(flat, "name", "nasne_name", "status.name"),
        product_name=_first_string(flat, "product_name", "productname", "model_name"),
        hardware_version=_first_string(flat, "hardware_version", "hw_version", "version.hardware"),
        software_version=_first_string(
            flat, "software_version", "sw_version", "version.software", "firmware_version"
        ),
        hdd_size_bytes=_first_number(
            flat, "hdd_size", "hdd_total_size", "storage_total_size", "hdd_size_bytes", "storage_total_bytes"
        ),
        hdd_usage_bytes=_first_number(
            flat, "hdd_using_size", "hdd_used_size", "storage_used_size", "hdd_usage_bytes", "storage_used_bytes"
        ),
        dtcpip_clients=_first_number(flat, "dtcp_ip_client_count", "dtcpip_clients", "dtcp_clients"),
        recordings=_first_number(flat, "recording_count", "recordings", "recording_titles"),
        recorded_titles=_first_number(flat, "recorded_count", "recorded_titles", "recorded_title_count"),
        reserved_titles=_first_number(flat, "reserved_count", "reserved_titles", "reserve_count"),
        reserved_conflict_titles=_first_number(
            flat, "reserved_conflict_count", "conflict_count", "reserved_conflict_titles"
        ),
        reserved_notfound_titles=_first_number(
            flat, "reserved_not_found_count", "notfound_count", "reserved_notfound_titles"
        ),
    )