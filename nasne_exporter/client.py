"""HTTP client for the nasne status, recorded and schedule APIs."""

from __future__ import annotations

import http.client
import json
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Mapping, TypeVar
from urllib.parse import urlencode, urlsplit, urlunsplit

DEFAULT_STATUS_PORT = 64210
DEFAULT_RECORDED_PORT = 64220
DEFAULT_SCHEDULE_PORT = 64220

_ERROR_BODY_LIMIT = 2048

T = TypeVar("T")


class NasneError(Exception):
    """Raised when a nasne device cannot be queried or answers badly."""


@dataclass(frozen=True)
class Snapshot:
    """Normalized view of one nasne device used by the exporter."""

    name: str = ""
    product_name: str = ""
    hardware_version: str = ""
    software_version: str = ""
    hdd_size_bytes: float = 0.0
    hdd_usage_bytes: float = 0.0
    dtcpip_clients: float = 0.0
    recordings: float = 0.0
    recorded_titles: float = 0.0
    reserved_titles: float = 0.0
    reserved_conflict_titles: float = 0.0
    reserved_notfound_titles: float = 0.0


class _DecodeError(ValueError):
    """A JSON value does not have the shape a response requires."""


def _lookup(obj: Any, key: str) -> Any:
    """Return a field of a JSON object, matching the name case-insensitively."""
    if obj is None:
        return None
    if not isinstance(obj, dict):
        raise _DecodeError(f"cannot unmarshal {type(obj).__name__} into object")
    if key in obj:
        return obj[key]
    folded = key.casefold()
    for name, value in obj.items():
        if name.casefold() == folded:
            return value
    return None


def _as_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise _DecodeError(f"cannot unmarshal {value!r} into int")
    return value


def _as_float(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _DecodeError(f"cannot unmarshal {value!r} into number")
    return float(value)


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _DecodeError(f"cannot unmarshal {value!r} into string")
    return value


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _DecodeError(f"cannot unmarshal {type(value).__name__} into array")
    return value


def _common_list_query() -> dict[str, str]:
    return {
        "searchCriteria": "0",
        "filter": "0",
        "startingIndex": "0",
        "requestedCount": "0",
        "sortCriteria": "0",
    }


class NasneClient:
    """Queries one nasne device and builds a Snapshot from its answers."""

    def __init__(self, base_url: str, timeout: float = 5.0) -> None:
        if not base_url:
            raise NasneError("base URL is required")
        try:
            parts = urlsplit(base_url)
            port = parts.port
        except ValueError as exc:
            raise NasneError(f"parse base URL: {exc}") from exc
        if not parts.scheme or not parts.netloc:
            raise NasneError("base URL must include scheme and host")

        self.scheme = parts.scheme
        self.host = parts.hostname or ""
        self.status_port = port if port is not None else DEFAULT_STATUS_PORT
        self.timeout = timeout

    def fetch_snapshot(self, timeout: float | None = None) -> Snapshot:
        """Query every endpoint and return the combined snapshot.

        ``timeout`` bounds the whole fetch; each request is also bounded by
        the client's own per-request timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        port = self.status_port

        name = self._get_json(
            "status/boxNameGet", port, None, deadline,
            lambda doc: _as_str(_lookup(doc, "name")),
        )
        software_version = self._get_json(
            "status/softwareVersionGet", port, None, deadline,
            lambda doc: _as_str(_lookup(doc, "softwareVersion")),
        )
        product_name, hardware_version = self._get_json(
            "status/hardwareVersionGet", port, None, deadline,
            lambda doc: (
                _as_str(_lookup(doc, "productName")),
                _as_int(_lookup(doc, "hardwareVersion")),
            ),
        )
        hdd_ids = self._get_json(
            "status/HDDListGet", port, None, deadline,
            lambda doc: [_as_int(_lookup(item, "id")) for item in _as_list(_lookup(doc, "HDD"))],
        )
        dtcpip_clients = self._get_json(
            "status/dtcpipClientListGet", port, None, deadline,
            lambda doc: _as_int(_lookup(doc, "number")),
        )
        tuning_status = self._get_json(
            "status/boxStatusListGet", port, None, deadline,
            lambda doc: _as_int(_lookup(_lookup(doc, "tuningStatus"), "status")),
        )

        recorded_titles = self._recorded_titles(deadline)
        reserved, conflict, not_found = self._reserved_stats(deadline)
        hdd_total, hdd_used = self._hdd_usage(hdd_ids, deadline)

        return Snapshot(
            name=name,
            product_name=product_name,
            hardware_version=str(hardware_version),
            software_version=software_version,
            hdd_size_bytes=hdd_total,
            hdd_usage_bytes=hdd_used,
            dtcpip_clients=float(dtcpip_clients),
            recordings=1.0 if tuning_status == 1 else 0.0,
            recorded_titles=recorded_titles,
            reserved_titles=reserved,
            reserved_conflict_titles=conflict,
            reserved_notfound_titles=not_found,
        )

    def _hdd_usage(self, hdd_ids: list[int], deadline: float | None) -> tuple[float, float]:
        total = 0.0
        used = 0.0
        for hdd_id in hdd_ids:
            size, usage = self._get_json(
                "status/HDDInfoGet", self.status_port, {"id": str(hdd_id)}, deadline,
                lambda doc: (
                    _as_float(_lookup(_lookup(doc, "HDD"), "totalVolumeSize")),
                    _as_float(_lookup(_lookup(doc, "HDD"), "usedVolumeSize")),
                ),
            )
            total += size
            used += usage
        return total, used

    def _recorded_titles(self, deadline: float | None) -> float:
        matches = self._get_json_with_fallback(
            "recorded/titleListGet",
            (DEFAULT_RECORDED_PORT, self.status_port),
            _common_list_query(),
            deadline,
            lambda doc: _as_int(_lookup(doc, "totalMatches")),
        )
        return float(matches)

    def _reserved_stats(self, deadline: float | None) -> tuple[float, float, float]:
        query = _common_list_query()
        query["withDescriptionLong"] = "0"
        query["withUserData"] = "1"

        def parse(doc: Any) -> tuple[int, list[tuple[int, int]]]:
            items = [
                (_as_int(_lookup(item, "conflictId")), _as_int(_lookup(item, "eventId")))
                for item in _as_list(_lookup(doc, "item"))
            ]
            return _as_int(_lookup(doc, "totalMatches")), items

        total, items = self._get_json_with_fallback(
            "schedule/reservedListGet",
            (DEFAULT_SCHEDULE_PORT, self.status_port),
            query,
            deadline,
            parse,
        )
        conflict = sum(1 for conflict_id, _ in items if conflict_id >= 1)
        not_found = sum(1 for _, event_id in items if event_id == 65536)
        return float(total), float(conflict), float(not_found)

    def _get_json_with_fallback(
        self,
        endpoint: str,
        ports: tuple[int, ...],
        query: Mapping[str, str] | None,
        deadline: float | None,
        parse: Callable[[Any], T],
    ) -> T:
        last_error: NasneError | None = None
        seen: set[int] = set()
        for port in ports:
            if port <= 0 or port in seen:
                continue
            seen.add(port)
            try:
                return self._get_json(endpoint, port, query, deadline, parse)
            except NasneError as exc:
                last_error = exc
        raise last_error or NasneError("no valid ports")

    def _request_timeout(self, deadline: float | None) -> float:
        if deadline is None:
            return self.timeout
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise NasneError("context deadline exceeded")
        return min(self.timeout, remaining)

    def _url(self, endpoint: str, port: int, query: Mapping[str, str] | None) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        encoded = urlencode(sorted(query.items())) if query is not None else ""
        return urlunsplit((self.scheme, f"{host}:{port}", "/" + endpoint.lstrip("/"), encoded, ""))

    def _get_json(
        self,
        endpoint: str,
        port: int,
        query: Mapping[str, str] | None,
        deadline: float | None,
        parse: Callable[[Any], T],
    ) -> T:
        request_timeout = self._request_timeout(deadline)
        request = urllib.request.Request(self._url(endpoint, port, query), method="GET")
        try:
            with urllib.request.urlopen(request, timeout=request_timeout) as response:
                raw = response.read()
        except urllib.error.HTTPError as exc:
            with exc:
                body = exc.read(_ERROR_BODY_LIMIT) or b""
            text = body.decode("utf-8", errors="replace").strip()
            raise NasneError(
                f'request "{endpoint}": status={exc.code} '
                f"body={json.dumps(text, ensure_ascii=False)}"
            ) from None
        except (OSError, http.client.HTTPException, ValueError) as exc:
            raise NasneError(f'request "{endpoint}": {exc}') from exc

        try:
            text = raw.decode("utf-8", errors="replace").lstrip()
            document, _ = json.JSONDecoder().raw_decode(text)
            return parse(document)
        except ValueError as exc:
            raise NasneError(f'decode "{endpoint}": {exc}') from exc