"""Scrape nasne targets concurrently and expose the results as gauge metrics."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Sequence

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricDesc:
    """Name, help text and label names of one metric family."""

    name: str
    help: str
    label_names: tuple[str, ...] = ("target",)


@dataclass(frozen=True)
class Sample:
    """One gauge value with its label values, in the order of the description."""

    desc: MetricDesc
    value: float
    label_values: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.label_values) != len(self.desc.label_names):
            raise ValueError(f"{self.desc.name}: wrong number of label values")

    @property
    def labels(self) -> dict[str, str]:
        return dict(zip(self.desc.label_names, self.label_values))


@dataclass(frozen=True)
class TargetFetcher:
    """A target label paired with the object whose fetch_snapshot scrapes it."""

    target: str
    fetcher: Any


COLLECT_DURATION = MetricDesc("nasne_collect_duration_seconds", "Time spent collecting metrics from nasne.")
UP = MetricDesc("nasne_up", "Whether the last scrape from nasne succeeded.")
INFO = MetricDesc(
    "nasne_info",
    "nasne device information.",
    ("target", "name", "product_name", "hardware_version", "software_version"),
)
_GAUGES = (
    (MetricDesc("nasne_hdd_size_bytes", "Total HDD size in bytes."), "hdd_size_bytes"),
    (MetricDesc("nasne_hdd_usage_bytes", "Used HDD size in bytes."), "hdd_usage_bytes"),
    (MetricDesc("nasne_dtcpip_clients", "Connected DTCP-IP clients."), "dtcpip_clients"),
    (MetricDesc("nasne_recordings", "Number of current recordings."), "recordings"),
    (MetricDesc("nasne_recorded_titles", "Number of recorded titles."), "recorded_titles"),
    (MetricDesc("nasne_reserved_titles", "Number of reserved titles."), "reserved_titles"),
    (MetricDesc("nasne_reserved_conflict_titles", "Number of conflicting reserved titles."),
     "reserved_conflict_titles"),
    (MetricDesc("nasne_reserved_notfound_titles", "Number of not-found reserved titles."),
     "reserved_notfound_titles"),
)


class Collector:
    """Scrapes every target on each collection and remembers whether all succeeded."""

    def __init__(self, targets: Sequence[TargetFetcher], timeout: float = 10.0) -> None:
        self.targets = list(targets)
        self.timeout = timeout
        self._lock = threading.Lock()
        self._last_errors: dict[str, Exception] = {}
        self._scraped_once = False

    def describe(self) -> list[MetricDesc]:
        """Return the description of every metric family this collector emits."""
        return [COLLECT_DURATION, UP, INFO, *(desc for desc, _ in _GAUGES)]

    def collect(self) -> list[Sample]:
        """Scrape all targets concurrently and return the resulting samples."""
        results = []
        if self.targets:
            with ThreadPoolExecutor(max_workers=len(self.targets)) as pool:
                results = list(pool.map(self._scrape_one, self.targets))

        samples: list[Sample] = []
        errors: dict[str, Exception] = {}
        for target, snap, error, duration in results:
            labels = (target,)
            samples.append(Sample(COLLECT_DURATION, duration, labels))
            if error is not None:
                errors[target] = error
                log.warning("scrape failed for target=%s err=%s", target, error)
                samples.append(Sample(UP, 0.0, labels))
                continue
            samples.append(Sample(UP, 1.0, labels))
            samples.append(Sample(
                INFO, 1.0,
                (target, snap.name, snap.product_name, snap.hardware_version, snap.software_version),
            ))
            samples.extend(Sample(desc, getattr(snap, field), labels) for desc, field in _GAUGES)

        with self._lock:
            self._last_errors = errors
            self._scraped_once = True
        return samples

    def healthy(self) -> bool:
        """True once a scrape has run and every target in it succeeded."""
        with self._lock:
            return bool(self.targets) and self._scraped_once and not self._last_errors

    def _scrape_one(self, target: TargetFetcher):
        start = time.monotonic()
        try:
            snapshot, error = target.fetcher.fetch_snapshot(self.timeout), None
        except Exception as exc:  # any fetch failure marks the target down
            snapshot, error = None, exc
        return target.target, snapshot, error, time.monotonic() - start


def _format_value(value: float) -> str:
    if value == int(value) if abs(value) < 1e15 else False:
        return str(int(value))
    return repr(float(value))


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def render_exposition(collector: Collector) -> str:
    """Collect once and render the samples in the Prometheus text format.

    Families are sorted by name and series by label values; a series that
    appears twice is an error.
    """
    families: dict[str, list[Sample]] = {}
    for sample in collector.collect():
        families.setdefault(sample.desc.name, []).append(sample)

    lines: list[str] = []
    for name in sorted(families):
        members = families[name]
        rows = {}
        for sample in members:
            pairs = tuple(sorted(sample.labels.items()))
            if pairs in rows:
                raise ValueError(f"collected metric {name} {dict(pairs)} was collected before")
            rows[pairs] = sample.value
        lines.append(f"# HELP {name} {members[0].desc.help}")
        lines.append(f"# TYPE {name} gauge")
        for pairs in sorted(rows, key=lambda p: [v for _, v in p]):
            labels = ",".join(f'{key}="{_escape(val)}"' for key, val in pairs)
            lines.append(f"{name}{{{labels}}} {_format_value(rows[pairs])}")

    return "".join(line + "\n" for line in lines)