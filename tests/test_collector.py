import pytest

from nasne_exporter.client import NasneError, Snapshot
from nasne_exporter.collector import (
    INFO,
    UP,
    Collector,
    MetricDesc,
    Sample,
    TargetFetcher,
    render_exposition,
)


class FakeFetcher:
    def __init__(self, snapshot=None, error=None):
        self.snapshot = snapshot or Snapshot()
        self.error = error
        self.timeouts = []

    def fetch_snapshot(self, timeout=None):
        self.timeouts.append(timeout)
        if self.error is not None:
            raise self.error
        return self.snapshot


def _values(samples, desc):
    return {s.label_values[0]: s.value for s in samples if s.desc == desc}


def test_unhealthy_before_first_scrape():
    c = Collector(
        [TargetFetcher("192.168.11.1:64210", FakeFetcher(Snapshot(name="nasne-a")))], 1.0
    )
    assert c.healthy() is False


def test_healthy_on_success():
    c = Collector(
        [TargetFetcher("192.168.11.1:64210", FakeFetcher(Snapshot(name="nasne-a")))], 1.0
    )
    text = render_exposition(c)
    assert 'nasne_up{target="192.168.11.1:64210"} 1' in text
    assert c.healthy() is True


def test_unhealthy_on_partial_error():
    c = Collector(
        [
            TargetFetcher("192.168.11.1:64210", FakeFetcher(Snapshot(name="nasne-a"))),
            TargetFetcher("192.168.11.2:64210", FakeFetcher(error=NasneError("boom"))),
        ],
        1.0,
    )
    samples = c.collect()
    assert _values(samples, UP) == {"192.168.11.1:64210": 1.0, "192.168.11.2:64210": 0.0}
    assert c.healthy() is False


def test_recovers_health_after_later_success():
    fetcher = FakeFetcher(error=NasneError("boom"))
    c = Collector([TargetFetcher("a", fetcher)], 1.0)
    c.collect()
    assert c.healthy() is False
    fetcher.error = None
    c.collect()
    assert c.healthy() is True


def test_no_targets_is_never_healthy():
    c = Collector([], 1.0)
    assert c.collect() == []
    assert c.healthy() is False
    assert render_exposition(c) == ""


def test_failed_target_only_reports_duration_and_up():
    c = Collector([TargetFetcher("bad", FakeFetcher(error=RuntimeError("down")))], 1.0)
    names = sorted(s.desc.name for s in c.collect())
    assert names == ["nasne_collect_duration_seconds", "nasne_up"]


def test_successful_target_reports_every_family():
    c = Collector([TargetFetcher("a", FakeFetcher(Snapshot(name="n")))], 1.0)
    names = {s.desc.name for s in c.collect()}
    assert names == {d.name for d in c.describe()}
    assert len(c.describe()) == 11


def test_snapshot_values_are_reported():
    snap = Snapshot(
        name="living-room-nasne",
        product_name="nasne",
        hardware_version="1",
        software_version="4.0",
        hdd_size_bytes=1024,
        hdd_usage_bytes=512,
        dtcpip_clients=2,
        recordings=1,
        recorded_titles=42,
        reserved_titles=7,
        reserved_conflict_titles=3,
        reserved_notfound_titles=4,
    )
    c = Collector([TargetFetcher("t", FakeFetcher(snap))], 1.0)
    by_name = {s.desc.name: s for s in c.collect()}
    assert by_name["nasne_hdd_size_bytes"].value == 1024
    assert by_name["nasne_hdd_usage_bytes"].value == 512
    assert by_name["nasne_recorded_titles"].value == 42
    assert by_name["nasne_reserved_conflict_titles"].value == 3
    assert by_name["nasne_reserved_notfound_titles"].value == 4
    assert by_name["nasne_info"].labels == {
        "target": "t",
        "name": "living-room-nasne",
        "product_name": "nasne",
        "hardware_version": "1",
        "software_version": "4.0",
    }
    assert by_name["nasne_collect_duration_seconds"].value >= 0


def test_timeout_is_passed_to_fetcher():
    fetcher = FakeFetcher(Snapshot())
    Collector([TargetFetcher("t", fetcher)], 2.5).collect()
    assert fetcher.timeouts == [2.5]


def test_info_labels_are_sorted_by_name():
    c = Collector([TargetFetcher("t", FakeFetcher(Snapshot(name="n")))], 1.0)
    info = [line for line in render_exposition(c).splitlines() if line.startswith("nasne_info{")]
    assert info == [
        'nasne_info{hardware_version="",name="n",product_name="",software_version="",target="t"} 1'
    ]


def test_duplicate_targets_fail_rendering():
    c = Collector(
        [TargetFetcher("same", FakeFetcher(Snapshot())), TargetFetcher("same", FakeFetcher(Snapshot()))],
        1.0,
    )
    with pytest.raises(ValueError):
        render_exposition(c)


def test_sample_rejects_wrong_label_count():
    with pytest.raises(ValueError):
        Sample(INFO, 1.0, ("only-target",))


def test_sample_labels_mapping():
    desc = MetricDesc("m", "help", ("a", "b"))
    assert Sample(desc, 3.0, ("x", "y")).labels == {"a": "x", "b": "y"}