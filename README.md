# nasne_exporter

This exporter reads the status of one or more nasne network recorders and
serves it as Prometheus metrics over HTTP. It needs only the Python standard
library.

## Installation

```
pip install .
```

To run the tests, install the `test` extra and run `pytest`:

```
pip install .[test]
pytest
```

## Running

```
nasne_exporter --nasne-url http://192.168.11.1:64210,http://192.168.11.2:64210
```

`python -m nasne_exporter.cli` takes the same options.

Each option can also be given with a single dash, for example `-nasne-url`.
If an option is not given on the command line, the exporter uses the matching
environment variable. If that variable is unset or blank, it uses the default.

| Option             | Environment variable | Default    | Meaning                                          |
|--------------------|----------------------|------------|--------------------------------------------------|
| `--nasne-url`      | `NASNE_URL`          | (required) | Base URLs of the nasne devices, separated by commas |
| `--listen-address` | `LISTEN_ADDRESS`     | `:9900`    | Address to listen on, as `host:port`             |
| `--metrics-path`   | `METRICS_PATH`       | `/metrics` | HTTP path that serves the metrics                |
| `--health-path`    | `HEALTH_PATH`        | `/healthz` | HTTP path for the health check                   |
| `--http-timeout`   | `HTTP_TIMEOUT`       | `5s`       | Timeout for each HTTP request to a nasne         |
| `--scrape-timeout` | `SCRAPE_TIMEOUT`     | `10s`      | Timeout for the whole scrape of one target       |

Durations are written as a number followed by a unit, for example `5s`,
`1m30s`, `250ms` or `1.5h`. The accepted units are `ns`, `us`, `ms`, `s`, `m`
and `h`. A bare `0` is also accepted. An unreadable duration on the command
line is an error. An unreadable duration in an environment variable is logged
as a warning, and the default is used in its place.

The command exits with status 1 in three cases: no URL is given, a URL has no
scheme or host, or the listen address cannot be bound.

Each base URL's port is used for the `status/...` endpoints. It defaults to
64210. Recorded titles and reservations are first requested on port 64220; if
that fails, the exporter tries the status port.

## HTTP endpoints

- The metrics path serves the Prometheus text format. Each request to it
  scrapes all targets at the same time.
- The health path returns `ok` after a scrape in which every target
  succeeded. Before the first scrape, and after any scrape in which a target
  failed, it returns HTTP 503 with the body `unhealthy`.
- Every other path returns `nasne_exporter`.

## Metrics

All metrics are gauges. Each one has a `target` label, which holds the
device's `host:port`. If a URL gives no port, the label uses 80, or 443 for
`https`.

- `nasne_collect_duration_seconds`: time spent collecting from the target
- `nasne_up`: 1 if the last scrape succeeded, otherwise 0
- `nasne_info`: always 1. The labels `name`, `product_name`,
  `hardware_version` and `software_version` carry the device details.
- `nasne_hdd_size_bytes`: total HDD size in bytes, summed over all HDDs
- `nasne_hdd_usage_bytes`: used HDD space in bytes, summed over all HDDs
- `nasne_dtcpip_clients`: number of connected DTCP-IP clients
- `nasne_recordings`: 1 while the tuner is recording, otherwise 0
- `nasne_recorded_titles`: number of recorded titles
- `nasne_reserved_titles`: number of reserved titles
- `nasne_reserved_conflict_titles`: number of reservations that conflict
- `nasne_reserved_notfound_titles`: number of reservations whose programme was
  not found

When a target fails, only `nasne_collect_duration_seconds` and `nasne_up` are
reported for it.

## Library use

```python
from nasne_exporter.client import NasneClient
from nasne_exporter.collector import Collector, TargetFetcher, render_exposition

client = NasneClient("http://192.168.11.1:64210", timeout=5.0)
snapshot = client.fetch_snapshot(timeout=10.0)   # raises NasneError on failure

collector = Collector([TargetFetcher("192.168.11.1:64210", client)], timeout=10.0)
print(render_exposition(collector))
print(collector.healthy())
```

- `nasne_exporter.client`: `NasneClient`, the `Snapshot` dataclass and
  `NasneError`.
- `nasne_exporter.collector`:
  - `Collector.collect()` returns a list of `Sample` objects, and
    `Collector.describe()` lists their `MetricDesc` descriptions.
  - Any object with a `fetch_snapshot(timeout)` method can serve as a
    `TargetFetcher`'s fetcher.
- `nasne_exporter.extract`: `extract_snapshot(payload)` maps a loosely
  structured JSON payload to a `Snapshot`. It matches normalized field names
  anywhere in the nesting on a best-effort basis. `flatten` and `normalize`
  are the helpers it uses.
- `nasne_exporter.cli`:
  - `build_server(...)` returns a bound `ThreadingHTTPServer`.
  - `main(argv=None)` runs the command.

## Limits

- The exporter renders the text exposition format itself and serves only
  gauges.
- It has no TLS on its own listener, and no authentication.
- It does not provide the usual process or runtime metrics of a Prometheus
  client library.