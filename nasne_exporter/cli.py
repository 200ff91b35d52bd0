"""Command line entry point: serve nasne metrics over HTTP."""

from __future__ import annotations

import argparse
import logging
import os
import re
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

from .client import NasneClient, NasneError
from .collector import Collector, TargetFetcher, render_exposition

log = logging.getLogger(__name__)

_UNIT_SECONDS = {"ns": 1e-9, "us": 1e-6, "µs": 1e-6, "μs": 1e-6, "ms": 1e-3, "s": 1.0, "m": 60.0, "h": 3600.0}
_COMPONENT = r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)"
_DURATION = re.compile(rf"([-+]?)((?:{_COMPONENT})+)")


def split_csv(text: str) -> list[str]:
    """Split on commas, trimming items and dropping empty ones."""
    return [part.strip() for part in text.split(",") if part.strip()]


def safe_target_label(raw_url: str) -> str:
    """Reduce a URL to host:port, filling in the scheme's default port."""
    try:
        parts = urlsplit(raw_url)
        host, port = parts.hostname, parts.port
    except ValueError:
        return raw_url
    if not host:
        return raw_url
    if port is None:
        port = 443 if parts.scheme == "https" else 80
    return f"[{host}]:{port}" if ":" in host else f"{host}:{port}"


def env_or_default(key: str, default: str) -> str:
    """Return the trimmed environment value, or default when it is empty."""
    return os.environ.get(key, "").strip() or default


def parse_duration(text: str) -> float:
    """Parse a duration such as '300ms', '1.5h' or '2h45m' into seconds."""
    if text.lstrip("+-") == "0" and len(text) - len(text.lstrip("+-")) <= 1:
        return 0.0
    match = _DURATION.fullmatch(text)
    if match is None:
        raise ValueError(f'time: invalid duration "{text}"')
    seconds = sum(float(num) * _UNIT_SECONDS[unit] for num, unit in re.findall(_COMPONENT, match.group(2)))
    if seconds * 1e9 > 2**63:
        raise ValueError(f'time: invalid duration "{text}"')
    return -seconds if match.group(1) == "-" else seconds


def env_duration(key: str, default: float) -> float:
    """Read a duration in seconds from the environment, falling back on error."""
    value = os.environ.get(key, "").strip()
    if not value:
        return default
    try:
        return parse_duration(value)
    except ValueError as exc:
        log.warning("invalid duration in %s=%r: %s (using default %ss)", key, value, exc, default)
        return default


def build_server(
    collector: Collector,
    listen_address: str = ":9900",
    metrics_path: str = "/metrics",
    health_path: str = "/healthz",
) -> ThreadingHTTPServer:
    """Bind an HTTP server exposing metrics, health and an index page."""
    host, sep, port = listen_address.rpartition(":")
    if not sep or not port.isdigit() or int(port) > 65535:
        raise ValueError(f"address {listen_address}: invalid or missing port")

    class Handler(BaseHTTPRequestHandler):
        timeout = 5.0

        def do_GET(self) -> None:
            path = urlsplit(self.path).path
            status, content_type = 200, "text/plain; charset=utf-8"
            if path == metrics_path:
                try:
                    body = render_exposition(collector).encode()
                    content_type = "text/plain; version=0.0.4; charset=utf-8"
                except ValueError as exc:
                    status, body = 500, f"An error has occurred while serving metrics:\n\n{exc}\n".encode()
            elif path == health_path:
                status, body = (200, b"ok\n") if collector.healthy() else (503, b"unhealthy\n")
            else:
                body = b"nasne_exporter\n"
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args) -> None:
            log.debug(format, *args)

    return ThreadingHTTPServer((host.strip("[]"), int(port)), Handler)


def _duration_arg(text: str) -> float:
    try:
        return parse_duration(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nasne_exporter")
    options = (
        ("nasne-url", env_or_default("NASNE_URL", ""), str,
         "comma-separated nasne base URLs (e.g. http://192.168.11.1:64210,http://192.168.11.2:64210)"),
        ("listen-address", env_or_default("LISTEN_ADDRESS", ":9900"), str, "address to listen on"),
        ("metrics-path", env_or_default("METRICS_PATH", "/metrics"), str, "metrics HTTP path"),
        ("health-path", env_or_default("HEALTH_PATH", "/healthz"), str, "health check path"),
        ("http-timeout", env_duration("HTTP_TIMEOUT", 5.0), _duration_arg, "timeout per HTTP request to nasne"),
        ("scrape-timeout", env_duration("SCRAPE_TIMEOUT", 10.0), _duration_arg, "timeout for each target scrape"),
    )
    for flag, default, kind, help_text in options:
        parser.add_argument(f"-{flag}", f"--{flag}", dest=flag.replace("-", "_"),
                            default=default, type=kind, help=help_text)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the exporter; returns a process exit status."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    args = _parser().parse_args(argv)

    urls = split_csv(args.nasne_url)
    if not urls:
        log.error("nasne-url (or NASNE_URL) is required")
        return 1

    targets = []
    for raw_url in urls:
        try:
            client = NasneClient(raw_url, args.http_timeout)
        except NasneError as exc:
            log.error("create nasne client for %s: %s", raw_url, exc)
            return 1
        targets.append(TargetFetcher(safe_target_label(raw_url), client))

    collector = Collector(targets, args.scrape_timeout)
    try:
        server = build_server(collector, args.listen_address, args.metrics_path, args.health_path)
    except (OSError, ValueError) as exc:
        log.error("http server failed: %s", exc)
        return 1

    log.info("starting nasne_exporter on %s", args.listen_address)
    log.info("metrics endpoint: %s", args.metrics_path)
    log.info("health endpoint: %s", args.health_path)
    log.info("targets: %d", len(urls))
    with server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())