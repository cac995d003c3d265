"""HTTP front end of the exporter: the /metrics and /probe endpoints."""

from __future__ import annotations

import logging
import platform
import socket
import sys
import time
from collections.abc import Sequence
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as distribution_version
from typing import Any
from urllib.parse import parse_qs, urlsplit

from . import client as forti_client
from . import config as forti_config
from .client import APIError, HTTPRequest, HTTPResponse, UrllibHTTPClient
from .collector import ProbeCollector
from .config import ConfigError, FortiExporterConfig
from .metrics import Desc, Metric, ValueType, render_text

log = logging.getLogger(__name__)

VERSION = "(devel)"
GIT_HASH = "(no hash)"

_CONTENT_TYPE_METRICS = "text/plain; version=0.0.4; charset=utf-8"
_CONTENT_TYPE_TEXT = "text/plain; charset=utf-8"


@dataclass(frozen=True)
class BuildInfo:
    """Version details reported by the exporter."""

    version: str
    git_hash: str
    python_version: str


class ProbeRejected(Exception):
    """A probe request cannot be served."""


def get_build_info() -> BuildInfo:
    """Return the exporter's version, revision and runtime version."""
    version = VERSION
    if version == "(devel)":
        try:
            version = distribution_version("fortiexporter")
        except PackageNotFoundError:
            pass
    return BuildInfo(
        version=version.removeprefix("v"),
        git_hash=GIT_HASH,
        python_version=platform.python_version(),
    )


def build_info_metrics(build_info: BuildInfo) -> list[Metric]:
    """Return the info metric describing the build."""
    desc = Desc(
        "fortigate_exporter_build_info",
        "This info metric contains build information for about the exporter",
        ("version", "revision", "pythonversion"),
    )
    return [
        desc.metric(
            ValueType.GAUGE,
            1,
            build_info.version,
            build_info.git_hash,
            build_info.python_version,
        )
    ]


class _DeadlineClient:
    """Refuses requests once the scrape has run out of time."""

    def __init__(self, inner: Any, timeout: float):
        self._inner = inner
        self._deadline = time.monotonic() + timeout

    def do(self, request: HTTPRequest) -> HTTPResponse:
        if time.monotonic() >= self._deadline:
            raise APIError("context deadline exceeded")
        return self._inner.do(request)


def handle_probe(
    query: str, config: FortiExporterConfig, http_client: Any = None
) -> str:
    """Probe the target named in the query and return the metrics as text.

    Raises ProbeRejected when the request names no usable target.
    """
    target = parse_qs(query, keep_blank_values=True).get("target", [""])[0]
    if not target:
        raise ProbeRejected("Target parameter missing or empty")

    if http_client is None:
        http_client = UrllibHTTPClient()
    limited = _DeadlineClient(http_client, config.scrape_timeout)

    success_desc = Desc("probe_success", "Whether or not the probe succeeded")
    duration_desc = Desc("probe_duration_seconds", "How many seconds the probe took to complete")

    start = time.monotonic()
    collector = ProbeCollector()
    try:
        success = collector.probe(target, limited, config)
    except (ValueError, APIError) as exc:
        log.warning("Probe request rejected; error is: %s", exc)
        raise ProbeRejected(f"probe: {exc}") from exc
    duration = time.monotonic() - start

    if success:
        log.info("Probe of %r succeeded, took %.3f seconds", target, duration)
    else:
        log.info("Probe of %r failed, took %.3f seconds", target, duration)

    metrics = [
        success_desc.metric(ValueType.GAUGE, 1.0 if success else 0.0),
        duration_desc.metric(ValueType.GAUGE, duration),
    ]
    metrics.extend(collector.collect())
    return render_text(metrics)


class _ExporterServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(
        self,
        address: tuple[str, int],
        config: FortiExporterConfig,
        http_client: Any,
        build_info: BuildInfo,
    ):
        if ":" in address[0]:
            self.address_family = socket.AF_INET6
        self.config = config
        self.http_client = http_client
        self.build_info = build_info
        super().__init__(address, ExporterHandler)


class ExporterHandler(BaseHTTPRequestHandler):
    """Serves /metrics and /probe."""

    server: _ExporterServer

    def do_GET(self) -> None:
        parts = urlsplit(self.path)
        if parts.path == "/metrics":
            body = render_text(build_info_metrics(self.server.build_info))
            self._send(200, body, _CONTENT_TYPE_METRICS)
        elif parts.path == "/probe":
            try:
                body = handle_probe(parts.query, self.server.config, self.server.http_client)
            except ProbeRejected as exc:
                self._send(400, f"{exc}\n", _CONTENT_TYPE_TEXT)
                return
            except ValueError as exc:
                log.error("Error gathering metrics: %s", exc)
                self._send(500, f"An error has occurred while gathering metrics: {exc}\n",
                           _CONTENT_TYPE_TEXT)
                return
            self._send(200, body, _CONTENT_TYPE_METRICS)
        else:
            self._send(404, "404 page not found\n", _CONTENT_TYPE_TEXT)

    def _send(self, status: int, body: str, content_type: str) -> None:
        data = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format: str, *args: Any) -> None:
        log.debug("%s - %s", self.address_string(), format % args)


def _parse_listen(listen: str) -> tuple[str, int]:
    host, sep, port = listen.rpartition(":")
    if not sep:
        raise ValueError(f"invalid listen address {listen!r}")
    host = host.removeprefix("[").removesuffix("]")
    return host, int(port)


def make_server(
    config: FortiExporterConfig, http_client: Any = None, build_info: BuildInfo | None = None
) -> ThreadingHTTPServer:
    """Return an HTTP server bound to the configured listen address."""
    return _ExporterServer(
        _parse_listen(config.listen),
        config,
        http_client if http_client is not None else UrllibHTTPClient(),
        build_info if build_info is not None else get_build_info(),
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Run the exporter until interrupted."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    build_info = get_build_info()
    log.info("FortigateExporter %s ( %s )", build_info.version, build_info.git_hash)

    try:
        config = forti_config.init(argv)
    except ConfigError as exc:
        log.error("Initialization error: %s", exc)
        return 1
    try:
        forti_client.configure(config)
    except ConfigError as exc:
        log.error("%s", exc)
        return 1

    try:
        server = make_server(config, UrllibHTTPClient(), build_info)
    except (OSError, ValueError) as exc:
        log.error("Unable to serve: %s", exc)
        return 1

    log.info("Fortigate exporter running, listening on %r", config.listen)
    with server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    sys.exit(main())