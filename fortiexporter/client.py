"""HTTP access to the FortiOS REST API using token authentication."""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import urlsplit

from .config import ConfigError, FortiExporterConfig


class APIError(Exception):
    """A request to the FortiOS API failed."""


@dataclass(frozen=True)
class HTTPRequest:
    """An outgoing HTTP request."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class HTTPResponse:
    """Status and body of an HTTP response."""

    status: int
    body: bytes


class HTTPClient(Protocol):
    def do(self, request: HTTPRequest) -> HTTPResponse: ...


_tls_context: ssl.SSLContext | None = None
_tls_timeout: float | None = None


class UrllibHTTPClient:
    """HTTP client on top of urllib, using the TLS settings from configure()."""

    def __init__(self, context: ssl.SSLContext | None = None, timeout: float | None = None):
        self._context = context
        self._timeout = timeout

    def do(self, request: HTTPRequest) -> HTTPResponse:
        """Send the request and return the response, whatever its status."""
        context = self._context if self._context is not None else _tls_context
        timeout = self._timeout if self._timeout is not None else _tls_timeout
        req = urllib.request.Request(
            request.url, headers=dict(request.headers), method=request.method
        )
        try:
            with urllib.request.urlopen(req, timeout=timeout, context=context) as resp:
                return HTTPResponse(resp.status, resp.read())
        except urllib.error.HTTPError as exc:
            with exc:
                return HTTPResponse(exc.code, exc.read())
        except OSError as exc:
            raise APIError(f"request to {request.url} failed: {exc}") from exc


class FortiTokenClient:
    """API client that authenticates with a bearer token."""

    def __init__(self, target: str, http_client: HTTPClient, token: str):
        self.target = target
        self._http = http_client
        self._token = token

    def get(self, path: str, query: str = "") -> Any:
        """GET an API path and return the decoded JSON body."""
        url = self.target + ("" if path.startswith("/") else "/") + path
        if query:
            url += "?" + query
        request = HTTPRequest("GET", url, {"Authorization": f"Bearer {self._token}"})
        response = self._http.do(request)
        if response.status != 200:
            raise APIError(
                f'Response code was {response.status}, expected 200 (path: "{path}")'
            )
        try:
            return json.loads(response.body)
        except ValueError as exc:
            raise APIError(f'invalid JSON from "{path}": {exc}') from exc

    def __str__(self) -> str:
        return self.target


def new_forti_client(
    target: str, http_client: HTTPClient, config: FortiExporterConfig
) -> FortiTokenClient:
    """Return an API client for a target registered in the authentication map."""
    auth = config.auth_keys.get(target)
    if auth is None:
        raise APIError(f'no API authentication registered for "{target}"')
    if auth.token:
        if urlsplit(target).scheme != "https":
            raise APIError("FortiOS only supports token for HTTPS connections")
        return FortiTokenClient(target, http_client, auth.token)
    raise APIError(f'invalid authentication data for "{target}"')


def configure(config: FortiExporterConfig) -> ssl.SSLContext:
    """Set up the TLS context and timeout used by UrllibHTTPClient by default."""
    global _tls_context, _tls_timeout
    context = ssl.create_default_context()
    for cert in config.tls_extra_cas:
        try:
            context.load_verify_locations(cadata=cert.content.decode("ascii"))
        except (ssl.SSLError, ValueError) as exc:
            raise ConfigError(f'failed to append certs from PEM "{cert.path}": {exc}') from exc
    if config.tls_insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    _tls_context = context
    _tls_timeout = float(config.tls_timeout)
    return context