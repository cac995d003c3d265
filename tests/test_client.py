import json
import ssl
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from fortiexporter.client import (
    APIError,
    FortiTokenClient,
    HTTPRequest,
    HTTPResponse,
    UrllibHTTPClient,
    configure,
    new_forti_client,
)
from fortiexporter.config import (
    ConfigError,
    FortiExporterConfig,
    LocalCert,
    TargetAuth,
)


class FakeHTTPClient:
    def __init__(self, status, body):
        self.status = status
        self.body = body
        self.requests = []

    def do(self, request):
        self.requests.append(request)
        return HTTPResponse(self.status, self.body.encode())


def new_client(status, body):
    fake = FakeHTTPClient(status, body)
    return FortiTokenClient("https://localhost", fake, "token"), fake


def test_get_parse():
    client, _ = new_client(200, '{ "data": "test" }')
    assert client.get("test", "") == {"data": "test"}


def test_get_fail():
    client, _ = new_client(404, "{}")
    with pytest.raises(APIError):
        client.get("test", "")


def test_get_builds_url_and_header():
    client, fake = new_client(200, "[]")
    assert client.get("api/v2/monitor/system/status", "vdom=*") == []
    (request,) = fake.requests
    assert request.method == "GET"
    assert request.url == "https://localhost/api/v2/monitor/system/status?vdom=*"
    assert request.headers["Authorization"] == "Bearer token"


def test_get_invalid_json():
    client, _ = new_client(200, "not json")
    with pytest.raises(APIError):
        client.get("test")


def test_client_str():
    client, _ = new_client(200, "{}")
    assert str(client) == "https://localhost"


def _config(auth):
    return FortiExporterConfig(auth_keys=auth)


def test_new_client_known_target():
    conf = _config({"https://localhost": TargetAuth(token="token")})
    client = new_forti_client("https://localhost", FakeHTTPClient(200, "{}"), conf)
    assert str(client) == "https://localhost"


def test_new_client_unknown_target():
    with pytest.raises(APIError, match="no API authentication"):
        new_forti_client("https://localhost", FakeHTTPClient(200, "{}"), _config({}))


def test_new_client_requires_https():
    conf = _config({"http://localhost": TargetAuth(token="token")})
    with pytest.raises(APIError, match="HTTPS"):
        new_forti_client("http://localhost", FakeHTTPClient(200, "{}"), conf)


def test_new_client_empty_token():
    conf = _config({"https://localhost": TargetAuth(token="")})
    with pytest.raises(APIError, match="invalid authentication"):
        new_forti_client("https://localhost", FakeHTTPClient(200, "{}"), conf)


def test_configure_insecure():
    context = configure(FortiExporterConfig(tls_insecure=True, tls_timeout=3))
    assert context.verify_mode == ssl.CERT_NONE
    assert context.check_hostname is False


def test_configure_secure_by_default():
    context = configure(FortiExporterConfig())
    assert context.verify_mode == ssl.CERT_REQUIRED


def test_configure_bad_pem():
    conf = FortiExporterConfig(tls_extra_cas=(LocalCert("bad.pem", b"not a certificate"),))
    with pytest.raises(ConfigError):
        configure(conf)


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path.startswith("/api/ok"):
            body = json.dumps(
                {"auth": self.headers.get("Authorization"), "path": self.path}
            ).encode()
            self.send_response(200)
        else:
            body = b"{}"
            self.send_response(404)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def server_url():
    server = HTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def test_urllib_client_success(server_url):
    response = UrllibHTTPClient(timeout=5).do(HTTPRequest("GET", server_url + "/api/ok"))
    assert response.status == 200
    assert json.loads(response.body)["path"] == "/api/ok"


def test_urllib_client_error_status(server_url):
    response = UrllibHTTPClient(timeout=5).do(HTTPRequest("GET", server_url + "/missing"))
    assert response.status == 404


def test_token_client_over_urllib(server_url):
    client = FortiTokenClient(server_url, UrllibHTTPClient(timeout=5), "token")
    assert client.get("api/ok", "vdom=*") == {"auth": "Bearer token", "path": "/api/ok?vdom=*"}
    with pytest.raises(APIError):
        client.get("api/missing")


def test_urllib_client_connection_failure():
    server = HTTPServer(("127.0.0.1", 0), _Handler)
    port = server.server_address[1]
    server.server_close()
    with pytest.raises(APIError):
        UrllibHTTPClient(timeout=2).do(HTTPRequest("GET", f"http://127.0.0.1:{port}/"))