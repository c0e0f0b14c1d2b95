import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlparse

import pytest

from discordsync.core.discord_client import AuthError, DiscordClient, NotFoundError, TransportError


class _Handler(BaseHTTPRequestHandler):
    # class-level counters so tests can assert retries/calls
    calls = {}
    last = {}

    protocol_version = "HTTP/1.1"

    def _auth_ok(self) -> bool:
        return self.headers.get("Authorization", "").strip() == "Bot TEST"

    def _send_json(self, status: int, obj) -> None:
        raw = json.dumps(obj).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)

    def _send_empty(self) -> None:
        self.send_response(204)
        self.end_headers()

    def _body(self):
        length = int(self.headers.get("Content-Length", "0"))
        raw = self.rfile.read(length) if length else b""
        return json.loads(raw.decode("utf-8")) if raw else None

    def _count(self, key: str) -> int:
        _Handler.calls[key] = _Handler.calls.get(key, 0) + 1
        return _Handler.calls[key]

    def do_GET(self):  # noqa: N802
        url = urlparse(self.path)
        path = url.path
        if not self._auth_ok():
            self._send_json(401, {"message": "401: Unauthorized", "code": 0})
            return

        if path == "/ok":
            self._count("ok")
            _Handler.last["query"] = parse_qs(url.query)
            self._send_json(200, {"ok": True})
        elif path == "/flaky":
            # first 2 attempts 502, then 200
            if self._count("flaky") < 3:
                self._send_json(502, {"message": "Bad Gateway"})
            else:
                self._send_json(200, {"ok": "finally"})
        elif path == "/missing":
            self._count("missing")
            self._send_json(404, {"message": "Unknown Member", "code": 10007})
        elif path == "/forbidden":
            self._count("forbidden")
            self._send_json(403, {"message": "Missing Permissions", "code": 50013})
        elif path == "/slow":
            self._count("slow")
            time.sleep(0.3)  # longer than client timeout in test
            self._send_json(200, {"ok": True})
        else:
            self._send_json(404, {"message": "404: Not Found", "code": 0})

    def do_PATCH(self):  # noqa: N802
        body = self._body()
        if not self._auth_ok():
            self._send_json(401, {"message": "401: Unauthorized", "code": 0})
            return
        self._count("patch")
        _Handler.last["patch"] = body
        self._send_json(200, {"patched": True, **(body or {})})

    def do_POST(self):  # noqa: N802
        body = self._body()
        self._count("post")
        self._send_json(201, {"id": "900", **(body or {})})

    def do_DELETE(self):  # noqa: N802
        self._count("delete")
        self._send_empty()

    def log_message(self, fmt, *args):  # silence server logs during tests
        return


@pytest.fixture()
def http_server():
    _Handler.calls = {}
    _Handler.last = {}
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    host, port = server.server_address
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://{host}:{port}"
    server.shutdown()
    thread.join(timeout=1.0)


def test_get_ok_sends_bot_token_and_params(http_server):
    client = DiscordClient("TEST", base_url=http_server, timeout_sec=2, retries=1)
    data = client.get_json("/ok", params={"limit": 5})
    assert data["ok"] is True
    assert _Handler.last["query"] == {"limit": ["5"]}


def test_patch_post_delete(http_server):
    client = DiscordClient("TEST", base_url=http_server, timeout_sec=2, retries=1)
    out = client.patch_json("/guilds/1/members/2", {"roles": ["3"]})
    assert out["patched"] is True
    assert _Handler.last["patch"] == {"roles": ["3"]}

    created = client.post_json("/guilds/1/channels", {"name": "general"})
    assert created["id"] == "900"

    assert client.delete_json("/channels/900") == {}
    assert _Handler.calls["delete"] == 1


def test_retry_on_5xx_then_success(http_server):
    client = DiscordClient("TEST", base_url=http_server, timeout_sec=2, retries=3, backoff_base_sec=0.01)
    data = client.get_json("/flaky")
    assert data["ok"] == "finally"
    assert _Handler.calls["flaky"] == 3  # 2 failures + 1 success


def test_not_found_is_distinguished_and_not_retried(http_server):
    client = DiscordClient("TEST", base_url=http_server, timeout_sec=2, retries=3, backoff_base_sec=0.01)
    with pytest.raises(NotFoundError) as ei:
        client.get_json("/missing")
    assert ei.value.status == 404
    assert ei.value.message == "Unknown Member"
    assert _Handler.calls["missing"] == 1


def test_auth_errors(http_server):
    client = DiscordClient("TEST", base_url=http_server, timeout_sec=2, retries=3, backoff_base_sec=0.01)
    with pytest.raises(AuthError) as ei:
        client.get_json("/forbidden")
    assert ei.value.status == 403
    assert _Handler.calls["forbidden"] == 1

    bad = DiscordClient("WRONG", base_url=http_server, timeout_sec=2, retries=0)
    with pytest.raises(AuthError):
        bad.get_json("/ok")
    assert "ok" not in _Handler.calls


def test_timeout_and_retries(http_server):
    client = DiscordClient("TEST", base_url=http_server, timeout_sec=0.05, retries=2, backoff_base_sec=0.01)
    with pytest.raises(TransportError) as ei:
        client.get_json("/slow")
    err = ei.value
    # status 0 for network/timeout
    assert err.status == 0
    assert not isinstance(err, NotFoundError)
    # 1 + 2 retries = 3 total
    assert _Handler.calls["slow"] >= 3


def test_base_url_required():
    with pytest.raises(ValueError):
        DiscordClient("TEST", base_url="")
