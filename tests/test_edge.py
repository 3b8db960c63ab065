import asyncio
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from api import config as edge_config
from api import proxy as edge
from api import services as edge_services
from relay import settings


@pytest.fixture
def upstream(monkeypatch):
    """Route the edge relay's outbound client through a MockTransport handler."""
    seen = []

    def install(handler):
        def recording(request):
            seen.append(request)
            return handler(request)

        make_client = edge._client
        monkeypatch.setattr(edge, "_client", lambda: make_client(transport=httpx.MockTransport(recording)))
        return seen

    return install


@pytest.fixture
def client():
    return TestClient(edge.app)


def test_preflight_is_204_without_fetching(client, upstream):
    seen = upstream(lambda request: httpx.Response(200))
    resp = client.options("/api/proxy", params={"url": "garbage"})

    assert resp.status_code == 204
    assert resp.content == b""
    assert resp.headers["access-control-allow-origin"] == "*"
    assert resp.headers["access-control-allow-headers"] == "Content-Type, Range"
    assert resp.headers["access-control-max-age"] == "86400"
    assert seen == []


@pytest.mark.parametrize("params", [{}, {"url": ""}, {"url": "example.com/x.m3u8"}])
def test_bad_url_is_400(client, params):
    resp = client.get("/api/proxy", params=params)

    assert resp.status_code == 400
    assert "error" in resp.json()
    assert resp.headers["access-control-allow-origin"] == "*"


def test_unreachable_upstream_is_500(client, upstream):
    def refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)

    upstream(refuse)
    resp = client.get("/api/proxy", params={"url": "https://down.example.com/a.m3u8"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Proxy error: Connection refused"}
    assert resp.headers["access-control-allow-origin"] == "*"


def test_playlist_by_content_type_is_rewritten(client, upstream):
    upstream(lambda request: httpx.Response(
        200,
        headers={"Content-Type": "application/x-mpegURL"},
        content=b"#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1\nlow/index.m3u8\nhttps://cdn/hi.m3u8",
    ))
    resp = client.get("/api/proxy", params={"url": "https://h/path/playlist?id=7"})

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/vnd.apple.mpegurl"
    assert resp.text.split("\n") == [
        "#EXTM3U",
        "#EXT-X-STREAM-INF:BANDWIDTH=1",
        "http://testserver/api/proxy?url=https%3A%2F%2Fh%2Fpath%2Flow%2Findex.m3u8",
        "http://testserver/api/proxy?url=https%3A%2F%2Fcdn%2Fhi.m3u8",
    ]
    assert resp.headers["content-length"] == str(len(resp.content))


def test_edge_does_not_sniff_body(client, upstream):
    body = b"#EXTM3U\nseg1.ts"
    upstream(lambda request: httpx.Response(200, headers={"Content-Type": "text/plain"}, content=body))
    resp = client.get("/api/proxy", params={"url": "https://h/live"})

    assert resp.content == body


def test_range_and_user_agent_are_forwarded(client, upstream):
    seen = upstream(lambda request: httpx.Response(
        206,
        headers={"Content-Type": "video/mp2t", "Content-Range": "bytes 10-13/100",
                 "Accept-Ranges": "bytes", "X-Cache": "HIT"},
        content=b"abcd",
    ))
    resp = client.get("/api/proxy", params={"url": "https://h/seg1.ts"},
                      headers={"Range": "bytes=10-13", "User-Agent": "ExoPlayer"})

    assert resp.status_code == 206
    assert resp.content == b"abcd"
    assert resp.headers["content-range"] == "bytes 10-13/100"
    assert "x-cache" not in resp.headers

    request = seen[0]
    assert request.headers["range"] == "bytes=10-13"
    assert request.headers["user-agent"] == "ExoPlayer"
    assert request.headers["referer"] == "https://h"


def test_redirects_are_followed(client, upstream):
    def handler(request):
        if request.url.path == "/old.m3u8":
            return httpx.Response(302, headers={"Location": "https://h/new/live.m3u8"})
        return httpx.Response(200, content=b"#EXTM3U\nseg.ts")

    upstream(handler)
    resp = client.get("/api/proxy", params={"url": "https://h/old.m3u8"})

    # Relative references still resolve against the requested URL.
    assert resp.text == "#EXTM3U\nhttp://testserver/api/proxy?url=https%3A%2F%2Fh%2Fseg.ts"


def test_client_bounds_redirects_and_time():
    async def inspect():
        async with edge._client() as client:
            return client.follow_redirects, client.max_redirects, client.timeout

    follow, max_redirects, timeout = asyncio.run(inspect())

    assert follow is True
    assert max_redirects == 5
    assert timeout == httpx.Timeout(30)


def test_redirect_chain_longer_than_limit_is_500(client, upstream):
    def endless(request):
        hop = int(request.url.path[len("/hop"):])
        return httpx.Response(302, headers={"Location": f"https://h/hop{hop + 1}"})

    seen = upstream(endless)
    resp = client.get("/api/proxy", params={"url": "https://h/hop0"})

    assert resp.status_code == 500
    assert resp.json()["error"].startswith("Proxy error: ")
    assert resp.headers["access-control-allow-origin"] == "*"
    assert len(seen) == settings.MAX_REDIRECTS + 1


def test_slow_upstream_is_cut_off_at_total_timeout(client, upstream, monkeypatch):
    monkeypatch.setattr(settings, "UPSTREAM_TIMEOUT", 0.5)

    async def trickle():
        for byte in (b"a", b"b", b"c", b"d"):
            await asyncio.sleep(0.3)
            yield byte

    upstream(lambda request: httpx.Response(200, headers={"Content-Type": "video/mp2t"}, content=trickle()))
    started = time.monotonic()
    resp = client.get("/api/proxy", params={"url": "https://h/seg1.ts"})
    elapsed = time.monotonic() - started

    assert resp.status_code == 500
    assert resp.json() == {"error": "Proxy error: timed out after 0.5s"}
    assert elapsed < 1.0


def test_post_is_405_with_cors(client):
    resp = client.post("/api/proxy", params={"url": "https://h/a.ts"})

    assert resp.status_code == 405
    assert resp.json() == {"error": "Method not allowed"}
    assert resp.headers["access-control-allow-origin"] == "*"


def test_config_function(settings_file):
    settings_file({"app_name": "Edge TV", "version": "2.1.0"})
    resp = TestClient(edge_config.app).get("/api/config")

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
    data = resp.json()["data"]
    assert data["app_name"] == "Edge TV"
    assert data["version"] == "2.1.0"
    assert data["primary_color"] == "#1a73e8"


def test_services_function_missing_config(settings_file):
    resp = TestClient(edge_services.app).get("/api/services")

    assert resp.status_code == 500
    assert resp.json() == {"error": "Configuration file not found"}
    assert resp.headers["access-control-allow-origin"] == "*"


def test_services_function(settings_file):
    settings_file({"services": [{"id": "x"}]})
    resp = TestClient(edge_services.app).get("/api/services")

    assert resp.json() == {"success": True, "data": {"services": [{"id": "x"}], "allow_custom": True}}
