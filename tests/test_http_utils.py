import httpx
import pytest
from tenacity import wait_none

from segment_merger.configs import RouteConfig, Settings, TransportConfig
from segment_merger.errors import FetchError
from segment_merger.utils.http_utils import (
    build_request_headers,
    create_httpx_client,
    download_segment,
    fetch_with_retry,
)


@pytest.mark.asyncio
async def test_download_segment_writes_file(tmp_path):
    payload = b"\x47" * 188 * 4

    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=payload))

    async with httpx.AsyncClient(transport=transport) as client:
        path = await download_segment(client, "https://cdn.example.com/seg.ts", tmp_path / "dl" / "seg.ts")

    assert path == tmp_path / "dl" / "seg.ts"
    assert path.read_bytes() == payload


@pytest.mark.asyncio
async def test_download_segment_status_error_leaves_no_file(tmp_path):
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(403))) as client:
        with pytest.raises(FetchError) as exc_info:
            await download_segment(client, "https://cdn.example.com/seg.ts", tmp_path / "seg.ts")

    assert exc_info.value.status_code == 403
    assert not (tmp_path / "seg.ts").exists()


@pytest.mark.asyncio
async def test_download_segment_retries_transient_errors(tmp_path, monkeypatch):
    monkeypatch.setattr(download_segment.retry, "wait", wait_none())
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request.url)
        if len(attempts) < 3:
            return httpx.Response(503)
        return httpx.Response(200, content=b"ok")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        path = await download_segment(client, "https://cdn.example.com/seg.ts", tmp_path / "seg.ts")

    assert len(attempts) == 3
    assert path.read_bytes() == b"ok"


@pytest.mark.asyncio
async def test_download_segment_invalid_url_is_not_retried(tmp_path):
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request.url)
        return httpx.Response(200, content=b"ok")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(FetchError) as exc_info:
            await download_segment(client, "http://xn--a.com/seg.ts", tmp_path / "seg.ts")

    assert exc_info.value.status_code == 400
    assert attempts == []
    assert not (tmp_path / "seg.ts").exists()


@pytest.mark.asyncio
async def test_fetch_with_retry_invalid_url():
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200))) as client:
        with pytest.raises(FetchError) as exc_info:
            await fetch_with_retry(client, "GET", "http://xn--a.com/live.m3u8")

    assert exc_info.value.status_code == 400


def test_request_headers_use_configured_user_agent():
    headers = build_request_headers(Settings(user_agent="merger-test/1.0"), {"referer": "https://example.com/"})

    assert headers["user-agent"] == "merger-test/1.0"
    assert headers["referer"] == "https://example.com/"
    assert headers["accept"] == "*/*"


def test_transport_mounts():
    config = TransportConfig(
        proxy_url="http://proxy:8080",
        transport_routes={"all://*.example.com": RouteConfig(proxy=True)},
    )

    mounts = config.get_mounts()

    assert set(mounts) == {"all://*.example.com"}
    assert isinstance(mounts["all://*.example.com"], httpx.AsyncHTTPTransport)


def test_transport_mounts_global_settings():
    config = TransportConfig(disable_ssl_verification_globally=True)

    assert set(config.get_mounts()) == {"all://"}


@pytest.mark.asyncio
async def test_create_httpx_client_applies_settings():
    async with create_httpx_client(Settings(user_agent="merger-test/1.0")) as client:
        assert client.headers["user-agent"] == "merger-test/1.0"
        assert client.timeout.read == 30
