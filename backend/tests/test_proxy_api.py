"""Image/video proxy: referer spoofing, range forwarding, size cap."""

import httpx
import pytest

from nobar.services.proxy import image_referer, url_origin, video_referer


@pytest.mark.parametrize("url,expected", [
    ("https://storage.shngm.id/a/1.jpg", "https://shinigami.id"),
    ("https://cdn.shinigami.example/1.jpg", "https://shinigami.id"),
    ("https://img.other.test:8443/x.png", "https://img.other.test:8443"),
    ("not a url", "https://shinigami.id"),
])
def test_image_referer(url, expected):
    assert image_referer(url) == expected


@pytest.mark.parametrize("url,expected", [
    ("https://hwztvideo.dramaboxdb.com/ep1.mp4", "https://www.dramabox.com"),
    ("https://cdn.test/_v7/abc/master.m3u8", "https://megacloud.tv"),
    ("https://video.other.test/ep.mp4", "https://video.other.test"),
])
def test_video_referer(url, expected):
    assert video_referer(url) == expected


def test_url_origin_rejects_non_http():
    assert url_origin("ftp://x/y") is None
    assert url_origin("/relative/path") is None


async def test_image_is_proxied_with_referer(client, upstream):
    upstream.respond(
        "storage.shngm.id/c/01.jpg",
        lambda request: httpx.Response(200, content=b"\xff\xd8jpeg", headers={"content-type": "image/jpeg"}),
    )
    resp = await client.get("/api/proxy/image", params={"url": "https://storage.shngm.id/c/01.jpg"})
    assert resp.status_code == 200
    assert resp.content == b"\xff\xd8jpeg"
    assert resp.headers["content-type"] == "image/jpeg"
    assert resp.headers["cache-control"] == "public, max-age=86400"
    assert upstream.last().headers["referer"] == "https://shinigami.id"


async def test_image_requires_url(client, upstream):
    resp = await client.get("/api/proxy/image")
    assert resp.status_code == 400
    assert resp.json() == {"error": "URL required"}


async def test_image_origin_failure_is_a_404(client, upstream):
    resp = await client.get("/api/proxy/image", params={"url": "https://cdn.test/missing.jpg"})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Image not found"}


async def test_video_forwards_range_and_partial_status(client, upstream):
    def partial(request):
        assert request.headers["range"] == "bytes=0-9"
        assert request.headers["origin"] == "https://www.dramabox.com"
        return httpx.Response(
            206,
            content=b"0123456789",
            headers={"content-type": "video/mp4", "content-range": "bytes 0-9/500", "accept-ranges": "bytes"},
        )

    upstream.respond("v.dramabox.test/ep1.mp4", partial)
    resp = await client.get(
        "/api/proxy/video",
        params={"url": "https://v.dramabox.test/ep1.mp4"},
        headers={"Range": "bytes=0-9"},
    )
    assert resp.status_code == 206
    assert resp.content == b"0123456789"
    assert resp.headers["content-range"] == "bytes 0-9/500"
    assert resp.headers["accept-ranges"] == "bytes"
    assert resp.headers["content-length"] == "10"


async def test_video_defaults_to_full_range(client, upstream):
    upstream.respond("video.test/ep.mp4", lambda request: httpx.Response(200, content=request.headers["range"].encode()))
    resp = await client.get("/api/proxy/video", params={"url": "https://video.test/ep.mp4"})
    assert resp.content == b"bytes=0-"


async def test_oversized_video_is_refused(client, upstream):
    upstream.respond("video.test/big.mp4", lambda request: httpx.Response(200, content=b"x" * 2048))
    resp = await client.get("/api/proxy/video", params={"url": "https://video.test/big.mp4"})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Video not found"}


async def test_unknown_proxy_action(client, upstream):
    resp = await client.get("/api/proxy/audio")
    assert resp.status_code == 404
