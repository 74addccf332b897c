"""Byte proxy for images and video.

Some CDNs reject hotlinked requests unless the Referer/Origin matches the
site that embeds them, so the proxy picks those headers from the target URL
and re-serves the bytes with a small whitelist of response headers.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlsplit

import httpx

logger = logging.getLogger(__name__)

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

SHINIGAMI_REFERER = "https://shinigami.id"
DRAMABOX_REFERER = "https://www.dramabox.com"
MEGACLOUD_REFERER = "https://megacloud.tv"

IMAGE_CACHE_CONTROL = "public, max-age=86400"
VIDEO_CACHE_CONTROL = "public, max-age=3600"

FORWARDED_VIDEO_HEADERS = ("accept-ranges", "content-range")


class ProxyError(Exception):
    """The origin could not serve the requested bytes."""


@dataclass
class ProxiedContent:
    body: bytes
    content_type: str
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)


def url_origin(url: str) -> Optional[str]:
    """``scheme://host[:port]`` of an absolute http(s) URL, else None."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def image_referer(url: str) -> str:
    if "shngm.id" in url or "shinigami" in url:
        return SHINIGAMI_REFERER
    return url_origin(url) or SHINIGAMI_REFERER


def video_referer(url: str) -> str:
    """Referer (also used as Origin) for a video URL."""
    if "dramabox" in url:
        return DRAMABOX_REFERER
    if "/_v7/" in url or "megacloud" in url or "rapid-cloud" in url:
        return MEGACLOUD_REFERER
    return url_origin(url) or DRAMABOX_REFERER


class MediaProxy:
    """Fetches image/video bytes from an origin with spoofed browser headers."""

    def __init__(
        self,
        image_timeout: float = 15.0,
        video_timeout: float = 30.0,
        max_video_bytes: int = 100 * 1024 * 1024,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.image_timeout = image_timeout
        self.video_timeout = video_timeout
        self.max_video_bytes = max_video_bytes
        self._transport = transport

    async def fetch_image(self, url: str) -> ProxiedContent:
        headers = {
            "User-Agent": BROWSER_UA,
            "Referer": image_referer(url),
            "Accept": "image/webp,image/apng,image/*,*/*;q=0.8",
        }
        try:
            async with httpx.AsyncClient(timeout=self.image_timeout, transport=self._transport) as client:
                resp = await client.get(url, headers=headers, follow_redirects=True)
                resp.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ProxyError(f"image fetch failed: {e}") from e

        return ProxiedContent(
            body=resp.content,
            content_type=resp.headers.get("content-type", "image/jpeg"),
            headers={"Cache-Control": IMAGE_CACHE_CONTROL},
        )

    async def fetch_video(self, url: str, byte_range: Optional[str] = None) -> ProxiedContent:
        """Fetch (a range of) a video, refusing bodies over ``max_video_bytes``."""
        referer = video_referer(url)
        headers = {
            "User-Agent": BROWSER_UA,
            "Referer": referer,
            "Origin": referer,
            "Accept": "*/*",
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "identity",
            "Range": byte_range or "bytes=0-",
        }
        try:
            async with httpx.AsyncClient(timeout=self.video_timeout, transport=self._transport) as client:
                async with client.stream("GET", url, headers=headers, follow_redirects=True) as resp:
                    resp.raise_for_status()
                    declared = resp.headers.get("content-length")
                    if declared and declared.isdigit() and int(declared) > self.max_video_bytes:
                        raise ProxyError(f"video too large: {declared} bytes")

                    chunks = []
                    received = 0
                    async for chunk in resp.aiter_bytes():
                        received += len(chunk)
                        if received > self.max_video_bytes:
                            raise ProxyError(f"video exceeded {self.max_video_bytes} bytes")
                        chunks.append(chunk)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ProxyError(f"video fetch failed: {e}") from e

        body = b"".join(chunks)
        forwarded = {
            name.title(): resp.headers[name]
            for name in FORWARDED_VIDEO_HEADERS if name in resp.headers
        }
        forwarded["Content-Length"] = str(len(body))
        forwarded["Cache-Control"] = VIDEO_CACHE_CONTROL
        return ProxiedContent(
            body=body,
            content_type=resp.headers.get("content-type", "video/mp4"),
            status_code=resp.status_code,
            headers=forwarded,
        )
