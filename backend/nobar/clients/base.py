"""Shared plumbing for the upstream content providers.

Each provider client subclasses ``UpstreamClient`` and maps the provider's
payloads into the canonical shapes the frontend renders.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from nobar.cache import TTLCache

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0"


# ── Data Transfer Objects ────────────────────────────────────────

@dataclass
class StreamSource:
    """A playable URL plus its quality label."""
    url: str
    quality: str = "auto"


@dataclass
class ServerEntry:
    """A candidate streaming server for an anime episode."""
    quality: str
    server: str
    server_id: str

    def to_dict(self) -> dict:
        return {"quality": self.quality, "server": self.server, "serverId": self.server_id}


@dataclass
class VideoResolution:
    """Outcome of resolving an episode to a stream; ``error`` marks a soft failure."""
    sources: list[StreamSource] = field(default_factory=list)
    servers: list[ServerEntry] = field(default_factory=list)
    error: Optional[str] = None        # "streaming_unavailable" | "server_error"
    message: Optional[str] = None


# ── Errors ───────────────────────────────────────────────────────

class UpstreamError(Exception):
    """An upstream call failed: timeout, transport error, non-2xx or bad JSON."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code


# ── Base client ──────────────────────────────────────────────────

class UpstreamClient(ABC):
    """GET-only JSON client with a fixed timeout and no retries."""

    name = "upstream"

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[TTLCache] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._cache = cache

    async def _get(self, path: str, params: dict | None = None) -> Any:
        """GET ``base_url + path`` and decode JSON, raising UpstreamError on any failure."""
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                resp = await client.get(url, params=params)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(url, f"HTTP {e.response.status_code}", e.response.status_code) from e
        except httpx.TimeoutException as e:
            raise UpstreamError(url, "timeout") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise UpstreamError(url, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise UpstreamError(url, "invalid JSON") from e

    async def _get_cached(self, path: str, params: dict | None = None) -> Any:
        """Like ``_get`` but served from the TTL cache when possible.

        Empty payloads are not cached so a transient empty answer is retried
        on the next request.
        """
        if self._cache is None or not self._cache.enabled:
            return await self._get(path, params)
        key = (self.name, path, tuple(sorted((params or {}).items())))
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        data = await self._get(path, params)
        if data:
            self._cache.set(key, data)
        return data

    @abstractmethod
    async def test_connection(self) -> bool:
        """Test if the provider is reachable."""
        ...
