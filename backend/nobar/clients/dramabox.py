"""Dramabox client — short drama catalog.

The provider answers list endpoints with a bare array, ``{data: [...]}`` or
``{value: [...]}`` depending on the day; everything goes through the shared
fallback chains.
"""

import logging
from typing import Optional

from nobar.clients.base import StreamSource, UpstreamClient, UpstreamError
from nobar.normalize import (
    LIST_CHAIN, OBJECT_CHAIN, Chain, identity, path, is_list,
    pick_episode_video, pick_detail_episode_video,
)

logger = logging.getLogger(__name__)

FEEDS = ("latest", "trending", "vip", "foryou")

# allepisode is usually a bare array; never falls back to "value"
EPISODE_CHAIN = Chain(identity, path("data"), default=[], accept=is_list)
DETAIL_BOOK_CHAIN = Chain(path("book"), identity, default=None)
DETAIL_EPISODES_CHAIN = Chain(path("chapterList"), default=[], accept=is_list)


class DramaboxClient(UpstreamClient):
    """Dramabox catalog client."""

    name = "dramabox"

    # ── Lists ────────────────────────────────────────────────────

    async def feed(self, action: str) -> list:
        """One of the fixed feeds: latest, trending, vip, foryou."""
        if action not in FEEDS:
            raise ValueError(f"Unknown feed: {action}")
        data = await self._get_cached(f"/dramabox/{action}")
        return LIST_CHAIN(data)

    async def dubindo(self, classify: str = "terbaru") -> list:
        """Indonesian-dubbed titles, filtered by ``classify``."""
        data = await self._get_cached("/dramabox/dubindo", {"classify": classify})
        return LIST_CHAIN(data)

    async def search(self, query: str) -> list:
        data = await self._get("/dramabox/search", {"query": query})
        return LIST_CHAIN(data)

    # ── Detail / episodes ────────────────────────────────────────

    async def detail(self, book_id: str) -> Optional[dict]:
        """Book detail, or None when the provider returned nothing."""
        data = await self._get("/dramabox/detail", {"bookId": book_id})
        result = OBJECT_CHAIN(data)
        return result if isinstance(result, dict) else None

    async def all_episodes(self, book_id: str) -> list:
        """Every episode with its CDN paths, locked ones included."""
        data = await self._get("/dramabox/allepisode", {"bookId": book_id})
        return EPISODE_CHAIN(data)

    async def episode_stream(self, book_id: str, index: int) -> Optional[StreamSource]:
        """Resolve episode ``index`` (0-based) of a book to a playable URL.

        The allepisode listing is tried first; the detail chapter list only
        exposes URLs for free episodes and is the fallback.
        """
        try:
            source = pick_episode_video(await self.all_episodes(book_id), index)
        except UpstreamError as e:
            logger.warning(f"Dramabox allepisode failed for {book_id}: {e}")
            source = None
        if source:
            return source

        detail = await self.detail(book_id)
        if not detail:
            return None
        chapters = DETAIL_EPISODES_CHAIN(detail)
        if not chapters:
            chapters = DETAIL_EPISODES_CHAIN(DETAIL_BOOK_CHAIN(detail))
        return pick_detail_episode_video(chapters, index)

    # ── Test connection ──────────────────────────────────────────

    async def test_connection(self) -> bool:
        try:
            await self._get("/dramabox/latest")
            return True
        except UpstreamError:
            return False
