"""Komik client: comic catalog scoped to one provider (shinigami by default)."""

import logging
from typing import Optional

from nobar.clients.base import UpstreamClient, UpstreamError
from nobar.normalize import LIST_CHAIN, Chain, extract_chapters, extract_images, first_of, is_present, path

logger = logging.getLogger(__name__)

# Chapter 0 (prologues) is a real number
CHAPTER_NUMBER_CHAIN = Chain(path("number"), path("chapter_number"), path("title"), default=None, accept=is_present)


class KomikClient(UpstreamClient):
    """Manga API client; every call carries the ``provider`` query param."""

    name = "komik"

    def __init__(self, base_url: str, provider: str = "shinigami", **kwargs):
        super().__init__(base_url, **kwargs)
        self.provider = provider

    def _params(self, **extra) -> dict:
        return {**extra, "provider": self.provider}

    async def popular(self) -> list:
        data = await self._get_cached("/popular", self._params())
        return LIST_CHAIN(data)

    async def search(self, keyword: str) -> list:
        data = await self._get("/search", self._params(keyword=keyword))
        return LIST_CHAIN(data)

    async def detail(self, manga_id: str) -> Optional[dict]:
        raw = path("data")(await self._get(f"/detail/{manga_id}", self._params()))
        if not raw or not isinstance(raw, dict):
            return None
        return self._normalize_detail(raw)

    async def chapters(self, manga_id: str) -> list[dict]:
        """Chapter list of a title, newest first as the provider orders it."""
        data = await self._get(f"/detail/{manga_id}", self._params())
        return [self._normalize_chapter(ch) for ch in extract_chapters(data) if isinstance(ch, dict)]

    async def images(self, chapter_id: str) -> list[str]:
        """Page images of a chapter, credit pages removed.

        ``/read/`` is the primary endpoint; ``/chapter/`` serves older ids.
        """
        try:
            data = await self._get(f"/read/{chapter_id}", self._params())
        except UpstreamError as e:
            logger.info(f"Komik /read/ failed for {chapter_id}, trying /chapter/: {e}")
            data = await self._get(f"/chapter/{chapter_id}", self._params())
        return extract_images(data)

    async def test_connection(self) -> bool:
        try:
            await self._get("/popular", self._params())
            return True
        except UpstreamError:
            return False

    # ── Normalization helpers ────────────────────────────────────

    @staticmethod
    def _normalize_detail(raw: dict) -> dict:
        genres = [
            g if isinstance(g, str) else g.get("title")
            for g in (raw.get("genre") or [])
            if isinstance(g, str) or isinstance(g, dict)
        ]
        return {
            "title": raw.get("title"),
            "judul": raw.get("title"),
            "description": raw.get("description"),
            "synopsis": raw.get("description"),
            "status": raw.get("status"),
            "author": raw.get("author"),
            "rating": raw.get("rating"),
            "cover": raw.get("thumbnail"),
            "thumbnail": raw.get("thumbnail"),
            "genres": [g for g in genres if g],
        }

    @staticmethod
    def _normalize_chapter(ch: dict) -> dict:
        href = ch.get("href")
        href_id = href.rstrip("/").rsplit("/", 1)[-1] if isinstance(href, str) else None
        return {
            "chapter_id": href_id or first_of(ch, path("chapter_id"), path("id")),
            "title": ch.get("title"),
            "chapter_number": CHAPTER_NUMBER_CHAIN(ch),
            "date": ch.get("date"),
        }
