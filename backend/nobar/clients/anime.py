"""Anime client — Samehadaku catalog via the sankavollerei API.

Handles: latest/popular/ongoing/movie lists, search, detail with episode
list, and episode → stream resolution through the provider's server list.
"""

import logging
from typing import Any, Optional

from nobar.clients.base import (
    ServerEntry, StreamSource, UpstreamClient, UpstreamError, VideoResolution,
)
from nobar.normalize import LIST_CHAIN, Chain, first_of, identity, path, is_list

logger = logging.getLogger(__name__)

# /recent nests the list one level further down
LATEST_CHAIN = Chain(path("data", "animeList"), identity, path("data"), path("value"), default=[], accept=is_list)
QUALITIES_CHAIN = Chain(path("server", "qualities"), default=[], accept=is_list)
SERVER_LIST_CHAIN = Chain(path("serverList"), default=[], accept=is_list)


class AnimeClient(UpstreamClient):
    """Samehadaku anime API client."""

    name = "anime"

    # ── Lists ────────────────────────────────────────────────────

    async def latest(self, page: str = "1") -> list[dict]:
        """Recently released episodes."""
        data = await self._get_cached("/recent", {"page": page})
        return [
            {
                **self._normalize_item(item, episode=first_of(item, path("episodes"), default="Latest"), type="Anime"),
                "releaseDate": item.get("releasedOn"),
            }
            for item in LATEST_CHAIN(data) if isinstance(item, dict)
        ]

    async def popular(self, page: str = "1") -> list[dict]:
        data = await self._get_cached("/popular", {"page": page})
        return [self._normalize_listed(item) for item in LIST_CHAIN(data) if isinstance(item, dict)]

    async def ongoing(self, page: str = "1") -> list[dict]:
        data = await self._get_cached("/ongoing", {"page": page, "order": "popular"})
        return [
            self._normalize_item(
                item,
                episode=first_of(item, path("tvInfo", "sub"), default="?"),
                rating=item.get("rating") or "?",
                type="Ongoing",
            )
            for item in LIST_CHAIN(data) if isinstance(item, dict)
        ]

    async def movies(self, page: str = "1") -> list[dict]:
        data = await self._get_cached("/movies", {"page": page})
        return [
            self._normalize_item(item, episode="Movie", rating=item.get("rating") or "?", type="Movie")
            for item in LIST_CHAIN(data) if isinstance(item, dict)
        ]

    async def search(self, query: str, page: str = "1") -> list[dict]:
        data = await self._get("/search", {"q": query, "page": page})
        return [self._normalize_listed(item) for item in LIST_CHAIN(data) if isinstance(item, dict)]

    # ── Detail ───────────────────────────────────────────────────

    async def detail(self, url_id: str) -> Optional[dict]:
        """Anime detail with its episode list, or None if the provider has no data."""
        response = await self._get(f"/anime/{url_id}")
        data = path("data")(response)
        if not data or not isinstance(data, dict):
            return None
        return self._normalize_detail(data)

    # ── Video resolution ─────────────────────────────────────────

    async def resolve_video(self, episode_id: str) -> VideoResolution:
        """Resolve an episode to one playable stream.

        Episode detail → servers grouped by quality → first server's URL.
        When the server lookup fails the provider's default streaming URL is
        used. Failures come back as soft-failure results, never exceptions.
        """
        try:
            response = await self._get(f"/episode/{episode_id}")
        except UpstreamError as e:
            logger.warning(f"Anime episode fetch failed for {episode_id}: {e}")
            return VideoResolution(error="server_error", message="Gagal mengambil video anime")

        data = path("data")(response)
        if not data or not isinstance(data, dict):
            return VideoResolution(error="streaming_unavailable", message="Episode tidak ditemukan")

        servers = self._collect_servers(data)
        logger.info(f"Anime episode {episode_id}: {len(servers)} servers")

        default_url = data.get("defaultStreamingUrl")
        video_url = default_url
        if servers:
            try:
                server_response = await self._get(f"/server/{servers[0].server_id}")
                video_url = path("data", "url")(server_response) or default_url
            except UpstreamError as e:
                logger.warning(f"Anime server {servers[0].server_id} failed, using default URL: {e}")

        if not video_url:
            return VideoResolution(
                servers=servers,
                error="streaming_unavailable",
                message="Tidak ada link streaming tersedia",
            )
        return VideoResolution(sources=[StreamSource(url=video_url, quality="auto")], servers=servers)

    # ── Test connection ──────────────────────────────────────────

    async def test_connection(self) -> bool:
        try:
            await self._get("/home")
            return True
        except UpstreamError:
            return False

    # ── Normalization helpers ────────────────────────────────────

    @staticmethod
    def _normalize_item(item: dict, episode: Any, type: str, rating: Any = None) -> dict:
        """Canonical list entry; ``judul``/``thumbnail_url`` are legacy aliases."""
        normalized = {
            "id": item.get("animeId"),
            "urlId": item.get("animeId"),
            "judul": item.get("title"),
            "title": item.get("title"),
            "image": item.get("poster"),
            "thumbnail_url": item.get("poster"),
            "episode": episode,
            "type": type,
        }
        if rating is not None:
            normalized["rating"] = rating
        return normalized

    def _normalize_listed(self, item: dict) -> dict:
        """Popular/search entries share the tvInfo episode layout."""
        return self._normalize_item(
            item,
            episode=first_of(item, path("tvInfo", "sub"), path("tvInfo", "eps"), default="?"),
            rating=item.get("rating") or "?",
            type=item.get("type") or "TV",
        )

    @staticmethod
    def _normalize_detail(data: dict) -> dict:
        episodes = [
            {
                "id": ep.get("episodeId"),
                "chapterUrlId": ep.get("episodeId"),
                "title": ep.get("title"),
                "judul": ep.get("title"),
                "releaseDate": ep.get("releaseDate"),
                "releasedOn": ep.get("releaseDate"),
            }
            for ep in (data.get("episodeList") or []) if isinstance(ep, dict)
        ]
        paragraphs = path("synopsis", "paragraphs")(data)
        synopsis = "\n\n".join(p for p in paragraphs if isinstance(p, str)) if isinstance(paragraphs, list) else ""
        genres = [g.get("title") for g in (data.get("genreList") or []) if isinstance(g, dict) and g.get("title")]

        return {
            "id": data.get("animeId"),
            "urlId": data.get("animeId"),
            "title": data.get("title"),
            "judul": data.get("title"),
            "poster": data.get("poster"),
            "image": data.get("poster"),
            "thumbnail_url": data.get("poster"),
            "synopsis": synopsis or "No synopsis available",
            "rating": data.get("rating") or "?",
            "type": data.get("type") or "TV",
            "status": data.get("status") or "Unknown",
            "releaseDate": data.get("releaseDate") or "Unknown",
            "totalEpisodes": len(episodes),
            "genreList": ", ".join(genres),
            "episodes": episodes,
        }

    @staticmethod
    def _collect_servers(data: dict) -> list[ServerEntry]:
        """Flatten ``server.qualities[].serverList[]`` preserving provider order."""
        servers = []
        for quality in QUALITIES_CHAIN(data):
            if not isinstance(quality, dict):
                continue
            for server in SERVER_LIST_CHAIN(quality):
                if isinstance(server, dict) and server.get("serverId"):
                    servers.append(ServerEntry(
                        quality=quality.get("title") or "",
                        server=server.get("title") or "",
                        server_id=str(server["serverId"]),
                    ))
        return servers
