"""Anime endpoints — lists, search, detail and video resolution."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from nobar.api.deps import get_anime_client
from nobar.clients.anime import AnimeClient
from nobar.clients.base import UpstreamError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/anime")


def _failed(what: str, error: UpstreamError) -> HTTPException:
    logger.warning(f"Anime {what} failed: {error}")
    return HTTPException(status_code=500, detail=f"Failed to fetch {what} anime")


@router.get("/")
@router.get("/latest")
async def latest(page: str = "1", client: AnimeClient = Depends(get_anime_client)):
    try:
        return await client.latest(page)
    except UpstreamError as e:
        raise _failed("latest", e)


@router.get("/trending")
@router.get("/popular")
async def popular(page: str = "1", client: AnimeClient = Depends(get_anime_client)):
    try:
        return await client.popular(page)
    except UpstreamError as e:
        raise _failed("popular", e)


@router.get("/ongoing")
async def ongoing(page: str = "1", client: AnimeClient = Depends(get_anime_client)):
    try:
        return await client.ongoing(page)
    except UpstreamError as e:
        raise _failed("ongoing", e)


@router.get("/movie")
async def movie(page: str = "1", client: AnimeClient = Depends(get_anime_client)):
    try:
        return await client.movies(page)
    except UpstreamError as e:
        raise _failed("movie", e)


@router.get("/search")
async def search(
    q: Optional[str] = None,
    query: Optional[str] = None,
    page: str = "1",
    client: AnimeClient = Depends(get_anime_client),
):
    term = q or query
    if not term:
        raise HTTPException(status_code=400, detail="Query parameter required")
    try:
        return await client.search(term, page)
    except UpstreamError as e:
        logger.warning(f"Anime search failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to search anime")


@router.get("/detail")
async def detail(
    urlId: Optional[str] = None,
    id: Optional[str] = None,
    client: AnimeClient = Depends(get_anime_client),
):
    url_id = urlId or id
    if not url_id:
        raise HTTPException(status_code=400, detail="urlId required")
    try:
        result = await client.detail(url_id)
    except UpstreamError as e:
        logger.warning(f"Anime detail failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch anime detail")
    if result is None:
        raise HTTPException(status_code=404, detail="Anime not found")
    return result


@router.get("/getvideo")
async def get_video(
    episodeId: Optional[str] = None,
    episode_id: Optional[str] = None,
    chapterUrlId: Optional[str] = None,
    client: AnimeClient = Depends(get_anime_client),
):
    """Stream for an episode. Failures are soft: HTTP 200 with an ``error`` code."""
    episode = episodeId or episode_id or chapterUrlId
    if not episode:
        raise HTTPException(status_code=400, detail="episodeId required")

    resolution = await client.resolve_video(episode)
    if resolution.error:
        return {
            "data": [],
            "sources": [],
            "subtitles": [],
            "error": resolution.error,
            "message": resolution.message,
        }
    return {
        "data": [{"stream": [f"link={s.url};reso={s.quality}" for s in resolution.sources]}],
        "sources": [{"url": s.url, "quality": s.quality} for s in resolution.sources],
        "subtitles": [],
        "servers": [s.to_dict() for s in resolution.servers],
    }


@router.get("/{action}")
async def unknown(action: str):
    raise HTTPException(status_code=404, detail="Unknown anime action")
