"""Dramabox endpoints — short drama lists, detail and episode streams."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from nobar.api.deps import get_dramabox_client
from nobar.clients.base import UpstreamError
from nobar.clients.dramabox import FEEDS, DramaboxClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dramabox")


def _failed(action: str, error: UpstreamError) -> HTTPException:
    logger.warning(f"Dramabox {action} failed: {error}")
    return HTTPException(status_code=500, detail=f"Failed to fetch dramabox {action}")


@router.get("/dubindo")
async def dubindo(
    classify: str = "terbaru",
    client: DramaboxClient = Depends(get_dramabox_client),
):
    """Indonesian-dubbed dramas (``classify``: terbaru, terpopuler, ...)."""
    try:
        return await client.dubindo(classify)
    except UpstreamError as e:
        raise _failed("dubindo", e)


@router.get("/search")
async def search(
    q: Optional[str] = None,
    query: Optional[str] = None,
    client: DramaboxClient = Depends(get_dramabox_client),
):
    term = q or query
    if not term:
        raise HTTPException(status_code=400, detail="Query required")
    try:
        return await client.search(term)
    except UpstreamError as e:
        raise _failed("search", e)


@router.get("/detail")
async def detail(
    bookId: Optional[str] = None,
    client: DramaboxClient = Depends(get_dramabox_client),
):
    if not bookId:
        raise HTTPException(status_code=400, detail="bookId required")
    try:
        result = await client.detail(bookId)
    except UpstreamError as e:
        raise _failed("detail", e)
    if not result:
        raise HTTPException(status_code=404, detail="Drama not found")
    return result


@router.get("/allepisode")
async def all_episodes(
    bookId: Optional[str] = None,
    client: DramaboxClient = Depends(get_dramabox_client),
):
    """Every episode with CDN video paths, including locked ones."""
    if not bookId:
        raise HTTPException(status_code=400, detail="bookId required")
    try:
        return await client.all_episodes(bookId)
    except UpstreamError as e:
        raise _failed("allepisode", e)


@router.get("/stream")
async def stream(
    bookId: Optional[str] = None,
    index: int = Query(0, ge=0),
    client: DramaboxClient = Depends(get_dramabox_client),
):
    """Resolve one episode (0-based ``index``) to a playable URL."""
    if not bookId:
        raise HTTPException(status_code=400, detail="bookId required")
    try:
        source = await client.episode_stream(bookId, index)
    except UpstreamError as e:
        raise _failed("stream", e)
    if source is None:
        raise HTTPException(status_code=404, detail="Episode video not found")
    return {"bookId": bookId, "index": index, "url": source.url, "quality": source.quality}


@router.get("/{action}")
async def feed(action: str, client: DramaboxClient = Depends(get_dramabox_client)):
    """Fixed feeds: latest, trending, vip, foryou."""
    if action not in FEEDS:
        raise HTTPException(status_code=404, detail="Unknown dramabox action")
    try:
        return await client.feed(action)
    except UpstreamError as e:
        raise _failed(action, e)
