"""Komik endpoints — comic lists, detail, chapter list and page images."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from nobar.api.deps import get_komik_client
from nobar.clients.base import UpstreamError
from nobar.clients.komik import KomikClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/komik")


@router.get("/recommended")
@router.get("/popular")
async def popular(client: KomikClient = Depends(get_komik_client)):
    try:
        return await client.popular()
    except UpstreamError as e:
        logger.warning(f"Komik popular failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch popular komik")


@router.get("/search")
async def search(
    q: Optional[str] = None,
    query: Optional[str] = None,
    keyword: Optional[str] = None,
    client: KomikClient = Depends(get_komik_client),
):
    term = q or query or keyword
    if not term:
        raise HTTPException(status_code=400, detail="Query required")
    try:
        return await client.search(term)
    except UpstreamError as e:
        logger.warning(f"Komik search failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to search komik")


@router.get("/detail")
async def detail(
    manga_id: Optional[str] = None,
    mangaId: Optional[str] = None,
    id: Optional[str] = None,
    client: KomikClient = Depends(get_komik_client),
):
    komik_id = manga_id or mangaId or id
    if not komik_id:
        raise HTTPException(status_code=400, detail="manga_id required")
    try:
        result = await client.detail(komik_id)
    except UpstreamError as e:
        logger.warning(f"Komik detail failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch komik detail")
    if result is None:
        raise HTTPException(status_code=404, detail="Komik not found")
    return {"success": True, "data": result}


@router.get("/chapterlist")
async def chapter_list(
    manga_id: Optional[str] = None,
    mangaId: Optional[str] = None,
    id: Optional[str] = None,
    client: KomikClient = Depends(get_komik_client),
):
    komik_id = manga_id or mangaId or id
    if not komik_id:
        raise HTTPException(status_code=400, detail="manga_id required")
    try:
        chapters = await client.chapters(komik_id)
    except UpstreamError as e:
        logger.warning(f"Komik chapterlist failed: {e}")
        return {"success": False, "chapters": []}
    return {"success": True, "chapters": chapters}


@router.get("/getimage")
async def get_image(
    chapter_id: Optional[str] = None,
    chapterId: Optional[str] = None,
    id: Optional[str] = None,
    client: KomikClient = Depends(get_komik_client),
):
    """Page images for a chapter, credit/promo pages filtered out."""
    chapter = chapter_id or chapterId or id
    if not chapter:
        raise HTTPException(status_code=400, detail="chapter_id required")
    try:
        images = await client.images(chapter)
    except UpstreamError as e:
        logger.warning(f"Komik getimage failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch chapter images")
    return {"success": True, "images": images}


@router.get("/{action}")
async def unknown(action: str):
    raise HTTPException(status_code=404, detail="Unknown komik action")
