"""Image/video passthrough for CDNs that block cross-origin or hotlinked requests."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import Response

from nobar.api.deps import get_media_proxy
from nobar.services.proxy import MediaProxy, ProxyError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proxy")


@router.get("/image")
async def proxy_image(url: Optional[str] = None, proxy: MediaProxy = Depends(get_media_proxy)):
    if not url:
        raise HTTPException(status_code=400, detail="URL required")
    try:
        content = await proxy.fetch_image(url)
    except ProxyError as e:
        logger.warning(f"Image proxy failed for {url}: {e}")
        raise HTTPException(status_code=404, detail="Image not found")
    return Response(content=content.body, media_type=content.content_type, headers=content.headers)


@router.get("/video")
async def proxy_video(
    url: Optional[str] = None,
    range: Optional[str] = Header(None),
    proxy: MediaProxy = Depends(get_media_proxy),
):
    """Video bytes; the inbound Range header is forwarded for seeking."""
    if not url:
        raise HTTPException(status_code=400, detail="URL required")
    try:
        content = await proxy.fetch_video(url, byte_range=range)
    except ProxyError as e:
        logger.warning(f"Video proxy failed for {url}: {e}")
        raise HTTPException(status_code=404, detail="Video not found")
    return Response(
        content=content.body,
        status_code=content.status_code,
        media_type=content.content_type,
        headers=content.headers,
    )


@router.get("/{action}")
async def unknown(action: str):
    raise HTTPException(status_code=404, detail="Unknown proxy action")
