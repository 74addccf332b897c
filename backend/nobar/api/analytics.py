"""Visitor tracking (public) and analytics report endpoints (admin)."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from nobar.api.deps import get_analytics_service, require_admin
from nobar.services.analytics import PERIODS, AnalyticsService, RequestMeta

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics")


class TrackRequest(BaseModel):
    eventType: Optional[str] = None
    page: Optional[str] = None
    contentId: Optional[str] = None
    contentTitle: Optional[str] = None
    contentType: Optional[str] = None
    sessionId: Optional[str] = None
    metadata: Optional[dict] = None


class HeartbeatRequest(BaseModel):
    sessionId: Optional[str] = None


def _request_meta(request: Request) -> RequestMeta:
    peer = request.client.host if request.client else None
    return RequestMeta.from_headers(request.headers, peer)


def _check_period(period: str) -> str:
    if period not in PERIODS:
        raise HTTPException(status_code=400, detail=f"Invalid period, expected one of {', '.join(PERIODS)}")
    return period


# ── Tracking ─────────────────────────────────────────────────────

@router.post("/track")
async def track(
    body: TrackRequest,
    request: Request,
    analytics: Optional[AnalyticsService] = Depends(get_analytics_service),
):
    if not body.eventType:
        raise HTTPException(status_code=400, detail="eventType required")
    if analytics is None:
        return {"success": True, "stored": False}
    await analytics.track(
        body.eventType,
        _request_meta(request),
        page=body.page,
        content_id=body.contentId,
        content_title=body.contentTitle,
        content_type=body.contentType,
        session_id=body.sessionId,
        extra=body.metadata,
    )
    logger.debug(f"Tracked {body.eventType} (session {body.sessionId})")
    return {"success": True, "stored": True}


@router.post("/heartbeat")
async def heartbeat(
    body: HeartbeatRequest,
    request: Request,
    analytics: Optional[AnalyticsService] = Depends(get_analytics_service),
):
    if not body.sessionId:
        raise HTTPException(status_code=400, detail="sessionId required")
    if analytics is None:
        return {"success": True, "stored": False}
    await analytics.heartbeat(body.sessionId, _request_meta(request))
    return {"success": True, "stored": True}


# ── Reports (admin) ──────────────────────────────────────────────

@router.get("/hourly", dependencies=[Depends(require_admin)])
async def hourly(
    period: str = "24h",
    analytics: Optional[AnalyticsService] = Depends(get_analytics_service),
):
    _check_period(period)
    if analytics is None:
        return {"success": True, "data": {"labels": [f"{h:02d}:00" for h in range(24)], "values": [0] * 24}}
    return {"success": True, "data": await analytics.hourly(period)}


@router.get("/devices", dependencies=[Depends(require_admin)])
async def devices(
    period: str = "7d",
    analytics: Optional[AnalyticsService] = Depends(get_analytics_service),
):
    _check_period(period)
    return {"success": True, "data": await analytics.devices(period) if analytics else []}


@router.get("/geo", dependencies=[Depends(require_admin)])
async def geo(
    period: str = "7d",
    limit: int = Query(15, ge=1, le=250),
    analytics: Optional[AnalyticsService] = Depends(get_analytics_service),
):
    _check_period(period)
    return {"success": True, "data": await analytics.geo(period, limit) if analytics else []}


@router.get("/peak-hours", dependencies=[Depends(require_admin)])
async def peak_hours(
    period: str = "7d",
    limit: int = Query(10, ge=1, le=250),
    analytics: Optional[AnalyticsService] = Depends(get_analytics_service),
):
    _check_period(period)
    return {"success": True, "data": await analytics.peak_hours(period, limit) if analytics else []}


@router.get("/country-detail", dependencies=[Depends(require_admin)])
async def country_detail(
    period: str = "7d",
    country: Optional[str] = None,
    analytics: Optional[AnalyticsService] = Depends(get_analytics_service),
):
    _check_period(period)
    if analytics is None:
        return {"success": True, "data": {"country": country, "weekdayData": []}}
    return {"success": True, "data": await analytics.country_detail(period, country)}
