"""Admin panel endpoints: dashboard counters, live watchers, stats, accounts."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from nobar.api.deps import get_analytics_service, get_auth_service, require_admin, require_superadmin
from nobar.services.analytics import PERIODS, AnalyticsService
from nobar.services.auth import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])

EMPTY_DASHBOARD = {
    "activeSessions": 0,
    "todayPageviews": 0,
    "todayClicks": 0,
    "todayVisitors": 0,
    "totalEvents": 0,
}


class CreateUserRequest(BaseModel):
    username: str = Field(max_length=100)
    password: str
    email: Optional[str] = Field(default=None, max_length=300)
    role: str = "admin"


@router.get("/dashboard")
async def dashboard(analytics: Optional[AnalyticsService] = Depends(get_analytics_service)):
    if analytics is None:
        return {"success": True, "data": dict(EMPTY_DASHBOARD)}
    return {"success": True, "data": await analytics.dashboard()}


@router.get("/watchers")
async def watchers(analytics: Optional[AnalyticsService] = Depends(get_analytics_service)):
    """Sessions with activity inside the active window."""
    if analytics is None:
        return {"success": True, "data": []}
    return {"success": True, "data": await analytics.watchers()}


@router.get("/stats")
async def stats(
    period: str = "7d",
    analytics: Optional[AnalyticsService] = Depends(get_analytics_service),
):
    if period not in PERIODS:
        raise HTTPException(status_code=400, detail=f"Invalid period, expected one of {', '.join(PERIODS)}")
    if analytics is None:
        empty = {"period": period, "pageviews": [], "topContent": [], "devices": [], "countries": []}
        return {"success": True, "data": empty}
    return {"success": True, "data": await analytics.stats(period)}


@router.get("/users")
async def list_users(auth: AuthService = Depends(get_auth_service)):
    if auth.db is None:
        return {"success": True, "data": []}
    return {"success": True, "data": [u.to_public() for u in await auth.list_users()]}


@router.post("/users", dependencies=[Depends(require_superadmin)])
async def create_user(body: CreateUserRequest, auth: AuthService = Depends(get_auth_service)):
    if auth.db is None:
        raise HTTPException(status_code=400, detail="No account database configured")
    try:
        user = await auth.create_user(body.username, body.password, email=body.email, role=body.role)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"Created admin account '{user.username}' ({user.role})")
    return {"success": True, "data": user.to_public()}
