"""Shared FastAPI dependencies: settings, upstream clients, services, auth guards."""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from nobar.clients.anime import AnimeClient
from nobar.clients.dramabox import DramaboxClient
from nobar.clients.komik import KomikClient
from nobar.config import Settings
from nobar.database import get_db
from nobar.services.analytics import AnalyticsService
from nobar.services.auth import AuthService, InvalidToken, decode_access_token
from nobar.services.proxy import MediaProxy

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# ── Upstream clients ─────────────────────────────────────────────

def get_dramabox_client(request: Request) -> DramaboxClient:
    settings = get_settings(request)
    return DramaboxClient(
        settings.drama_api_url, timeout=settings.upstream_timeout, cache=request.app.state.upstream_cache,
    )


def get_anime_client(request: Request) -> AnimeClient:
    settings = get_settings(request)
    return AnimeClient(
        settings.anime_api_url, timeout=settings.anime_timeout, cache=request.app.state.upstream_cache,
    )


def get_komik_client(request: Request) -> KomikClient:
    settings = get_settings(request)
    return KomikClient(
        settings.komik_api_url,
        provider=settings.komik_provider,
        timeout=settings.upstream_timeout,
        cache=request.app.state.upstream_cache,
    )


def get_media_proxy(request: Request) -> MediaProxy:
    settings = get_settings(request)
    return MediaProxy(
        image_timeout=settings.image_proxy_timeout,
        video_timeout=settings.video_proxy_timeout,
        max_video_bytes=settings.video_proxy_max_bytes,
    )


# ── Services ─────────────────────────────────────────────────────

def get_auth_service(
    request: Request,
    db: Optional[AsyncSession] = Depends(get_db),
) -> AuthService:
    return AuthService(db, get_settings(request))


def get_analytics_service(
    request: Request,
    db: Optional[AsyncSession] = Depends(get_db),
) -> Optional[AnalyticsService]:
    """None when no database is configured."""
    if db is None:
        return None
    return AnalyticsService(db, active_minutes=get_settings(request).active_session_minutes)


# ── Auth guards ──────────────────────────────────────────────────

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


async def require_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """Decoded token claims of the calling admin; 401 if missing/invalid/expired."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized("No token provided")
    try:
        return decode_access_token(credentials.credentials, get_settings(request).secret_key)
    except InvalidToken:
        raise _unauthorized("Invalid or expired token")


async def require_superadmin(claims: dict = Depends(require_admin)) -> dict:
    if claims.get("role") != "superadmin":
        raise HTTPException(status_code=403, detail="Superadmin role required")
    return claims
