"""Probe the upstream providers and the database on startup and report status."""

import httpx
from sqlalchemy import text

from nobar.config import Settings
from nobar.database import ConnectionCache


async def probe_all(settings: Settings, connections: ConnectionCache) -> dict:
    """Check reachability of every configured dependency. Returns status dict."""
    results = {}

    async with httpx.AsyncClient(timeout=5.0, headers={"User-Agent": "Mozilla/5.0"}) as client:
        results["dramabox"] = await _probe(client, f"{settings.drama_api_url}/dramabox/latest")
        results["anime"] = await _probe(client, f"{settings.anime_api_url}/home")
        results["komik"] = await _probe(
            client, f"{settings.komik_api_url}/popular?provider={settings.komik_provider}",
        )

    if connections.configured:
        results["database"] = await _probe_db(connections)
    else:
        results["database"] = {"status": "not_configured"}

    return results


async def _probe(client: httpx.AsyncClient, url: str, headers: dict | None = None) -> dict:
    """Probe a single endpoint."""
    try:
        resp = await client.get(url, headers=headers)
        return {
            "status": "ok" if resp.status_code < 400 else "error",
            "code": resp.status_code,
        }
    except httpx.ConnectError:
        return {"status": "unreachable"}
    except Exception as e:
        return {"status": "error", "detail": str(e)[:200]}


async def _probe_db(connections: ConnectionCache) -> dict:
    try:
        engine = await connections.get()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as e:
        return {"status": "error", "detail": str(e)[:200]}
