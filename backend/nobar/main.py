"""nobar — FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from nobar.cache import TTLCache
from nobar.config import Settings, settings as default_settings
from nobar.database import ConnectionCache
from nobar.api import admin, analytics, anime, auth, dramabox, health, komik, proxy

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup: create tables, seed the bootstrap admin, probe upstreams
    from nobar.database import init_db
    from nobar.services.auth import AuthService
    from nobar.services.integration_probe import probe_all

    settings: Settings = app.state.settings
    connections: ConnectionCache = app.state.connections
    if connections.configured:
        await init_db(connections)
        session = await connections.session()
        async with session:
            await AuthService(session, settings).seed_bootstrap_admin()
            await session.commit()
    app.state.integrations = await probe_all(settings, connections)
    yield
    # Shutdown: drop the cached engine
    await connections.invalidate()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        version=health.VERSION,
        description="Drama, anime and comic aggregation proxy with an analytics admin panel",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.connections = ConnectionCache(
        settings.database_url, health_interval=settings.db_health_interval, echo=settings.debug,
    )
    app.state.upstream_cache = TTLCache(settings.upstream_cache_ttl)
    app.state.integrations = {}

    # Any OPTIONS the CORS layer does not treat as a preflight still gets a 200
    @app.middleware("http")
    async def answer_options(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers={
                "Access-Control-Allow-Origin": "*",
                "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
                "Access-Control-Allow-Headers": "*",
            })
        return await call_next(request)

    # CORS: open to every origin, preflights answered by the middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    _install_error_handlers(app)

    # ── Mount routers ────────────────────────────────────────────
    app.include_router(health.router,     prefix="/api", tags=["system"])
    app.include_router(dramabox.router,   prefix="/api", tags=["dramabox"])
    app.include_router(anime.router,      prefix="/api", tags=["anime"])
    app.include_router(komik.router,      prefix="/api", tags=["komik"])
    app.include_router(proxy.router,      prefix="/api", tags=["proxy"])
    app.include_router(auth.router,       prefix="/api", tags=["auth"])
    app.include_router(admin.router,      prefix="/api", tags=["admin"])
    app.include_router(analytics.router,  prefix="/api", tags=["analytics"])
    return app


def _install_error_handlers(app: FastAPI) -> None:
    """Every error is rendered as ``{"error": <message>}``."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        detail = exc.detail
        if exc.status_code == 404 and detail == "Not Found":
            detail = "Not found"
        return JSONResponse({"error": detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return JSONResponse({"error": f"Invalid request: {problems}"}, status_code=400)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        # Rendered outside the CORS middleware, so set the header here
        return JSONResponse(
            {"error": "Internal server error"},
            status_code=500,
            headers={"Access-Control-Allow-Origin": "*"},
        )


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("nobar.main:app", host=default_settings.host, port=default_settings.port, log_level=default_settings.log_level)
