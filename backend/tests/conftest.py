"""Shared fixtures: app factory on a throwaway SQLite DB, fake upstream providers."""

from typing import Any, Callable, Optional, Union

import httpx
import pytest

from nobar.api.deps import get_anime_client, get_dramabox_client, get_komik_client, get_media_proxy
from nobar.clients.anime import AnimeClient
from nobar.clients.dramabox import DramaboxClient
from nobar.clients.komik import KomikClient
from nobar.config import Settings
from nobar.database import init_db
from nobar.main import create_app
from nobar.models.tables import AdminUser
from nobar.services.auth import hash_password
from nobar.services.proxy import MediaProxy

SECRET = "test-secret"

DRAMA_BASE = "http://drama.test/api"
ANIME_BASE = "http://anime.test/samehadaku"
KOMIK_BASE = "http://komik.test"

Route = Union[tuple[int, Any], Exception, Callable[[httpx.Request], httpx.Response]]


class FakeUpstream:
    """Routes keyed by ``host + path``; records every request it sees."""

    def __init__(self):
        self.routes: dict[str, Route] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, json: Any = None, status: int = 200) -> None:
        self.routes[url] = (status, json)

    def fail(self, url: str, exc: Exception) -> None:
        self.routes[url] = exc

    def respond(self, url: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[url] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(f"{request.url.host}{request.url.path}")
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        status, payload = route
        return httpx.Response(status, json=payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def last(self) -> Optional[httpx.Request]:
        return self.requests[-1] if self.requests else None


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'nobar.db'}",
        secret_key=SECRET,
        upstream_cache_ttl=0,
        drama_api_url=DRAMA_BASE,
        anime_api_url=ANIME_BASE,
        komik_api_url=KOMIK_BASE,
    )


@pytest.fixture
def nodb_settings() -> Settings:
    return Settings(_env_file=None, database_url=None, secret_key=SECRET, upstream_cache_ttl=0)


@pytest.fixture
async def app(settings):
    app = create_app(settings)
    await init_db(app.state.connections)
    yield app
    await app.state.connections.invalidate()


@pytest.fixture
async def nodb_app(nodb_settings):
    yield create_app(nodb_settings)


@pytest.fixture
def upstream(app) -> FakeUpstream:
    fake = FakeUpstream()
    cache = app.state.upstream_cache
    app.dependency_overrides[get_dramabox_client] = lambda: DramaboxClient(DRAMA_BASE, transport=fake.transport, cache=cache)
    app.dependency_overrides[get_anime_client] = lambda: AnimeClient(ANIME_BASE, transport=fake.transport, cache=cache)
    app.dependency_overrides[get_komik_client] = lambda: KomikClient(KOMIK_BASE, transport=fake.transport, cache=cache)
    app.dependency_overrides[get_media_proxy] = lambda: MediaProxy(max_video_bytes=1024, transport=fake.transport)
    return fake


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
async def nodb_client(nodb_app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=nodb_app), base_url="http://test") as c:
        yield c


# ── DB helpers ───────────────────────────────────────────────────

@pytest.fixture
def query(app):
    """Run a statement in a short-lived session and return all scalars."""

    async def run(stmt):
        session = await app.state.connections.session()
        async with session:
            result = await session.execute(stmt)
            return result.scalars().all()

    return run


@pytest.fixture
def make_admin(app):
    async def make(**kwargs) -> AdminUser:
        return await _create_admin(app, **kwargs)

    return make


async def _create_admin(
    app,
    username: str = "alice",
    password: str = "s3cret-pass",
    email: Optional[str] = "alice@example.com",
    role: str = "admin",
    active: bool = True,
) -> AdminUser:
    session = await app.state.connections.session()
    async with session:
        user = AdminUser(
            username=username,
            email=email,
            password_hash=hash_password(password),
            role=role,
            is_active=active,
        )
        session.add(user)
        await session.commit()
        return user
