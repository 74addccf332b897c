"""TTL cache and the cached database engine."""

from nobar.cache import TTLCache
from nobar.database import ConnectionCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ── TTLCache ─────────────────────────────────────────────────────

def test_entry_is_served_until_ttl_elapses():
    clock = FakeClock()
    cache = TTLCache(60, clock=clock)
    cache.set("k", [1, 2])

    clock.advance(59.9)
    assert cache.get("k") == [1, 2]

    clock.advance(0.1)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_zero_ttl_disables_cache():
    cache = TTLCache(0, clock=FakeClock())
    cache.set("k", "v")
    assert not cache.enabled
    assert cache.get("k") is None


def test_invalidate_and_clear():
    cache = TTLCache(60, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    assert cache.get("b") == 2
    cache.clear()
    assert len(cache) == 0


# ── ConnectionCache ──────────────────────────────────────────────

async def test_unconfigured_cache_has_no_engine():
    connections = ConnectionCache(None)
    assert not connections.configured
    assert await connections.get() is None
    assert await connections.session() is None


async def test_engine_is_reused_between_health_checks(tmp_path):
    clock = FakeClock()
    connections = ConnectionCache(f"sqlite+aiosqlite:///{tmp_path / 'a.db'}", health_interval=30, clock=clock)
    try:
        first = await connections.get()
        clock.advance(10)
        assert await connections.get() is first
        clock.advance(30)
        # Healthy engine survives the check
        assert await connections.get() is first
    finally:
        await connections.invalidate()


async def test_failed_health_check_reconnects(tmp_path, monkeypatch):
    clock = FakeClock()
    connections = ConnectionCache(f"sqlite+aiosqlite:///{tmp_path / 'b.db'}", health_interval=30, clock=clock)
    try:
        first = await connections.get()

        async def unhealthy(engine):
            return False

        monkeypatch.setattr(connections, "_healthy", unhealthy)
        clock.advance(31)
        second = await connections.get()
        assert second is not None
        assert second is not first
    finally:
        await connections.invalidate()


async def test_invalidate_forces_a_new_engine(tmp_path):
    connections = ConnectionCache(f"sqlite+aiosqlite:///{tmp_path / 'c.db'}")
    first = await connections.get()
    await connections.invalidate()
    second = await connections.get()
    assert second is not first
    await connections.invalidate()
