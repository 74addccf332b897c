"""Visit analytics: event tracking, session heartbeats and dashboard queries.

Events are append-only. Sessions are upserted (one atomic INSERT … ON
CONFLICT per call) and never deleted; "active" means last_activity falls
inside a trailing window.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from urllib.parse import unquote

from sqlalchemy import distinct, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from nobar.models.tables import AnalyticsEvent, VisitorSession

logger = logging.getLogger(__name__)

PERIODS = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

COUNTRY_NAMES = {
    "ID": "Indonesia", "MY": "Malaysia", "SG": "Singapore", "BN": "Brunei",
    "PH": "Philippines", "TH": "Thailand", "VN": "Vietnam", "JP": "Japan",
    "KR": "South Korea", "CN": "China", "TW": "Taiwan", "HK": "Hong Kong",
    "IN": "India", "AU": "Australia", "US": "United States", "GB": "United Kingdom",
    "NL": "Netherlands", "DE": "Germany", "SA": "Saudi Arabia",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# ── Request metadata ─────────────────────────────────────────────

@dataclass
class RequestMeta:
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    device: Optional[str] = None
    browser: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    city: Optional[str] = None

    @classmethod
    def from_headers(cls, headers, peer: Optional[str] = None) -> "RequestMeta":
        user_agent = headers.get("user-agent")
        country_code, country, city = geo_from_headers(headers)
        return cls(
            ip=client_ip(headers, peer),
            user_agent=user_agent,
            device=detect_device(user_agent),
            browser=detect_browser(user_agent),
            country=country,
            country_code=country_code,
            city=city,
        )

    def columns(self) -> dict:
        return {
            "ip": self.ip,
            "user_agent": self.user_agent,
            "device": self.device,
            "browser": self.browser,
            "country": self.country,
            "country_code": self.country_code,
            "city": self.city,
        }


def client_ip(headers, peer: Optional[str] = None) -> Optional[str]:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or peer
    return headers.get("x-real-ip") or peer


def detect_device(user_agent: Optional[str]) -> str:
    if not user_agent:
        return "unknown"
    ua = user_agent.lower()
    if "ipad" in ua or "tablet" in ua or ("android" in ua and "mobile" not in ua):
        return "tablet"
    if "mobi" in ua or "iphone" in ua or "android" in ua:
        return "mobile"
    return "desktop"


def detect_browser(user_agent: Optional[str]) -> str:
    if not user_agent:
        return "unknown"
    ua = user_agent.lower()
    # Order matters: Edge/Opera/Samsung UAs also contain "chrome" and "safari"
    for marker, name in (
        ("edg/", "Edge"),
        ("opr/", "Opera"),
        ("opera", "Opera"),
        ("samsungbrowser", "Samsung Internet"),
        ("crios", "Chrome"),
        ("chrome/", "Chrome"),
        ("fxios", "Firefox"),
        ("firefox/", "Firefox"),
        ("safari/", "Safari"),
    ):
        if marker in ua:
            return name
    return "Other"


def geo_from_headers(headers) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """``(country_code, country, city)`` from edge/CDN geo headers."""
    code = headers.get("x-vercel-ip-country") or headers.get("cf-ipcountry")
    code = code.upper() if code and len(code) == 2 and code.upper() not in ("XX", "T1") else None
    city = headers.get("x-vercel-ip-city")
    city = unquote(city) if city else None
    country = COUNTRY_NAMES.get(code, code) if code else None
    return code, country, city


def fit_columns(model, values: dict) -> dict:
    """Clip string values to their column's declared length."""
    columns = model.__table__.c
    fitted = {}
    for key, value in values.items():
        length = getattr(columns[key].type, "length", None) if key in columns else None
        fitted[key] = value[:length] if length and isinstance(value, str) else value
    return fitted


# ── Service ──────────────────────────────────────────────────────

class AnalyticsService:
    """Writes and aggregates analytics; ``clock`` returns aware UTC datetimes."""

    SESSION_META_COLUMNS = ("ip", "user_agent", "device", "browser", "country", "country_code", "city")

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
        active_minutes: int = 5,
    ):
        self.db = db
        self.clock = clock
        self.active_window = timedelta(minutes=active_minutes)

    # ── Writes ───────────────────────────────────────────────────

    async def track(
        self,
        event_type: str,
        meta: RequestMeta,
        page: Optional[str] = None,
        content_id: Optional[str] = None,
        content_title: Optional[str] = None,
        content_type: Optional[str] = None,
        session_id: Optional[str] = None,
        extra: Optional[dict] = None,
    ) -> AnalyticsEvent:
        """Append an event; with a session id also upsert the session."""
        now = self.clock()
        event = AnalyticsEvent(
            created_at=now,
            extra=extra,
            **fit_columns(AnalyticsEvent, {
                "event_type": event_type,
                "page": page,
                "content_id": content_id,
                "content_title": content_title,
                "content_type": content_type,
                "session_id": session_id,
                **meta.columns(),
            }),
        )
        self.db.add(event)
        await self.db.flush()

        if session_id:
            current_content = content_title or content_id
            if current_content and content_type:
                current_content = f"{content_type}: {current_content}"
            await self._upsert_session(
                session_id,
                now,
                values={"current_page": page, "current_content": current_content, **meta.columns()},
                update=("current_page", "current_content", *self.SESSION_META_COLUMNS),
            )
        return event

    async def heartbeat(self, session_id: str, meta: Optional[RequestMeta] = None) -> None:
        """Touch a session's last_activity, creating the session if it is new."""
        values = meta.columns() if meta else {}
        await self._upsert_session(session_id, self.clock(), values=values, update=())

    async def _upsert_session(self, session_id: str, now: datetime, values: dict, update: tuple) -> None:
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            insert = pg_insert
        elif dialect == "sqlite":
            insert = sqlite_insert
        else:
            raise NotImplementedError(f"Session upsert not supported on {dialect}")

        stmt = insert(VisitorSession).values(
            first_seen=now, last_activity=now, **fit_columns(VisitorSession, {"session_id": session_id, **values}),
        )
        # Missing fields in this call keep the stored value
        set_ = {"last_activity": stmt.excluded.last_activity}
        for column in update:
            set_[column] = func.coalesce(stmt.excluded[column], getattr(VisitorSession, column))
        stmt = stmt.on_conflict_do_update(index_elements=[VisitorSession.session_id], set_=set_)
        await self.db.execute(stmt)

    # ── Counters ─────────────────────────────────────────────────

    def _midnight(self) -> datetime:
        return self.clock().replace(hour=0, minute=0, second=0, microsecond=0)

    def _since(self, period: str) -> datetime:
        if period not in PERIODS:
            raise ValueError(f"Invalid period: {period}")
        return self.clock() - PERIODS[period]

    async def _count(self, *criteria) -> int:
        return await self.db.scalar(select(func.count()).select_from(AnalyticsEvent).where(*criteria)) or 0

    async def active_sessions(self) -> int:
        since = self.clock() - self.active_window
        return await self.db.scalar(
            select(func.count()).select_from(VisitorSession).where(VisitorSession.last_activity >= since)
        ) or 0

    async def dashboard(self) -> dict:
        midnight = self._midnight()
        today_visitors = await self.db.scalar(
            select(func.count(distinct(AnalyticsEvent.session_id))).where(
                AnalyticsEvent.created_at >= midnight,
                AnalyticsEvent.session_id.is_not(None),
            )
        )
        return {
            "activeSessions": await self.active_sessions(),
            "todayPageviews": await self._count(
                AnalyticsEvent.event_type == "pageview", AnalyticsEvent.created_at >= midnight,
            ),
            "todayClicks": await self._count(
                AnalyticsEvent.event_type == "click", AnalyticsEvent.created_at >= midnight,
            ),
            "todayVisitors": today_visitors or 0,
            "totalEvents": await self._count(),
        }

    async def watchers(self, limit: int = 100) -> list[dict]:
        since = self.clock() - self.active_window
        result = await self.db.execute(
            select(VisitorSession)
            .where(VisitorSession.last_activity >= since)
            .order_by(VisitorSession.last_activity.desc())
            .limit(limit)
        )
        return [
            {
                "sessionId": s.session_id,
                "currentPage": s.current_page,
                "currentContent": s.current_content,
                "country": s.country,
                "countryCode": s.country_code,
                "city": s.city,
                "device": s.device,
                "browser": s.browser,
                "lastActivity": as_utc(s.last_activity).isoformat(),
            }
            for s in result.scalars().all()
        ]

    # ── Aggregations ─────────────────────────────────────────────

    async def _pageview_times(self, since: datetime, *criteria) -> list[datetime]:
        result = await self.db.execute(
            select(AnalyticsEvent.created_at).where(
                AnalyticsEvent.event_type == "pageview", AnalyticsEvent.created_at >= since, *criteria,
            )
        )
        return [as_utc(t) for t in result.scalars().all()]

    async def pageviews_by_day(self, period: str = "7d") -> list[dict]:
        since = self._since(period)
        counts = Counter(t.date().isoformat() for t in await self._pageview_times(since))
        days = []
        day = since.date()
        while day <= self.clock().date():
            days.append({"date": day.isoformat(), "count": counts.get(day.isoformat(), 0)})
            day += timedelta(days=1)
        return days

    async def top_content(self, period: str = "7d", limit: int = 10) -> list[dict]:
        since = self._since(period)
        count = func.count().label("count")
        result = await self.db.execute(
            select(AnalyticsEvent.content_id, func.max(AnalyticsEvent.content_title), count)
            .where(AnalyticsEvent.created_at >= since, AnalyticsEvent.content_id.is_not(None))
            .group_by(AnalyticsEvent.content_id)
            .order_by(count.desc())
            .limit(limit)
        )
        return [{"contentId": cid, "title": title, "count": n} for cid, title, n in result.all()]

    async def devices(self, period: str = "7d") -> list[dict]:
        since = self._since(period)
        count = func.count().label("count")
        result = await self.db.execute(
            select(AnalyticsEvent.device, count)
            .where(AnalyticsEvent.event_type == "pageview", AnalyticsEvent.created_at >= since)
            .group_by(AnalyticsEvent.device)
            .order_by(count.desc())
        )
        return [{"device": device or "unknown", "count": n} for device, n in result.all()]

    async def countries(self, period: str = "7d", limit: Optional[int] = None) -> list[dict]:
        since = self._since(period)
        count = func.count().label("count")
        stmt = (
            select(AnalyticsEvent.country_code, func.max(AnalyticsEvent.country), count)
            .where(AnalyticsEvent.event_type == "pageview", AnalyticsEvent.created_at >= since)
            .group_by(AnalyticsEvent.country_code)
            .order_by(count.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return [
            {"country": country or "Unknown", "countryCode": code, "count": n}
            for code, country, n in result.all()
        ]

    async def stats(self, period: str = "7d") -> dict:
        self._since(period)  # validate before running queries
        return {
            "period": period,
            "pageviews": await self.pageviews_by_day(period),
            "topContent": await self.top_content(period),
            "devices": await self.devices(period),
            "countries": await self.countries(period),
        }

    async def hourly(self, period: str = "24h") -> dict:
        values = [0] * 24
        for t in await self._pageview_times(self._since(period)):
            values[t.hour] += 1
        return {"labels": [f"{h:02d}:00" for h in range(24)], "values": values}

    async def geo(self, period: str = "7d", limit: int = 15) -> list[dict]:
        rows = await self.countries(period)
        total = sum(r["count"] for r in rows)
        return [
            {**r, "percentage": (r["count"] / total * 100) if total else 0.0}
            for r in rows[:limit]
        ]

    async def peak_hours(self, period: str = "7d", limit: int = 10) -> list[dict]:
        """Busiest hour of day (UTC) per country, countries ordered by volume."""
        since = self._since(period)
        result = await self.db.execute(
            select(AnalyticsEvent.country_code, AnalyticsEvent.country, AnalyticsEvent.created_at).where(
                AnalyticsEvent.event_type == "pageview", AnalyticsEvent.created_at >= since,
            )
        )
        by_country: dict[Optional[str], Counter] = defaultdict(Counter)
        names: dict[Optional[str], str] = {}
        for code, country, created_at in result.all():
            by_country[code][as_utc(created_at).hour] += 1
            names[code] = country or names.get(code) or "Unknown"

        rows = []
        for code, hours in by_country.items():
            # Ties go to the earliest hour
            peak_hour, peak_count = min(hours.items(), key=lambda kv: (-kv[1], kv[0]))
            rows.append({
                "country": names[code],
                "countryCode": code,
                "peakHour": peak_hour,
                "peakHourFormatted": f"{peak_hour:02d}:00",
                "peakCount": peak_count,
                "totalVisits": sum(hours.values()),
            })
        rows.sort(key=lambda r: r["totalVisits"], reverse=True)
        return rows[:limit]

    async def country_detail(self, period: str = "7d", country: Optional[str] = None) -> dict:
        criteria = (AnalyticsEvent.country_code == country.upper(),) if country else ()
        counts = Counter(t.weekday() for t in await self._pageview_times(self._since(period), *criteria))
        return {
            "country": country.upper() if country else None,
            "weekdayData": [{"day": name, "count": counts.get(i, 0)} for i, name in enumerate(WEEKDAYS)],
        }
