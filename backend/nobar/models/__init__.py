"""Re-export all SQLAlchemy models for table creation and import convenience."""

from nobar.models.tables import (  # noqa: F401
    AdminUser,
    AnalyticsEvent,
    VisitorSession,
)
