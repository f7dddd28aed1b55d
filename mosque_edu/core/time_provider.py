from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from mosque_edu.config import settings


APP_TIMEZONE = settings.app_timezone or "UTC"
APP_ZONEINFO = ZoneInfo(APP_TIMEZONE)


class TimeProvider:
    def now(self) -> datetime:
        return datetime.now(APP_ZONEINFO)

    def today(self) -> date:
        return self.now().date()

    def utcnow_naive(self) -> datetime:
        """Naive UTC timestamp for DateTime columns."""
        return datetime.now(ZoneInfo("UTC")).replace(tzinfo=None)


default_time_provider = TimeProvider()
