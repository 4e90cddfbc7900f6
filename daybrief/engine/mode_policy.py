"""
Brief mode auto-detection from local time
"""
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from daybrief.utils.config import ModeConfig
from daybrief.utils.logger import logger
from daybrief.utils.models import BriefMode, utcnow


class ModePolicy:
    """Weekend days get the weekend brief, weekday mornings the rush brief"""

    def __init__(self, config: Optional[ModeConfig] = None):
        self.config = config or ModeConfig()
        self.tz = self._resolve_timezone(self.config.timezone)

    @staticmethod
    def _resolve_timezone(name: Optional[str]):
        if not name:
            return None
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone '{name}', using system local time")
            return None

    def local_time(self, now: Optional[datetime] = None) -> datetime:
        now = now or utcnow()
        if now.tzinfo is None:
            # Naive values are already local
            return now
        if self.tz is not None:
            return now.astimezone(self.tz)
        return now.astimezone()

    def detect(self, now: Optional[datetime] = None) -> BriefMode:
        local = self.local_time(now)
        if local.weekday() in self.config.weekend_days:
            return BriefMode.WEEKEND
        if self.config.rush_start_hour <= local.hour < self.config.rush_end_hour:
            return BriefMode.RUSH
        return BriefMode.STANDARD
