"""
时区与时间窗口工具

所有活动起止时间和按日解锁判断都在 settings.timezone 指定的时区内进行；
存储中不带时区的时间按该时区的墙上时间解释。
"""

import calendar
from datetime import datetime, tzinfo
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from cafe_coupons.core.config import settings


def get_timezone(name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(name or settings.timezone)


def to_local(value: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """转换到部署时区；naive 时间视为该时区墙上时间"""
    tz = tz or get_timezone()
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def now_local(tz: Optional[tzinfo] = None) -> datetime:
    return datetime.now(tz or get_timezone())


def month_window(now: datetime) -> Tuple[datetime, datetime]:
    """当前自然月窗口 [月初 00:00:00, 月末 23:59:59.999999]"""
    last_day = calendar.monthrange(now.year, now.month)[1]
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    end = now.replace(day=last_day, hour=23, minute=59, second=59, microsecond=999999)
    return start, end
