"""
测试数据构造工具
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from cafe_coupons.core.timeutils import get_timezone
from cafe_coupons.models.promotion import Campaign, CouponInfo

TZ = get_timezone("Asia/Bangkok")


def local_dt(*args) -> datetime:
    """部署时区 (Asia/Bangkok) 的时间"""
    return datetime(*args, tzinfo=TZ)


# 固定的当前时间：2026-02-20 10:00 (曼谷)
NOW = local_dt(2026, 2, 20, 10, 0)


def make_coupon(coupon_id: str, **fields) -> CouponInfo:
    data: Dict[str, Any] = {"id": coupon_id, "name": f"优惠券 {coupon_id}", "cardTitle": f"卡片 {coupon_id}"}
    data.update(fields)
    return CouponInfo.model_validate(data)


def make_campaign(
    campaign_id: str,
    start: datetime,
    end: datetime,
    coupons: List[CouponInfo],
    priority: Optional[int] = None,
    is_active: Optional[bool] = True,
    week: Optional[int] = None
) -> Campaign:
    return Campaign(
        id=campaign_id,
        period=f"{start:%d/%m} - {end:%d/%m}",
        start_date=start,
        end_date=end,
        coupons=coupons,
        priority=priority,
        is_active=is_active,
        week=week
    )
