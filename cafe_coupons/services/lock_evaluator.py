"""
锁定状态判断：可见但暂不可兑换的优惠券
"""

from datetime import datetime

from cafe_coupons.core.timeutils import to_local
from cafe_coupons.models.promotion import Campaign, CouponInfo, CouponView


def is_coupon_locked(coupon: CouponInfo, campaign: Campaign, now: datetime) -> bool:
    """
    按顺序判断:
    1. 活动尚未开始 -> 锁定
    2. 设置了 activeDay 且当前日期(日)未到 -> 锁定
    3. 其余情况解锁
    """
    now = to_local(now)
    if now < to_local(campaign.start_date, now.tzinfo):
        return True

    if coupon.active_day is not None and now.day < coupon.active_day:
        return True

    return False


def annotate_lock_state(coupon: CouponInfo, campaign: Campaign, now: datetime) -> CouponView:
    """返回带 is_locked 标记的优惠券视图"""
    return CouponView(
        **coupon.model_dump(),
        is_locked=is_coupon_locked(coupon, campaign, now),
        promo_start_date=campaign.start_date
    )
