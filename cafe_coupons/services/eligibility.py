"""
优惠券资格筛选

给定用户与当前时间，选出哪些活动的哪些优惠券对该用户可见。
纯函数：相同输入总是得到相同输出，不产生副作用。
"""

import logging
from datetime import datetime, timedelta
from typing import AbstractSet, Iterable, List, Optional, Tuple

from cafe_coupons.core.timeutils import month_window, to_local
from cafe_coupons.models.promotion import (
    Campaign,
    CampaignView,
    CouponInfo,
    EligibleCampaign,
    Entitlement,
    TargetType,
)
from cafe_coupons.services.lock_evaluator import annotate_lock_state

logger = logging.getLogger(__name__)

NEAR_EXPIRY_THRESHOLD = timedelta(hours=48)


def _campaign_bounds(campaign: Campaign, now: datetime) -> Optional[Tuple[datetime, datetime]]:
    """活动起止时间 (部署时区)，无效时返回 None"""
    try:
        start = to_local(campaign.start_date, now.tzinfo)
        end = to_local(campaign.end_date, now.tzinfo)
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(f"活动时间无效，已排除: {campaign.id}: {e}")
        return None

    if end < start:
        logger.warning(f"活动结束时间早于开始时间，已排除: {campaign.id}")
        return None
    return start, end


def is_coupon_eligible(
    coupon: CouponInfo,
    entitlement: Entitlement,
    user_identifier: Optional[str],
    used_coupon_ids: AbstractSet[str]
) -> bool:
    """单张优惠券对当前用户是否可见"""
    if coupon.id in used_coupon_ids:
        return False

    if coupon.is_member_only and entitlement != Entitlement.MEMBER:
        return False

    if coupon.target_type == TargetType.SPECIFIC:
        if user_identifier is None:
            return False
        normalized = str(user_identifier).strip()
        if not normalized:
            return False
        return any(str(target).strip() == normalized for target in coupon.target_ids)

    if coupon.target_type == TargetType.MEMBERS:
        return entitlement == Entitlement.MEMBER

    return True


def select_eligible_coupons(
    campaigns: Iterable[Campaign],
    entitlement: Entitlement,
    user_identifier: Optional[str],
    used_coupon_ids: AbstractSet[str],
    now: datetime
) -> List[EligibleCampaign]:
    """
    筛选当前月份内对用户可见的活动与优惠券

    Args:
        campaigns: 全部活动
        entitlement: 会话权益
        user_identifier: 用户标识，游客或未登录时可为 None
        used_coupon_ids: 本期已使用的优惠券ID
        now: 评估时间 (带时区)

    Returns:
        按 priority 升序、startDate 升序排列的活动列表，活动内优惠券保持存储顺序
    """
    now = to_local(now)
    window_start, window_end = month_window(now)
    selected: List[Tuple[datetime, EligibleCampaign]] = []

    for campaign in campaigns:
        if not campaign.active:
            continue

        bounds = _campaign_bounds(campaign, now)
        if bounds is None:
            continue
        start, end = bounds

        if not (start <= window_end and end >= window_start):
            continue

        coupons = [
            coupon for coupon in campaign.coupons
            if is_coupon_eligible(coupon, entitlement, user_identifier, used_coupon_ids)
        ]
        if not coupons:
            continue

        selected.append((start, EligibleCampaign(campaign=campaign, coupons=coupons)))

    selected.sort(key=lambda item: (item[1].campaign.effective_priority, item[0]))
    return [eligible for _, eligible in selected]


def build_current_promotions(
    campaigns: Iterable[Campaign],
    entitlement: Entitlement,
    user_identifier: Optional[str],
    used_coupon_ids: AbstractSet[str],
    now: datetime
) -> List[CampaignView]:
    """
    "当前活动" 视图：资格筛选 + 锁定状态标注

    同优先级时，含可用(未锁定)优惠券的活动排在前面，再按开始时间排序。
    """
    now = to_local(now)
    views: List[Tuple[datetime, CampaignView]] = []

    for eligible in select_eligible_coupons(campaigns, entitlement, user_identifier, used_coupon_ids, now):
        campaign = eligible.campaign
        start, end = _campaign_bounds(campaign, now)
        near_expiry = start <= now and (end - now) < NEAR_EXPIRY_THRESHOLD

        coupons = []
        for coupon in eligible.coupons:
            view = annotate_lock_state(coupon, campaign, now)
            view.is_near_expiry = near_expiry
            coupons.append(view)

        views.append((start, CampaignView(
            id=campaign.id,
            period=campaign.period,
            start_date=campaign.start_date,
            end_date=campaign.end_date,
            priority=campaign.effective_priority,
            coupons=coupons
        )))

    views.sort(key=lambda item: (item[1].priority, not item[1].has_unlocked, item[0]))
    return [view for _, view in views]
