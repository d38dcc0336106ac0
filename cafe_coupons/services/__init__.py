"""
服务包初始化文件
"""

from .eligibility import select_eligible_coupons, build_current_promotions
from .lock_evaluator import is_coupon_locked, annotate_lock_state
from .usage_ledger import UsageLedger, InMemoryUsageLedger, DatabaseUsageLedger
from .usage_outbox import UsageOutbox
from .redemption import RedemptionLifecycle
from .coupon_service import CouponService, build_coupon_service

__all__ = [
    "select_eligible_coupons",
    "build_current_promotions",
    "is_coupon_locked",
    "annotate_lock_state",
    "UsageLedger",
    "InMemoryUsageLedger",
    "DatabaseUsageLedger",
    "UsageOutbox",
    "RedemptionLifecycle",
    "CouponService",
    "build_coupon_service"
]
