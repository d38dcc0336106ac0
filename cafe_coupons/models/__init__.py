"""
数据模型包初始化文件
"""

from .promotion import (
    Entitlement,
    TargetType,
    CouponInfo,
    Campaign,
    CampaignCreate,
    CouponView,
    EligibleCampaign,
    CampaignView
)
from .redemption import (
    RedemptionState,
    UsageStatus,
    RedemptionCode,
    UsageRecord,
    CouponHistoryEntry
)
from .member import IdentityStatus, ValidationResult, Member
from .branch import Branch, Coordinates, BranchResolution
from .session import SessionContext

__all__ = [
    "Entitlement",
    "TargetType",
    "CouponInfo",
    "Campaign",
    "CampaignCreate",
    "CouponView",
    "EligibleCampaign",
    "CampaignView",
    "RedemptionState",
    "UsageStatus",
    "RedemptionCode",
    "UsageRecord",
    "CouponHistoryEntry",
    "IdentityStatus",
    "ValidationResult",
    "Member",
    "Branch",
    "Coordinates",
    "BranchResolution",
    "SessionContext"
]
